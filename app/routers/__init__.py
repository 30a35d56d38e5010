"""
Backoffice Admin - Routers Package

FastAPI route handlers.

Routers:
- auth: Web session sign-in/out and API tokens
- dashboard: Landing page with the current principal
- users: User administration with impersonation affordances
- impersonation: Start/leave impersonation
- activities: Activity log browsing
"""
