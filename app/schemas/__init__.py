"""
Backoffice Admin - Pydantic Schemas Package
"""
