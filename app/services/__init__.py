"""
Backoffice Admin - Services Package

Business logic services.
"""

from app.services.activity_service import ActivityLogger, RequestContext
from app.services.activity_query_service import ActivityQueryService
from app.services.auth_service import AuthService
from app.services.impersonation_service import ImpersonationService, LeaveResult
from app.services.rbac_service import RBACService
from app.services.user_service import UserService

__all__ = [
    "ActivityLogger",
    "RequestContext",
    "ActivityQueryService",
    "AuthService",
    "ImpersonationService",
    "LeaveResult",
    "RBACService",
    "UserService",
]
