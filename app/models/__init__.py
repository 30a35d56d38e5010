"""
Backoffice Admin - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin
from app.models.rbac import PermissionRecord, Role, role_permissions, user_roles
from app.models.user import User, UserStatus
from app.models.activity import Activity

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "PermissionRecord",
    "Role",
    "role_permissions",
    "user_roles",
    "User",
    "UserStatus",
    "Activity",
]
