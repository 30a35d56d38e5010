"""
Backoffice Admin - Role & Permission Models

Persisted grant store. Rows are reconciled from the closed enums in
app.utils.permissions by the RBAC sync; runtime checks read them through
User.has_permission.
"""

from typing import List

from sqlalchemy import Column, ForeignKey, String, Table, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.base import BaseModel


# ===========================================
# ASSOCIATION TABLES
# ===========================================

role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Uuid, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Uuid, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Uuid, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class PermissionRecord(BaseModel):
    """A single named capability, e.g. ``access:impersonate-users``."""

    __tablename__ = "permissions"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<PermissionRecord(name={self.name})>"


class Role(BaseModel):
    """
    Named bundle of permissions.

    System roles (super_admin, admin, user) are created by the sync; any other
    name is a custom role and ranks alongside ``user``.
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    permissions: Mapped[List[PermissionRecord]] = relationship(
        PermissionRecord,
        secondary=role_permissions,
        lazy="selectin",
    )

    @property
    def permission_names(self) -> List[str]:
        return sorted(permission.name for permission in self.permissions)

    def __repr__(self) -> str:
        return f"<Role(name={self.name})>"
