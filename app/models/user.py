"""
Backoffice Admin - User Model

Principal of the back office. A user's capabilities are the union of the
permissions carried by its roles; its rank is the rank of its most privileged
role (see app.utils.permissions).
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Set, Union

from sqlalchemy import DateTime, String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel
from app.models.rbac import Role, user_roles
from app.utils.permissions import Permission, highest_rank


class UserStatus(str, Enum):
    """Lifecycle status of an account. Only active accounts can sign in or be impersonated."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class User(BaseModel):
    """
    User model for authentication and authorization.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    status: Mapped[UserStatus] = mapped_column(
        SQLEnum(UserStatus),
        default=UserStatus.ACTIVE,
        nullable=False,
    )
    # Preferred locale for translated activity descriptions
    locale: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    roles: Mapped[List[Role]] = relationship(
        Role,
        secondary=user_roles,
        lazy="selectin",
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def role_names(self) -> List[str]:
        return [role.name for role in self.roles]

    @property
    def permissions(self) -> Set[str]:
        """Union of permission names over all assigned roles."""
        return {
            permission.name
            for role in self.roles
            for permission in role.permissions
        }

    @property
    def rank(self) -> int:
        return highest_rank(self.role_names)

    def has_permission(self, permission: Union[Permission, str]) -> bool:
        name = permission.value if isinstance(permission, Permission) else permission
        return name in self.permissions

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
