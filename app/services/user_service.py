"""
Backoffice Admin - User Management Service

Listing and administration of back-office users. Every mutation is recorded
in the ``administration`` log.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.user import User, UserStatus
from app.services.activity_service import (
    LOG_ADMINISTRATION,
    ActivityLogger,
    RequestContext,
    user_summary,
)
from app.services.rbac_service import RBACService
from app.utils.error_handling import (
    ConflictException,
    DuplicateEntryException,
    RoleNotFoundException,
    UserNotFoundException,
)
from app.utils.permissions import SystemRole
from app.utils.security import get_password_hash

logger = logging.getLogger(__name__)


MASKED = "********"
AUDITED_FIELDS = ("name", "email", "status", "locale")


class UserService:
    """Service for user administration."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityLogger(db)
        self.rbac = RBACService(db)

    async def get_user(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundException(user_id=user_id)
        return user

    async def list_users(
        self,
        search: Optional[str] = None,
        status: Optional[UserStatus] = None,
        page: int = 1,
        per_page: int = 25,
    ) -> Tuple[List[User], int]:
        """Return one page of users plus the total match count."""
        query = select(User)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern))
            )
        if status:
            query = query.where(User.status == status)

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        result = await self.db.execute(
            query.order_by(User.name).offset((page - 1) * per_page).limit(per_page)
        )
        return list(result.scalars().all()), total or 0

    async def _ensure_email_free(self, email: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        query = select(User.id).where(User.email == email.lower())
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if await self.db.scalar(query) is not None:
            raise DuplicateEntryException("User", "email", email)

    # ===========================================
    # MUTATIONS
    # ===========================================

    async def create_user(
        self,
        actor: Optional[User],
        name: str,
        email: str,
        password: str,
        role: str = SystemRole.USER.value,
        status: UserStatus = UserStatus.ACTIVE,
        locale: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> User:
        await self._ensure_email_free(email)

        role_record = await self.rbac.get_role(role)
        if role_record is None:
            raise RoleNotFoundException(role)

        user = User(
            id=uuid.uuid4(),
            name=name,
            email=email.lower(),
            hashed_password=get_password_hash(password),
            status=status,
            locale=locale,
            roles=[role_record],
        )
        self.db.add(user)
        await self.db.flush()

        await self.activity.record(
            LOG_ADMINISTRATION,
            "user.created",
            causer=actor,
            subject=user,
            properties={"target": user.name, "user": user_summary(user)},
            context=context,
        )
        await self.db.commit()

        logger.info(f"User {user.id} created by {actor.id if actor else 'system'}")
        return user

    async def update_user(
        self,
        actor: User,
        user: User,
        changes: Dict[str, Any],
        context: Optional[RequestContext] = None,
    ) -> User:
        """
        Apply attribute changes, one ``user.updated`` row per changed attribute.
        """
        if changes.get("email"):
            changes["email"] = changes["email"].lower()
            await self._ensure_email_free(changes["email"], exclude_id=user.id)

        recorded: List[Tuple[str, Any, Any]] = []
        for field in AUDITED_FIELDS:
            if field not in changes:
                continue
            new_value = changes[field]
            if field == "status" and new_value is not None:
                new_value = UserStatus(new_value)
            old_value = getattr(user, field)
            if old_value == new_value:
                continue
            setattr(user, field, new_value)
            recorded.append((
                field,
                old_value.value if isinstance(old_value, UserStatus) else old_value,
                new_value.value if isinstance(new_value, UserStatus) else new_value,
            ))

        if changes.get("password"):
            user.hashed_password = get_password_hash(changes["password"])
            recorded.append(("password", MASKED, MASKED))

        for attribute, old_value, new_value in recorded:
            await self.activity.record(
                LOG_ADMINISTRATION,
                "user.updated",
                causer=actor,
                subject=user,
                properties={
                    "user": user_summary(user),
                    "attribute": attribute,
                    "old": old_value,
                    "new": new_value,
                },
                context=context,
            )
        await self.db.commit()
        return user

    async def delete_user(
        self,
        actor: User,
        user: User,
        context: Optional[RequestContext] = None,
    ) -> User:
        """Soft delete: the account is kept with status ``deleted``."""
        user.status = UserStatus.DELETED
        await self.activity.record(
            LOG_ADMINISTRATION,
            "user.deleted",
            causer=actor,
            subject=user,
            properties={"target": user.name, "user": user_summary(user)},
            context=context,
        )
        await self.db.commit()
        return user

    async def restore_user(
        self,
        actor: User,
        user: User,
        context: Optional[RequestContext] = None,
    ) -> User:
        """Bring a soft deleted account back as active."""
        if user.status != UserStatus.DELETED:
            raise ConflictException(
                message="Only deleted users can be restored",
                resource_type="User",
                details={"status": user.status.value},
            )

        user.status = UserStatus.ACTIVE
        await self.activity.record(
            LOG_ADMINISTRATION,
            "user.restored",
            causer=actor,
            subject=user,
            properties={"target": user.name, "user": user_summary(user)},
            context=context,
        )
        await self.db.commit()
        return user

    async def change_role(
        self,
        actor: User,
        user: User,
        role_name: str,
        context: Optional[RequestContext] = None,
    ) -> User:
        previous = user.role_names
        await self.rbac.assign_role(user, role_name)
        await self.activity.record(
            LOG_ADMINISTRATION,
            "role.assigned",
            causer=actor,
            subject=user,
            properties={
                "role": role_name,
                "previous_roles": previous,
                "user": user_summary(user),
            },
            context=context,
        )
        await self.db.commit()
        return user

    # ===========================================
    # BOOTSTRAP
    # ===========================================

    async def ensure_super_admin(self) -> Optional[User]:
        """Create the configured super admin account if it does not exist yet."""
        if not settings.super_admin_email or not settings.super_admin_password:
            return None

        existing = await self.db.scalar(
            select(User).where(User.email == settings.super_admin_email.lower())
        )
        if existing is not None:
            return existing

        logger.info(f"Seeding super admin {settings.super_admin_email}")
        return await self.create_user(
            actor=None,
            name=settings.super_admin_name,
            email=settings.super_admin_email,
            password=settings.super_admin_password,
            role=SystemRole.SUPER_ADMIN.value,
        )
