"""
Backoffice Admin - RBAC Service

Reconciles the closed Permission/SystemRole enums with the persisted grant
store and manages role assignment.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, settings as app_settings
from app.models.rbac import PermissionRecord, Role
from app.models.user import User
from app.services.activity_service import (
    LOG_ADMINISTRATION,
    ActivityLogger,
    RequestContext,
)
from app.utils.error_handling import RoleNotFoundException
from app.utils.permissions import (
    Permission,
    SystemRole,
    default_permissions_for,
)

logger = logging.getLogger(__name__)


@dataclass
class PermissionSyncResult:
    created: int = 0
    skipped: int = 0
    module_disabled: int = 0


@dataclass
class RoleSyncResult:
    created: List[str]
    updated: List[str]


class RBACService:
    """Service for the role/permission grant store."""

    def __init__(self, db: AsyncSession, config: Optional[Settings] = None):
        self.db = db
        self.config = config or app_settings

    # ===========================================
    # LOOKUPS
    # ===========================================

    async def get_role(self, name: str) -> Optional[Role]:
        result = await self.db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def _permissions_by_name(self) -> Dict[str, PermissionRecord]:
        result = await self.db.execute(select(PermissionRecord))
        return {record.name: record for record in result.scalars().all()}

    # ===========================================
    # RECONCILIATION
    # ===========================================

    async def sync_permissions(self) -> PermissionSyncResult:
        """
        Create missing permission rows from the enum.

        Existing rows are left alone and permissions of disabled modules are
        not created. Safe to run repeatedly.
        """
        outcome = PermissionSyncResult()
        existing = await self._permissions_by_name()

        for permission in Permission:
            if not permission.should_sync(self.config):
                logger.debug(f"Permission {permission.value} skipped (module disabled)")
                outcome.module_disabled += 1
                continue

            if permission.value in existing:
                outcome.skipped += 1
                continue

            self.db.add(PermissionRecord(name=permission.value))
            outcome.created += 1

        await self.db.flush()
        logger.info(
            f"Permission sync: {outcome.created} created, {outcome.skipped} skipped, "
            f"{outcome.module_disabled} module-disabled"
        )
        return outcome

    async def sync_roles(self) -> RoleSyncResult:
        """
        Ensure every system role exists and carries exactly its default grants.

        Custom roles are not touched.
        """
        outcome = RoleSyncResult(created=[], updated=[])
        available = await self._permissions_by_name()

        for system_role in SystemRole:
            role = await self.get_role(system_role.value)
            if role is None:
                role = Role(name=system_role.value, permissions=[])
                self.db.add(role)
                outcome.created.append(system_role.value)

            wanted = sorted(
                permission.value
                for permission in default_permissions_for(system_role, self.config)
                if permission.value in available
            )
            if role.permission_names != wanted:
                role.permissions = [available[name] for name in wanted]
                if system_role.value not in outcome.created:
                    outcome.updated.append(system_role.value)

        await self.db.flush()
        logger.info(f"Role sync: created={outcome.created} updated={outcome.updated}")
        return outcome

    async def sync(
        self,
        causer: Optional[User] = None,
        context: Optional[RequestContext] = None,
    ) -> Dict[str, object]:
        """Reconcile permissions then roles, record the run and commit."""
        permissions = await self.sync_permissions()
        roles = await self.sync_roles()

        summary = {**asdict(permissions), "roles_created": roles.created, "roles_updated": roles.updated}

        await ActivityLogger(self.db).record(
            LOG_ADMINISTRATION,
            "permissions.synced",
            causer=causer,
            properties=summary,
            context=context,
        )
        await self.db.commit()
        return summary

    # ===========================================
    # ASSIGNMENT
    # ===========================================

    async def assign_role(self, user: User, role_name: str) -> User:
        """Replace all of the user's roles with ``role_name``."""
        role = await self.get_role(role_name)
        if role is None:
            raise RoleNotFoundException(role_name)

        user.roles = [role]
        await self.db.flush()
        logger.info(f"Assigned role {role_name} to user {user.id}")
        return user
