"""
Backoffice Admin - Permissions System

Closed catalogue of permissions and system roles, plus the rank table used to
decide who may act on whom.

Permission Matrix (defaults applied by the RBAC sync):
======================================================

| Permission                  | Super Admin | Admin | User |
|-----------------------------|-------------|-------|------|
| access:control-panel        | X           | X     |      |
| access:impersonate-users    | X           | X     |      |
| access:backups              | X           |       |      |
| access:health-check         | X           |       |      |
| access:activity-logs        | X           | X     |      |
| manage:settings             | X           | X     |      |
| access:api (module)         | X           | X     | X    |
| create|read|update|delete|restore:users | X | X |      |
| create|read|update|delete|restore:roles | X | read only |  |
| *:api-tokens (module)       | X           | X     |      |
| *:clients (module)          | X           |       |      |

Role hierarchy: super_admin (3) > admin (2) > user (1) > no role (0).
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from app.config import Settings, settings as app_settings


# ===========================================
# PERMISSION ENUM
# ===========================================

class Permission(str, Enum):
    """Every capability the platform knows about."""

    # General/System
    ACCESS_CONTROL_PANEL = "access:control-panel"
    IMPERSONATE_USERS = "access:impersonate-users"
    ACCESS_BACKUPS = "access:backups"
    ACCESS_HEALTH_CHECK = "access:health-check"
    ACCESS_ACTIVITY_LOGS = "access:activity-logs"
    MANAGE_SETTINGS = "manage:settings"
    HAS_API_ACCESS = "access:api"

    # Users
    CREATE_USERS = "create:users"
    READ_USERS = "read:users"
    UPDATE_USERS = "update:users"
    DELETE_USERS = "delete:users"
    RESTORE_USERS = "restore:users"

    # Roles
    CREATE_ROLES = "create:roles"
    READ_ROLES = "read:roles"
    UPDATE_ROLES = "update:roles"
    DELETE_ROLES = "delete:roles"
    RESTORE_ROLES = "restore:roles"

    # API tokens (no restore)
    CREATE_API_TOKENS = "create:api-tokens"
    READ_API_TOKENS = "read:api-tokens"
    UPDATE_API_TOKENS = "update:api-tokens"
    DELETE_API_TOKENS = "delete:api-tokens"

    # Clients
    CREATE_CLIENTS = "create:clients"
    READ_CLIENTS = "read:clients"
    UPDATE_CLIENTS = "update:clients"
    DELETE_CLIENTS = "delete:clients"
    RESTORE_CLIENTS = "restore:clients"

    def should_sync(self, config: Optional[Settings] = None) -> bool:
        """Whether this permission belongs in the grant store under the given module configuration."""
        config = config or app_settings
        if self in CLIENT_PERMISSIONS:
            return config.modules_clients_enabled
        if self in API_PERMISSIONS:
            return config.modules_api_enabled
        return True

    @property
    def is_super_admin_only(self) -> bool:
        """Reserved to the super admin role; stripped from every other default grant."""
        return self in SUPER_ADMIN_ONLY_PERMISSIONS


CLIENT_PERMISSIONS: Set[Permission] = {
    Permission.CREATE_CLIENTS,
    Permission.READ_CLIENTS,
    Permission.UPDATE_CLIENTS,
    Permission.DELETE_CLIENTS,
    Permission.RESTORE_CLIENTS,
}

API_PERMISSIONS: Set[Permission] = {
    Permission.HAS_API_ACCESS,
    Permission.CREATE_API_TOKENS,
    Permission.READ_API_TOKENS,
    Permission.UPDATE_API_TOKENS,
    Permission.DELETE_API_TOKENS,
}

SUPER_ADMIN_ONLY_PERMISSIONS: Set[Permission] = {
    Permission.ACCESS_BACKUPS,
    Permission.ACCESS_HEALTH_CHECK,
}


# ===========================================
# SYSTEM ROLES
# ===========================================

class SystemRole(str, Enum):
    """Roles shipped with the platform. Custom roles may exist alongside them."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    USER = "user"


ROLE_RANK: Dict[SystemRole, int] = {
    SystemRole.SUPER_ADMIN: 3,
    SystemRole.ADMIN: 2,
    SystemRole.USER: 1,
}

# Rank of a principal holding no role at all
NO_ROLE_RANK = 0


# ===========================================
# DEFAULT GRANTS
# ===========================================

ADMIN_PERMISSIONS: Set[Permission] = {
    Permission.ACCESS_CONTROL_PANEL,
    Permission.IMPERSONATE_USERS,
    Permission.ACCESS_ACTIVITY_LOGS,
    Permission.MANAGE_SETTINGS,
    Permission.CREATE_USERS,
    Permission.READ_USERS,
    Permission.UPDATE_USERS,
    Permission.DELETE_USERS,
    Permission.RESTORE_USERS,
    Permission.READ_ROLES,
}

ADMIN_API_PERMISSIONS: Set[Permission] = {
    Permission.HAS_API_ACCESS,
    Permission.CREATE_API_TOKENS,
    Permission.READ_API_TOKENS,
    Permission.UPDATE_API_TOKENS,
    Permission.DELETE_API_TOKENS,
}


def syncable_permissions(config: Optional[Settings] = None) -> List[Permission]:
    """Permissions that should exist in the grant store, in declaration order."""
    return [permission for permission in Permission if permission.should_sync(config)]


def default_permissions_for(role: SystemRole, config: Optional[Settings] = None) -> Set[Permission]:
    """
    Default grant set for a system role.

    Super admin receives every synced permission; the API module adds token
    permissions to admin and bare API access to user.
    """
    config = config or app_settings
    available = set(syncable_permissions(config))

    if role == SystemRole.SUPER_ADMIN:
        return available

    if role == SystemRole.ADMIN:
        granted = set(ADMIN_PERMISSIONS)
        if config.modules_api_enabled:
            granted |= ADMIN_API_PERMISSIONS
        return (granted & available) - SUPER_ADMIN_ONLY_PERMISSIONS

    granted = set()
    if config.modules_api_enabled:
        granted.add(Permission.HAS_API_ACCESS)
    return (granted & available) - SUPER_ADMIN_ONLY_PERMISSIONS


# ===========================================
# ROLE HIERARCHY
# ===========================================

def role_rank(role_name: str) -> int:
    """
    Get the hierarchy level of a role by name.

    Custom roles rank alongside the plain user role.
    """
    try:
        return ROLE_RANK[SystemRole(role_name)]
    except ValueError:
        return ROLE_RANK[SystemRole.USER]


def highest_rank(role_names: Iterable[str]) -> int:
    """Rank of the most privileged role in the collection (0 when empty)."""
    return max((role_rank(name) for name in role_names), default=NO_ROLE_RANK)
