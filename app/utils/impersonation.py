"""
Backoffice Admin - Impersonation Policy

Pure decision functions gating impersonation. The user listing (affordance)
and the start transition call the same predicate so the control a viewer sees
and the action the server accepts can never disagree.
"""

from enum import Enum
from typing import Tuple

from app.models.user import User, UserStatus
from app.utils.permissions import Permission


class Affordance(str, Enum):
    """How the impersonate control is rendered for a given row."""
    HIDDEN = "hidden"
    ENABLED = "enabled"
    DISABLED = "disabled"


def check_impersonation(actor: User, target: User) -> Tuple[bool, str]:
    """
    Check if ``actor`` may impersonate ``target``.

    Returns:
        Tuple of (allowed, reason)
    """
    if actor.id == target.id:
        return False, "You cannot impersonate yourself"

    if not actor.has_permission(Permission.IMPERSONATE_USERS):
        return False, "You don't have impersonation permission"

    if target.rank >= actor.rank:
        return False, "Target role is equal to or higher than your own"

    if target.status != UserStatus.ACTIVE:
        return False, f"Target account is {target.status.value}"

    return True, "Impersonation allowed"


def can_impersonate(actor: User, target: User) -> bool:
    allowed, _ = check_impersonation(actor, target)
    return allowed


def impersonation_affordance(actor: User, target: User, impersonating: bool = False) -> Affordance:
    """Hidden while the viewer is already impersonating; otherwise follows the predicate."""
    if impersonating:
        return Affordance.HIDDEN
    return Affordance.ENABLED if can_impersonate(actor, target) else Affordance.DISABLED
