"""
Backoffice Admin - Impersonation Service

Two-state session machine (idle / impersonating) over an explicit
SessionStore. Each transition writes its audit row and commits before the
session is touched, so a failed write leaves the session exactly as it was.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, settings as app_settings
from app.models.user import User
from app.services.activity_service import (
    LOG_IMPERSONATION,
    ActivityLogger,
    RequestContext,
    user_summary,
)
from app.utils.error_handling import AuthorizationError, SessionInvalidError
from app.utils.impersonation import check_impersonation
from app.utils.session_store import (
    IMPERSONATION_KEY,
    ImpersonationSession,
    SessionStore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveResult:
    """Outcome of leaving impersonation."""
    original_user: User
    impersonated_user: User
    redirect_url: str


class ImpersonationService:
    """Start and leave impersonation for one request's session."""

    def __init__(self, db: AsyncSession, config: Optional[Settings] = None):
        self.db = db
        self.config = config or app_settings
        self.activity = ActivityLogger(db)

    async def _get_user(self, user_id: Optional[uuid.UUID]) -> Optional[User]:
        if user_id is None:
            return None
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    def current(store: SessionStore) -> Optional[ImpersonationSession]:
        return store.impersonation()

    # ===========================================
    # TRANSITIONS
    # ===========================================

    async def start(
        self,
        store: SessionStore,
        actor: User,
        target: User,
        return_url: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> ImpersonationSession:
        """
        Switch the session's principal from ``actor`` to ``target``.

        Raises:
            AuthorizationError: the predicate refused, or the session is
                already impersonating someone.
            AuditWriteError: the start could not be recorded.
        """
        if store.has(IMPERSONATION_KEY):
            logger.warning(f"User {actor.id} tried nested impersonation of {target.id}")
            raise AuthorizationError("Leave the current impersonation first", target.id)

        allowed, reason = check_impersonation(actor, target)
        if not allowed:
            logger.warning(f"Impersonation denied: {actor.id} -> {target.id}: {reason}")
            raise AuthorizationError(reason, target.id)

        await self.activity.record(
            LOG_IMPERSONATION,
            "impersonate.start",
            causer=actor,
            subject=target,
            properties={
                "target": target.name,
                "user": user_summary(target),
            },
            context=context,
        )
        await self.db.commit()

        state = ImpersonationSession(
            is_impersonating=True,
            original_user_id=str(actor.id),
            return_url=return_url or self.config.dashboard_url,
            can_bypass_2fa=True,
        )
        store.put(IMPERSONATION_KEY, state.to_dict())
        store.login(target.id)

        logger.info(f"User {actor.id} started impersonating {target.id}")
        return state

    async def leave(
        self,
        store: SessionStore,
        context: Optional[RequestContext] = None,
    ) -> LeaveResult:
        """
        Restore the original principal and clear the impersonation state.

        Raises:
            SessionInvalidError: no impersonation in progress, or either
                principal can no longer be resolved. Nothing is changed.
            AuditWriteError: the leave could not be recorded.
        """
        state = store.impersonation()
        if state is None:
            raise SessionInvalidError("No impersonation in progress")

        original = await self._get_user(state.original_uuid)
        if original is None:
            raise SessionInvalidError("Original user no longer exists")

        impersonated = await self._get_user(store.auth_user_id())
        if impersonated is None:
            raise SessionInvalidError("Impersonated user no longer exists")

        if impersonated.id == original.id:
            raise SessionInvalidError("Impersonation session is inconsistent")

        await self.activity.record(
            LOG_IMPERSONATION,
            "impersonate.leave",
            causer=original,
            subject=impersonated,
            properties={"target": impersonated.name},
            context=context,
        )
        await self.db.commit()

        store.login(original.id)
        store.forget(IMPERSONATION_KEY)

        logger.info(f"User {original.id} stopped impersonating {impersonated.id}")
        return LeaveResult(
            original_user=original,
            impersonated_user=impersonated,
            redirect_url=state.return_url or self.config.dashboard_url,
        )

    @staticmethod
    def discard(store: SessionStore) -> None:
        """
        Sign the browser out when an impersonation record can no longer be
        resumed. Sessions without a record are left as they are.
        """
        if store.has(IMPERSONATION_KEY):
            logger.warning("Discarding unresumable impersonation session")
            store.logout()
