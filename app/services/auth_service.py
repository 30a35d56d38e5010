"""
Backoffice Admin - Authentication Service

Credential checks, session sign-in/sign-out and API token issuance. Every
outcome (success, failure, sign-out) lands in the ``authentication`` log.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserStatus
from app.services.activity_service import (
    LOG_AUTHENTICATION,
    ActivityLogger,
    RequestContext,
)
from app.utils.error_handling import (
    AccountDisabledException,
    InvalidCredentialsException,
)
from app.utils.security import create_access_token, verify_password
from app.utils.session_store import SessionStore

logger = logging.getLogger(__name__)


GUARD_WEB = "web"
GUARD_API = "api"


class AuthService:
    """Service for authentication operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityLogger(db)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email address."""
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns:
            User if authentication successful, None otherwise
        """
        user = await self.get_user_by_email(email)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    async def _verify_credentials(
        self,
        email: str,
        password: str,
        guard: str,
        context: Optional[RequestContext],
    ) -> User:
        user = await self.authenticate_user(email, password)

        if user is None or user.status != UserStatus.ACTIVE:
            # Causer is the account the email belongs to, when there is one
            known = user or await self.get_user_by_email(email)
            await self.activity.record(
                LOG_AUTHENTICATION,
                "auth.login.failed",
                causer=known,
                subject=known,
                properties={
                    "event": "login_failed",
                    "guard": guard,
                    "credentials": {"email": email},
                },
                context=context,
            )
            await self.db.commit()
            logger.warning(f"Failed login for {email} ({guard})")

            if user is None:
                raise InvalidCredentialsException()
            raise AccountDisabledException(user.status.value)

        return user

    async def login(
        self,
        store: SessionStore,
        email: str,
        password: str,
        remember: bool = False,
        context: Optional[RequestContext] = None,
    ) -> User:
        """Sign a user into the web session."""
        user = await self._verify_credentials(email, password, GUARD_WEB, context)

        user.last_login_at = datetime.now(timezone.utc)
        await self.activity.record(
            LOG_AUTHENTICATION,
            "auth.login",
            causer=user,
            subject=user,
            properties={"guard": GUARD_WEB, "remember": remember},
            context=context,
        )
        await self.db.commit()

        # Fresh session for the new principal
        store.logout()
        store.login(user.id)

        logger.info(f"User {user.id} signed in")
        return user

    async def logout(
        self,
        store: SessionStore,
        user: Optional[User],
        context: Optional[RequestContext] = None,
    ) -> None:
        """Sign the current principal out and clear the whole session."""
        if user is not None:
            await self.activity.record(
                LOG_AUTHENTICATION,
                "auth.logout",
                causer=user,
                subject=user,
                properties={"guard": GUARD_WEB},
                context=context,
            )
            await self.db.commit()
            logger.info(f"User {user.id} signed out")

        store.logout()

    async def issue_token(
        self,
        email: str,
        password: str,
        context: Optional[RequestContext] = None,
    ) -> str:
        """Exchange credentials for a bearer token (API clients)."""
        user = await self._verify_credentials(email, password, GUARD_API, context)

        await self.activity.record(
            LOG_AUTHENTICATION,
            "auth.login",
            causer=user,
            subject=user,
            properties={"guard": GUARD_API, "remember": False},
            context=context,
        )
        await self.db.commit()

        return create_access_token({"sub": str(user.id)})
