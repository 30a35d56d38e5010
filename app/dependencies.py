"""
Backoffice Admin - FastAPI Dependencies

Shared dependencies for authentication, session access, and RBAC.

This module provides dependency injection for:
1. The per-request SessionStore and RequestContext
2. Current user authentication (web session first, then bearer token)
3. Permission-based access control
4. The viewer's locale for activity descriptions
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.models.user import User
from app.services.activity_service import RequestContext
from app.utils.error_handling import InsufficientPermissionsException, TokenInvalidException
from app.utils.permissions import Permission
from app.utils.security import decode_token
from app.utils.session_store import SessionStore

logger = logging.getLogger(__name__)


# HTTP Bearer token security
security = HTTPBearer(auto_error=False)


def get_session_store(request: Request) -> SessionStore:
    """Wrap the signed cookie session of this request."""
    return SessionStore(request.session)


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request)


async def _load_user(db: AsyncSession, user_id: Optional[uuid.UUID]) -> Optional[User]:
    if user_id is None:
        return None
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


def _user_id_from_token(token: str) -> uuid.UUID:
    payload = decode_token(token)
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError as e:
        raise TokenInvalidException("Token subject is not a user id") from e


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: SessionStore = Depends(get_session_store),
    db: AsyncSession = Depends(get_async_session),
) -> Optional[User]:
    """
    Resolve the authenticated principal, or None.

    The web session wins over a bearer token so that an impersonating
    browser always acts as the impersonated user.
    """
    user = await _load_user(db, store.auth_user_id())
    if user is None and credentials:
        user = await _load_user(db, _user_id_from_token(credentials.credentials))
    return user


async def get_current_user(
    user: Optional[User] = Depends(get_optional_user),
) -> User:
    """
    Get the current authenticated user.

    Raises:
        HTTPException: If nobody is signed in or the account is not active
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is not active",
        )

    return user


def require_permission(*permissions: Permission):
    """
    Dependency factory requiring every listed permission.

    Usage:
        @router.get("/admin/users")
        async def list_users(user: User = Depends(require_permission(Permission.READ_USERS))):
            ...
    """
    async def permission_checker(
        current_user: User = Depends(get_current_user),
    ) -> User:
        missing = [p.value for p in permissions if not current_user.has_permission(p)]
        if missing:
            logger.warning(f"User {current_user.id} lacks {missing}")
            raise InsufficientPermissionsException(", ".join(missing))
        return current_user

    return permission_checker


def get_locale(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
) -> str:
    """Viewer locale: account preference, then Accept-Language, then the default."""
    if user is not None and user.locale:
        return user.locale
    header = request.headers.get("accept-language")
    if header:
        primary = header.split(",")[0].split(";")[0].strip()
        if primary:
            return primary.split("-")[0].lower()
    return settings.default_locale
