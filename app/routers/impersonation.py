"""
Backoffice Admin - Impersonation Router

Endpoints:
- GET  /impersonate/status       - Current impersonation state
- POST /impersonate/leave        - Return to the original account
- POST /impersonate/{target_id}  - Start impersonating a user

Start answers 302 to the dashboard, 403 when the policy refuses and 404 for
an unknown target. Leave answers 302 to the stored return URL, or 302 to the
login page when there is nothing valid to leave.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import (
    get_current_user,
    get_request_context,
    get_session_store,
)
from app.models.user import User
from app.routers.auth import impersonation_state
from app.schemas.auth import ImpersonationState
from app.services.activity_service import RequestContext
from app.services.impersonation_service import ImpersonationService
from app.services.user_service import UserService
from app.utils.error_handling import SessionInvalidError
from app.utils.security import safe_return_url
from app.utils.session_store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=ImpersonationState)
async def impersonation_status(
    current_user: User = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
):
    return impersonation_state(store)


@router.post(
    "/leave",
    summary="Leave impersonation",
    description="Restore the original account and clear the impersonation state.",
)
async def leave_impersonation(
    store: SessionStore = Depends(get_session_store),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    service = ImpersonationService(db)
    try:
        result = await service.leave(store, context=context)
    except SessionInvalidError as e:
        logger.warning(f"Cannot leave impersonation: {e.message}")
        service.discard(store)
        return RedirectResponse(settings.login_url, status_code=status.HTTP_302_FOUND)

    return RedirectResponse(result.redirect_url, status_code=status.HTTP_302_FOUND)


@router.post(
    "/{target_id}",
    summary="Impersonate a user",
    description="Switch the session to the target user. Requires access:impersonate-users.",
)
async def start_impersonation(
    target_id: uuid.UUID,
    request: Request,
    return_url: Optional[str] = Query(None, max_length=2048),
    current_user: User = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    target = await UserService(db).get_user(target_id)

    host = request.url.netloc
    back_to = (
        safe_return_url(return_url, host)
        or safe_return_url(request.headers.get("referer"), host)
        or settings.dashboard_url
    )

    await ImpersonationService(db).start(
        store,
        actor=current_user,
        target=target,
        return_url=back_to,
        context=context,
    )
    return RedirectResponse(settings.dashboard_url, status_code=status.HTTP_302_FOUND)
