"""
Backoffice Admin - Authentication Router

Endpoints:
- GET  /login              - Where and how to sign in
- POST /login              - Sign into the web session
- POST /logout             - Sign out and clear the session
- POST /api/v1/auth/token  - Bearer token for API clients
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import (
    get_optional_user,
    get_request_context,
    get_session_store,
)
from app.models.user import User
from app.schemas.auth import (
    ImpersonationState,
    LoginHintResponse,
    LoginRequest,
    PrincipalResponse,
    SessionResponse,
    TokenResponse,
)
from app.services.activity_service import RequestContext
from app.services.auth_service import AuthService
from app.utils.session_store import SessionStore


router = APIRouter()
api_router = APIRouter()


def principal_response(user: User) -> PrincipalResponse:
    return PrincipalResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        status=user.status.value,
        roles=user.role_names,
        permissions=sorted(user.permissions),
    )


def impersonation_state(store: SessionStore) -> ImpersonationState:
    state = store.impersonation()
    if state is None:
        return ImpersonationState()
    return ImpersonationState(
        is_impersonating=True,
        original_user_id=state.original_uuid,
        return_url=state.return_url,
        can_bypass_2fa=state.can_bypass_2fa,
    )


@router.get("/login", response_model=LoginHintResponse)
async def login_page():
    return LoginHintResponse(
        message="POST email and password to this URL to sign in",
        login_url=settings.login_url,
    )


@router.post(
    "/login",
    response_model=SessionResponse,
    summary="Sign in",
    description="Verify credentials and bind the user to the web session.",
)
async def login(
    payload: LoginRequest,
    store: SessionStore = Depends(get_session_store),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    user = await AuthService(db).login(
        store,
        email=payload.email,
        password=payload.password,
        remember=payload.remember,
        context=context,
    )
    return SessionResponse(
        user=principal_response(user),
        impersonation=impersonation_state(store),
    )


@router.post("/logout", summary="Sign out")
async def logout(
    user: Optional[User] = Depends(get_optional_user),
    store: SessionStore = Depends(get_session_store),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    await AuthService(db).logout(store, user, context=context)
    return RedirectResponse(settings.login_url, status_code=status.HTTP_302_FOUND)


@api_router.post(
    "/token",
    response_model=TokenResponse,
    summary="Issue a bearer token",
)
async def issue_token(
    payload: LoginRequest,
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    token = await AuthService(db).issue_token(payload.email, payload.password, context=context)
    return TokenResponse(
        access_token=token,
        expires_in=settings.access_token_expire_minutes * 60,
    )
