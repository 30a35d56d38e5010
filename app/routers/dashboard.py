"""
Backoffice Admin - Dashboard Router

Landing page after sign-in and after impersonation starts or ends.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_current_user, get_session_store
from app.models.user import User
from app.routers.auth import impersonation_state, principal_response
from app.schemas.auth import SessionResponse
from app.utils.session_store import SessionStore


router = APIRouter()


@router.get("/dashboard", response_model=SessionResponse)
async def dashboard(
    current_user: User = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
):
    """Current principal and whether it is being impersonated."""
    return SessionResponse(
        user=principal_response(current_user),
        impersonation=impersonation_state(store),
    )
