"""
Backoffice Admin - Authentication Schemas

Pydantic schemas for authentication requests and responses.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class LoginRequest(BaseModel):
    """Credentials for the web session or a bearer token."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)
    remember: bool = False


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class PrincipalResponse(BaseModel):
    """The authenticated user as seen by the current session."""
    id: UUID
    name: str
    email: str
    status: str
    roles: List[str]
    permissions: List[str]


class ImpersonationState(BaseModel):
    is_impersonating: bool = False
    original_user_id: Optional[UUID] = None
    return_url: Optional[str] = None
    can_bypass_2fa: bool = False


class SessionResponse(BaseModel):
    user: PrincipalResponse
    impersonation: ImpersonationState


class LoginHintResponse(BaseModel):
    message: str
    login_url: str
