"""
Backoffice Admin - User Administration Schemas
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.user import UserStatus
from app.utils.impersonation import Affordance
from app.utils.permissions import SystemRole


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    role: str = Field(default=SystemRole.USER.value, max_length=100)
    status: UserStatus = UserStatus.ACTIVE
    locale: Optional[str] = Field(None, max_length=10)


class UserUpdateRequest(BaseModel):
    """Partial update; only supplied fields are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=100)
    status: Optional[UserStatus] = None
    locale: Optional[str] = Field(None, max_length=10)


class RoleAssignRequest(BaseModel):
    role: str = Field(..., min_length=1, max_length=100)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    status: UserStatus
    locale: Optional[str] = None
    role_names: List[str] = []
    last_login_at: Optional[datetime] = None


class UserListItem(UserResponse):
    """User row plus the state of its impersonate control for the viewer."""
    impersonation: Affordance


class UserListResponse(BaseModel):
    users: List[UserListItem]
    total: int
    page: int
    per_page: int
    total_pages: int
