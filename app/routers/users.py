"""
Backoffice Admin - User Administration Router

Endpoints:
- GET    /admin/users             - List users with the impersonate control state per row
- POST   /admin/users             - Create a user
- GET    /admin/users/{id}        - User details
- PATCH  /admin/users/{id}        - Update a user
- DELETE /admin/users/{id}        - Soft delete a user
- POST   /admin/users/{id}/restore - Restore a soft deleted user
- PUT    /admin/users/{id}/role   - Replace a user's role
"""

import math
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import (
    get_request_context,
    get_session_store,
    require_permission,
)
from app.models.user import User, UserStatus
from app.schemas.user import (
    RoleAssignRequest,
    UserCreateRequest,
    UserListItem,
    UserListResponse,
    UserResponse,
    UserUpdateRequest,
)
from app.services.activity_service import RequestContext
from app.services.user_service import UserService
from app.utils.error_handling import AuthorizationException
from app.utils.impersonation import impersonation_affordance
from app.utils.permissions import Permission, SystemRole
from app.utils.session_store import SessionStore


router = APIRouter()


def ensure_manageable(actor: User, target: User) -> User:
    """Administrators only act on other accounts of strictly lower rank."""
    if target.id == actor.id:
        raise AuthorizationException("You cannot manage your own account")
    if target.rank >= actor.rank:
        raise AuthorizationException("Target role is equal to or higher than your own")
    return target


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = Query(None, max_length=255),
    user_status: Optional[UserStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1, le=100),
    current_user: User = Depends(require_permission(Permission.READ_USERS)),
    store: SessionStore = Depends(get_session_store),
    db: AsyncSession = Depends(get_async_session),
):
    users, total = await UserService(db).list_users(
        search=search,
        status=user_status,
        page=page,
        per_page=per_page,
    )
    impersonating = store.is_impersonating()

    items = [
        UserListItem(
            **UserResponse.model_validate(user).model_dump(),
            impersonation=impersonation_affordance(current_user, user, impersonating),
        )
        for user in users
    ]
    return UserListResponse(
        users=items,
        total=total,
        page=page,
        per_page=per_page,
        total_pages=math.ceil(total / per_page) if total else 0,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateRequest,
    current_user: User = Depends(require_permission(Permission.CREATE_USERS)),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    if payload.role == SystemRole.SUPER_ADMIN.value and SystemRole.SUPER_ADMIN.value not in current_user.role_names:
        raise AuthorizationException("Only a super admin can create super admins")

    user = await UserService(db).create_user(
        actor=current_user,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        status=payload.status,
        locale=payload.locale,
        context=context,
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.READ_USERS)),
    db: AsyncSession = Depends(get_async_session),
):
    return UserResponse.model_validate(await UserService(db).get_user(user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    payload: UserUpdateRequest,
    current_user: User = Depends(require_permission(Permission.UPDATE_USERS)),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    service = UserService(db)
    user = ensure_manageable(current_user, await service.get_user(user_id))
    user = await service.update_user(
        current_user,
        user,
        payload.model_dump(exclude_unset=True),
        context=context,
    )
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.DELETE_USERS)),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    service = UserService(db)
    user = ensure_manageable(current_user, await service.get_user(user_id))
    return UserResponse.model_validate(await service.delete_user(current_user, user, context=context))


@router.post("/{user_id}/restore", response_model=UserResponse)
async def restore_user(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.RESTORE_USERS)),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    service = UserService(db)
    user = ensure_manageable(current_user, await service.get_user(user_id))
    return UserResponse.model_validate(await service.restore_user(current_user, user, context=context))


@router.put("/{user_id}/role", response_model=UserResponse)
async def assign_role(
    user_id: uuid.UUID,
    payload: RoleAssignRequest,
    current_user: User = Depends(require_permission(Permission.UPDATE_USERS)),
    context: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_async_session),
):
    if SystemRole.SUPER_ADMIN.value not in current_user.role_names and payload.role in (
        SystemRole.SUPER_ADMIN.value,
        SystemRole.ADMIN.value,
    ):
        raise AuthorizationException("Only a super admin can grant administrative roles")

    service = UserService(db)
    user = ensure_manageable(current_user, await service.get_user(user_id))
    user = await service.change_role(current_user, user, payload.role, context=context)
    return UserResponse.model_validate(user)
