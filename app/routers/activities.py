"""
Backoffice Admin - Activity Log Router

Read-only access to the activity trail. Requires access:activity-logs.

Endpoints:
- GET /api/v1/admin/activities       - Search activities (paginated)
- GET /api/v1/admin/activities/{id}  - Activity details
"""

import math
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_locale, require_permission
from app.models.user import User
from app.schemas.activity import ActivityListResponse, ActivityResponse
from app.services.activity_query_service import ActivityQueryService
from app.utils.error_handling import ValidationException
from app.utils.permissions import Permission


router = APIRouter()


@router.get(
    "",
    response_model=ActivityListResponse,
    summary="Search activity log",
)
async def list_activities(
    search: Optional[str] = Query(None, max_length=255, description="Free text over event and properties"),
    log_name: Optional[str] = Query(None, max_length=100),
    event: Optional[str] = Query(None, max_length=100),
    causer_id: Optional[UUID] = Query(None),
    subject_type: Optional[str] = Query(None, max_length=100),
    subject_id: Optional[UUID] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    locale: str = Depends(get_locale),
    current_user: User = Depends(require_permission(Permission.ACCESS_ACTIVITY_LOGS)),
    db: AsyncSession = Depends(get_async_session),
):
    if date_from and date_to and date_from > date_to:
        raise ValidationException(
            f"date_from ({date_from}) must not be after date_to ({date_to})",
            field="date_from",
        )

    activities, total = await ActivityQueryService(db, locale=locale).list_activities(
        log_name=log_name,
        event=event,
        causer_id=causer_id,
        subject_type=subject_type,
        subject_id=subject_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        per_page=per_page,
    )
    return ActivityListResponse(
        activities=activities,
        total=total,
        page=page,
        per_page=per_page,
        total_pages=math.ceil(total / per_page) if total else 0,
    )


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: UUID,
    locale: str = Depends(get_locale),
    current_user: User = Depends(require_permission(Permission.ACCESS_ACTIVITY_LOGS)),
    db: AsyncSession = Depends(get_async_session),
):
    return await ActivityQueryService(db, locale=locale).get_activity(activity_id)
