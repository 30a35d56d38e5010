"""
Backoffice Admin - Activity Log Query Service

Read side of the activity log: filtered, paginated listing and detail, with
descriptions rendered for the viewer's locale.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import String, and_, cast, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity
from app.models.user import User
from app.services.activity_translator import describe, translation_payload
from app.utils.error_handling import ActivityNotFoundException

logger = logging.getLogger(__name__)


class ActivityQueryService:
    """Service for browsing the activity log."""

    def __init__(self, db: AsyncSession, locale: Optional[str] = None):
        self.db = db
        self.locale = locale

    async def _causers(self, activities: List[Activity]) -> Dict[UUID, Dict[str, Any]]:
        ids = {activity.causer_id for activity in activities if activity.causer_id}
        if not ids:
            return {}
        result = await self.db.execute(
            select(User.id, User.name, User.email).where(User.id.in_(ids))
        )
        return {
            row.id: {"id": str(row.id), "name": row.name, "email": row.email}
            for row in result.all()
        }

    def _format(self, activity: Activity, causers: Dict[UUID, Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "id": str(activity.id),
            "log_name": activity.log_name,
            "event": activity.event,
            "description": describe(activity, self.locale),
            "translation": translation_payload(activity),
            "subject_type": activity.subject_type,
            "subject_id": str(activity.subject_id) if activity.subject_id else None,
            "causer_type": activity.causer_type,
            "causer_id": str(activity.causer_id) if activity.causer_id else None,
            "causer": causers.get(activity.causer_id),
            "properties": activity.properties or {},
            "created_at": activity.created_at.isoformat() if activity.created_at else None,
        }

    async def list_activities(
        self,
        log_name: Optional[str] = None,
        event: Optional[str] = None,
        causer_id: Optional[UUID] = None,
        subject_type: Optional[str] = None,
        subject_id: Optional[UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Search the activity log.

        Args:
            log_name: Exact log category
            event: Exact event key
            causer_id: Who performed the action
            subject_type: Subject model name (e.g. "User")
            subject_id: Subject identifier
            date_from: Inclusive start date
            date_to: Inclusive end date
            search: Free text over description key, event and properties
            page: Page number
            per_page: Results per page

        Returns:
            Tuple of (formatted activities, total count)
        """
        conditions = []

        if log_name:
            conditions.append(Activity.log_name == log_name)
        if event:
            conditions.append(Activity.event == event)
        if causer_id:
            conditions.append(Activity.causer_id == causer_id)
        if subject_type:
            conditions.append(Activity.subject_type == subject_type)
        if subject_id:
            conditions.append(Activity.subject_id == subject_id)

        if date_from:
            conditions.append(func.date(Activity.created_at) >= date_from)
        if date_to:
            conditions.append(func.date(Activity.created_at) <= date_to)

        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Activity.description).like(pattern),
                    func.lower(Activity.event).like(pattern),
                    func.lower(cast(Activity.properties, String)).like(pattern),
                )
            )

        count_query = select(func.count(Activity.id))
        query = select(Activity)
        if conditions:
            count_query = count_query.where(and_(*conditions))
            query = query.where(and_(*conditions))

        total = (await self.db.execute(count_query)).scalar() or 0

        query = (
            query.order_by(desc(Activity.created_at), desc(Activity.id))
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        activities = list((await self.db.execute(query)).scalars().all())
        causers = await self._causers(activities)

        return [self._format(activity, causers) for activity in activities], total

    async def get_activity(self, activity_id: UUID) -> Dict[str, Any]:
        activity = await self.db.get(Activity, activity_id)
        if activity is None:
            raise ActivityNotFoundException(activity_id)
        causers = await self._causers([activity])
        return self._format(activity, causers)
