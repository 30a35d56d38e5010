"""
Backoffice Admin - Activity Log Writer

Appends immutable activity rows for impersonation, authentication and
administration events. Every row carries an ``issuer`` block (who did it,
from where) merged under whatever issuer fields the caller supplied.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity import Activity
from app.models.user import User
from app.utils.error_handling import AuditWriteError

logger = logging.getLogger(__name__)


DESCRIPTION_PREFIX = "activity."
SYSTEM_ISSUER_NAME = "System"


# Log categories
LOG_IMPERSONATION = "impersonation"
LOG_AUTHENTICATION = "authentication"
LOG_ADMINISTRATION = "administration"


@dataclass(frozen=True)
class RequestContext:
    """Request metadata stamped onto every activity row."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        # First hop of X-Forwarded-For when behind a proxy
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip_address = forwarded.split(",")[0].strip()
        else:
            ip_address = request.client.host if request.client else None
        return cls(
            ip_address=ip_address,
            user_agent=request.headers.get("user-agent"),
        )


def description_key_for(event: str) -> str:
    """Translation key stored in place of a rendered description."""
    return f"{DESCRIPTION_PREFIX}{event}"


def build_issuer(causer: Optional[User], context: Optional[RequestContext] = None) -> Dict[str, Any]:
    """Default issuer block for the given causer and request."""
    context = context or RequestContext()
    return {
        "name": causer.name if causer is not None else SYSTEM_ISSUER_NAME,
        "email": causer.email if causer is not None else None,
        "ip_address": context.ip_address,
        "user_agent": context.user_agent,
    }


def merge_properties(
    properties: Optional[Dict[str, Any]],
    issuer_defaults: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Shallow merge producing the stored property bag.

    The computed issuer defaults form the base and any ``issuer`` fields the
    caller supplied override them. All other caller properties are kept as
    given, and ``issuer`` is always the last key.
    """
    properties = dict(properties or {})
    supplied = properties.pop("issuer", None)

    issuer = dict(issuer_defaults)
    if isinstance(supplied, dict):
        issuer.update(supplied)

    properties["issuer"] = issuer
    return properties


def user_summary(user: User) -> Dict[str, Any]:
    """Snapshot of a user suitable for a property bag."""
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "status": user.status.value,
        "roles": user.role_names,
    }


class ActivityLogger:
    """Append-only writer for the activity log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        log_name: str,
        event: str,
        causer: Optional[User] = None,
        subject: Optional[Any] = None,
        properties: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> Activity:
        """
        Append one activity row and flush it.

        The caller owns the transaction; a failed write rolls it back and
        raises AuditWriteError.
        """
        activity = Activity(
            id=uuid.uuid4(),
            log_name=log_name,
            event=event,
            description=description_key_for(event),
            subject_type=type(subject).__name__ if subject is not None else None,
            subject_id=getattr(subject, "id", None),
            causer_type=type(causer).__name__ if causer is not None else None,
            causer_id=causer.id if causer is not None else None,
            properties=merge_properties(properties, build_issuer(causer, context)),
        )

        self.db.add(activity)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to record activity {log_name}/{event}: {e}")
            await self.db.rollback()
            raise AuditWriteError(event, original_error=e) from e

        logger.debug(f"Recorded activity {log_name}/{event} ({activity.id})")
        return activity
