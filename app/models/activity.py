"""
Backoffice Admin - Activity Log Model

Append-only trail of security relevant events (impersonation, authentication,
administration). The human readable description is never stored: only the
translation key is, and it is rendered at read time from the properties.

This table should have no UPDATE or DELETE permissions. The ORM refuses both.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, String, Uuid, event, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.utils.error_handling import ImmutableAuditRecordError


class Activity(Base):
    """
    One immutable activity log entry.

    causer = who performed the action, subject = what it was performed on.
    """

    __tablename__ = "activity_log"
    __table_args__ = (
        Index("ix_activity_log_subject", "subject_type", "subject_id"),
        Index("ix_activity_log_causer", "causer_type", "causer_id"),
    )

    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Category, e.g. "impersonation", "authentication", "administration"
    log_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    # Event key, e.g. "impersonate.start"
    event: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    # Translation key derived from the event, e.g. "activity.impersonate.start"
    description: Mapped[str] = mapped_column(String(255), nullable=False)

    subject_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    subject_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    causer_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    causer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    properties: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    @property
    def issuer(self) -> Dict[str, Any]:
        return (self.properties or {}).get("issuer") or {}

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, event={self.event})>"


@event.listens_for(Activity, "before_update")
def _refuse_update(mapper, connection, target):
    raise ImmutableAuditRecordError("update")


@event.listens_for(Activity, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ImmutableAuditRecordError("delete")
