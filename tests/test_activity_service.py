"""
Backoffice Admin - Activity Log Writer Tests
"""

import pytest
from sqlalchemy import select

from app.models.activity import Activity
from app.services.activity_service import (
    LOG_ADMINISTRATION,
    ActivityLogger,
    RequestContext,
    build_issuer,
    description_key_for,
    merge_properties,
)
from app.utils.error_handling import ImmutableAuditRecordError


class TestMergeProperties:
    """Issuer defaults merged under caller supplied fields."""

    def test_issuer_is_added_to_plain_properties(self):
        merged = merge_properties({"target": "Jane"}, {"name": "John", "ip_address": "1.2.3.4"})
        assert merged == {"target": "Jane", "issuer": {"name": "John", "ip_address": "1.2.3.4"}}

    def test_caller_issuer_fields_win(self):
        merged = merge_properties(
            {"issuer": {"name": "Scheduler"}},
            {"name": "System", "email": None, "ip_address": "10.0.0.1"},
        )
        assert merged["issuer"] == {"name": "Scheduler", "email": None, "ip_address": "10.0.0.1"}

    def test_issuer_is_last_key(self):
        merged = merge_properties({"issuer": {"name": "X"}, "a": 1, "b": 2}, {"name": "Y"})
        assert list(merged) == ["a", "b", "issuer"]

    def test_input_is_not_mutated(self):
        properties = {"issuer": {"name": "X"}}
        merge_properties(properties, {"name": "Y"})
        assert properties == {"issuer": {"name": "X"}}

    def test_none_properties(self):
        assert merge_properties(None, {"name": "System"}) == {"issuer": {"name": "System"}}


class TestHelpers:
    def test_description_key(self):
        assert description_key_for("impersonate.start") == "activity.impersonate.start"

    def test_issuer_without_causer_is_system(self):
        issuer = build_issuer(None, RequestContext(ip_address="127.0.0.1", user_agent="cron"))
        assert issuer == {"name": "System", "email": None, "ip_address": "127.0.0.1", "user_agent": "cron"}


class TestActivityLogger:
    """Writing rows."""

    @pytest.mark.asyncio
    async def test_record_with_causer_and_subject(self, db_session, admin, regular_user):
        activity = await ActivityLogger(db_session).record(
            LOG_ADMINISTRATION,
            "user.updated",
            causer=admin,
            subject=regular_user,
            properties={"attribute": "name", "old": "Jane", "new": "Jane Doe"},
            context=RequestContext(ip_address="192.168.1.5", user_agent="pytest"),
        )
        await db_session.commit()

        result = await db_session.execute(select(Activity).where(Activity.id == activity.id))
        stored = result.scalar_one()
        assert stored.description == "activity.user.updated"
        assert stored.causer_type == "User"
        assert stored.causer_id == admin.id
        assert stored.subject_id == regular_user.id
        assert stored.created_at is not None
        assert stored.issuer["name"] == "John Doe"
        assert stored.issuer["ip_address"] == "192.168.1.5"
        assert stored.properties["new"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_record_without_causer(self, db_session):
        activity = await ActivityLogger(db_session).record(LOG_ADMINISTRATION, "permissions.synced")
        assert activity.causer_id is None
        assert activity.causer_type is None
        assert activity.subject_id is None
        assert activity.properties == {
            "issuer": {"name": "System", "email": None, "ip_address": None, "user_agent": None}
        }


class TestImmutability:
    """Activity rows are append-only."""

    @pytest.mark.asyncio
    async def test_update_is_refused(self, db_session):
        activity = await ActivityLogger(db_session).record(LOG_ADMINISTRATION, "permissions.synced")
        await db_session.commit()

        activity.event = "tampered"
        with pytest.raises(ImmutableAuditRecordError):
            await db_session.flush()

    @pytest.mark.asyncio
    async def test_delete_is_refused(self, db_session):
        activity = await ActivityLogger(db_session).record(LOG_ADMINISTRATION, "permissions.synced")
        await db_session.commit()

        await db_session.delete(activity)
        with pytest.raises(ImmutableAuditRecordError):
            await db_session.flush()
