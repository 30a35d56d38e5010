"""
Backoffice Admin - Impersonation Service Tests

Session transitions and the audit rows they leave behind.
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.models.activity import Activity
from app.services.activity_service import RequestContext
from app.services.impersonation_service import ImpersonationService
from app.utils.error_handling import (
    AuditWriteError,
    AuthorizationError,
    SessionInvalidError,
)
from app.utils.session_store import AUTH_KEY, IMPERSONATION_KEY, SessionStore


async def count_activities(db, event=None) -> int:
    query = select(func.count()).select_from(Activity)
    if event:
        query = query.where(Activity.event == event)
    result = await db.execute(query)
    return result.scalar_one()


def signed_in(user) -> SessionStore:
    store = SessionStore({})
    store.login(user.id)
    return store


class TestStartImpersonation:
    """idle -> impersonating"""

    @pytest.mark.asyncio
    async def test_start_switches_principal(self, db_session, admin, regular_user):
        store = signed_in(admin)
        context = RequestContext(ip_address="10.0.0.1", user_agent="pytest")

        state = await ImpersonationService(db_session).start(
            store, admin, regular_user, return_url="/admin/users", context=context
        )

        assert store.auth_user_id() == regular_user.id
        assert state.is_impersonating is True
        assert state.original_user_id == str(admin.id)
        assert state.return_url == "/admin/users"
        assert state.can_bypass_2fa is True
        assert store.impersonation() == state

    @pytest.mark.asyncio
    async def test_start_records_exactly_one_activity(self, db_session, admin, regular_user):
        store = signed_in(admin)
        await ImpersonationService(db_session).start(
            store, admin, regular_user, context=RequestContext(ip_address="10.0.0.1", user_agent="pytest")
        )

        result = await db_session.execute(select(Activity))
        activities = result.scalars().all()
        assert len(activities) == 1

        activity = activities[0]
        assert activity.log_name == "impersonation"
        assert activity.event == "impersonate.start"
        assert activity.description == "activity.impersonate.start"
        assert activity.causer_id == admin.id
        assert activity.causer_type == "User"
        assert activity.subject_id == regular_user.id
        assert activity.subject_type == "User"
        assert activity.properties["target"] == "Jane Doe"
        assert activity.properties["user"]["email"] == "jane@example.com"
        assert activity.properties["issuer"] == {
            "name": "John Doe",
            "email": "john@example.com",
            "ip_address": "10.0.0.1",
            "user_agent": "pytest",
        }

    @pytest.mark.asyncio
    async def test_return_url_defaults_to_dashboard(self, db_session, admin, regular_user):
        store = signed_in(admin)
        state = await ImpersonationService(db_session).start(store, admin, regular_user)
        assert state.return_url == "/dashboard"

    @pytest.mark.asyncio
    async def test_denied_start_changes_nothing(self, db_session, admin, other_admin):
        store = signed_in(admin)
        before = dict(store._data)

        with pytest.raises(AuthorizationError) as exc_info:
            await ImpersonationService(db_session).start(store, admin, other_admin)

        assert exc_info.value.status_code == 403
        assert exc_info.value.reason
        assert store._data == before
        assert await count_activities(db_session) == 0

    @pytest.mark.asyncio
    async def test_inactive_target_is_refused(self, db_session, super_admin, inactive_user):
        store = signed_in(super_admin)
        with pytest.raises(AuthorizationError):
            await ImpersonationService(db_session).start(store, super_admin, inactive_user)
        assert not store.is_impersonating()

    @pytest.mark.asyncio
    async def test_nested_start_is_refused(self, db_session, super_admin, admin, regular_user):
        store = signed_in(super_admin)
        service = ImpersonationService(db_session)
        await service.start(store, super_admin, admin)
        snapshot = dict(store._data)

        # Now acting as admin, who could impersonate the user on their own
        with pytest.raises(AuthorizationError):
            await service.start(store, admin, regular_user)

        assert store._data == snapshot
        assert await count_activities(db_session, "impersonate.start") == 1

    @pytest.mark.asyncio
    async def test_failed_audit_write_leaves_session_untouched(
        self, db_session, admin, regular_user, monkeypatch
    ):
        store = signed_in(admin)
        admin_id = admin.id
        before = dict(store._data)

        async def broken_flush(*args, **kwargs):
            raise OperationalError("INSERT INTO activity_log", {}, Exception("disk full"))

        monkeypatch.setattr(db_session, "flush", broken_flush)

        with pytest.raises(AuditWriteError):
            await ImpersonationService(db_session).start(store, admin, regular_user)

        assert store._data == before
        assert store.auth_user_id() == admin_id
        assert not store.has(IMPERSONATION_KEY)


class TestLeaveImpersonation:
    """impersonating -> idle"""

    @pytest.mark.asyncio
    async def test_leave_restores_original(self, db_session, admin, regular_user):
        store = signed_in(admin)
        service = ImpersonationService(db_session)
        await service.start(store, admin, regular_user, return_url="/admin/users")

        result = await service.leave(store)

        assert store.auth_user_id() == admin.id
        assert not store.has(IMPERSONATION_KEY)
        assert result.original_user.id == admin.id
        assert result.impersonated_user.id == regular_user.id
        assert result.redirect_url == "/admin/users"

    @pytest.mark.asyncio
    async def test_leave_record_inverts_causer_and_subject(self, db_session, admin, regular_user):
        store = signed_in(admin)
        service = ImpersonationService(db_session)
        await service.start(store, admin, regular_user)
        await service.leave(store)

        result = await db_session.execute(select(Activity).where(Activity.event == "impersonate.leave"))
        activity = result.scalar_one()
        assert activity.causer_id == admin.id
        assert activity.subject_id == regular_user.id
        assert activity.properties["target"] == "Jane Doe"
        assert activity.properties["issuer"]["name"] == "John Doe"

    @pytest.mark.asyncio
    async def test_round_trip_restores_session(self, db_session, admin, regular_user):
        store = signed_in(admin)
        before = dict(store._data)
        service = ImpersonationService(db_session)

        await service.start(store, admin, regular_user)
        await service.leave(store)

        assert store._data == before
        assert await count_activities(db_session) == 2

    @pytest.mark.asyncio
    async def test_leave_without_impersonation(self, db_session, admin):
        store = signed_in(admin)
        before = dict(store._data)

        with pytest.raises(SessionInvalidError):
            await ImpersonationService(db_session).leave(store)

        assert store._data == before
        assert await count_activities(db_session) == 0

    @pytest.mark.asyncio
    async def test_second_leave_fails_closed(self, db_session, admin, regular_user):
        store = signed_in(admin)
        service = ImpersonationService(db_session)
        await service.start(store, admin, regular_user)
        await service.leave(store)

        with pytest.raises(SessionInvalidError):
            await service.leave(store)

        assert store.auth_user_id() == admin.id
        assert await count_activities(db_session, "impersonate.leave") == 1

    @pytest.mark.asyncio
    async def test_missing_original_user(self, db_session, admin, regular_user):
        store = signed_in(admin)
        service = ImpersonationService(db_session)
        await service.start(store, admin, regular_user)
        store._data[IMPERSONATION_KEY]["original_user_id"] = str(uuid4())
        before = {AUTH_KEY: store._data[AUTH_KEY]}

        with pytest.raises(SessionInvalidError):
            await service.leave(store)

        assert store._data[AUTH_KEY] == before[AUTH_KEY]
        assert store.has(IMPERSONATION_KEY)

    @pytest.mark.asyncio
    async def test_discard_signs_out_stale_session(self, db_session, admin, regular_user):
        store = signed_in(admin)
        service = ImpersonationService(db_session)
        await service.start(store, admin, regular_user)

        ImpersonationService.discard(store)

        assert ImpersonationService.current(store) is None
        assert store.auth_user_id() is None

    @pytest.mark.asyncio
    async def test_discard_without_record_keeps_session(self, admin):
        store = signed_in(admin)

        ImpersonationService.discard(store)

        assert store.auth_user_id() == admin.id
