"""
Backoffice Admin - Impersonation API Tests

End to end through the cookie session: start, act as the target, leave.
"""

import uuid

import pytest
from sqlalchemy import delete, func, select

from app.models.activity import Activity
from app.models.user import User
from conftest import login


async def activity_count(db, event=None):
    query = select(func.count()).select_from(Activity)
    if event:
        query = query.where(Activity.event == event)
    return (await db.execute(query)).scalar_one()


async def whoami(client):
    response = await client.get("/dashboard")
    assert response.status_code == 200
    return response.json()


class TestStart:
    """POST /impersonate/{id}"""

    @pytest.mark.asyncio
    async def test_admin_impersonates_user(self, client, db_session, admin, regular_user):
        await login(client, admin)

        response = await client.post(f"/impersonate/{regular_user.id}")

        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"

        session = await whoami(client)
        assert session["user"]["email"] == "jane@example.com"
        assert session["impersonation"]["is_impersonating"] is True
        assert session["impersonation"]["original_user_id"] == str(admin.id)
        assert session["impersonation"]["can_bypass_2fa"] is True
        assert await activity_count(db_session, "impersonate.start") == 1

    @pytest.mark.asyncio
    async def test_status_endpoint(self, client, admin, regular_user):
        await login(client, admin)
        assert (await client.get("/impersonate/status")).json()["is_impersonating"] is False

        await client.post(f"/impersonate/{regular_user.id}", params={"return_url": "/admin/users"})

        state = (await client.get("/impersonate/status")).json()
        assert state["is_impersonating"] is True
        assert state["return_url"] == "/admin/users"

    @pytest.mark.asyncio
    async def test_equal_rank_is_denied(self, client, db_session, admin, other_admin):
        await login(client, admin)

        response = await client.post(f"/impersonate/{other_admin.id}")

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["code"] == "IMPERSONATION_DENIED"
        assert detail["details"]["target_id"] == str(other_admin.id)

        session = await whoami(client)
        assert session["user"]["email"] == "john@example.com"
        assert session["impersonation"]["is_impersonating"] is False
        assert await activity_count(db_session, "impersonate.start") == 0

    @pytest.mark.asyncio
    async def test_plain_user_is_denied(self, client, admin, regular_user):
        await login(client, regular_user)
        response = await client.post(f"/impersonate/{admin.id}")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_target(self, client, admin):
        await login(client, admin)
        response = await client.post(f"/impersonate/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client, regular_user):
        response = await client.post(f"/impersonate/{regular_user.id}")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_nested_start_is_denied(self, client, super_admin, admin, regular_user):
        await login(client, super_admin)
        await client.post(f"/impersonate/{admin.id}")

        response = await client.post(f"/impersonate/{regular_user.id}")

        assert response.status_code == 403
        assert (await whoami(client))["user"]["email"] == "john@example.com"


class TestLeave:
    """POST /impersonate/leave"""

    @pytest.mark.asyncio
    async def test_leave_returns_to_origin(self, client, db_session, admin, regular_user):
        await login(client, admin)
        await client.post(f"/impersonate/{regular_user.id}", params={"return_url": "/admin/users?page=2"})

        response = await client.post("/impersonate/leave")

        assert response.status_code == 302
        assert response.headers["location"] == "/admin/users?page=2"

        session = await whoami(client)
        assert session["user"]["email"] == "john@example.com"
        assert session["impersonation"]["is_impersonating"] is False
        assert await activity_count(db_session, "impersonate.leave") == 1

    @pytest.mark.asyncio
    async def test_referer_is_used_as_return_url(self, client, admin, regular_user):
        await login(client, admin)
        await client.post(
            f"/impersonate/{regular_user.id}",
            headers={"Referer": "http://test/admin/users?search=jane"},
        )

        response = await client.post("/impersonate/leave")
        assert response.headers["location"] == "/admin/users?search=jane"

    @pytest.mark.asyncio
    async def test_foreign_return_url_is_ignored(self, client, admin, regular_user):
        await login(client, admin)
        await client.post(
            f"/impersonate/{regular_user.id}",
            params={"return_url": "https://evil.example.org/phish"},
        )

        response = await client.post("/impersonate/leave")
        assert response.headers["location"] == "/dashboard"

    @pytest.mark.asyncio
    async def test_leave_without_impersonation(self, client, db_session, admin):
        await login(client, admin)

        response = await client.post("/impersonate/leave")

        assert response.status_code == 302
        assert response.headers["location"] == "/login"
        assert (await whoami(client))["user"]["email"] == "john@example.com"
        assert await activity_count(db_session, "impersonate.leave") == 0

    @pytest.mark.asyncio
    async def test_unresumable_session_signs_out(self, client, db_session, admin, regular_user):
        await login(client, admin)
        await client.post(f"/impersonate/{regular_user.id}")
        await db_session.execute(delete(User).where(User.id == admin.id))
        await db_session.commit()

        response = await client.post("/impersonate/leave")

        assert response.status_code == 302
        assert response.headers["location"] == "/login"
        assert (await client.get("/dashboard")).status_code == 401
        assert await activity_count(db_session, "impersonate.leave") == 0

    @pytest.mark.asyncio
    async def test_impersonated_user_keeps_target_permissions(self, client, admin, regular_user):
        await login(client, admin)
        await client.post(f"/impersonate/{regular_user.id}")

        # Acting as a plain user: the admin listing is out of reach
        assert (await client.get("/admin/users")).status_code == 403

        await client.post("/impersonate/leave")
        assert (await client.get("/admin/users")).status_code == 200


class TestListingAffordance:
    """Impersonate control state in GET /admin/users."""

    @pytest.mark.asyncio
    async def test_affordance_per_row(self, client, admin, other_admin, regular_user, inactive_user):
        await login(client, admin)

        response = await client.get("/admin/users")
        assert response.status_code == 200
        states = {row["email"]: row["impersonation"] for row in response.json()["users"]}

        assert states == {
            "john@example.com": "disabled",
            "alice@example.com": "disabled",
            "jane@example.com": "enabled",
            "ivan@example.com": "disabled",
        }

    @pytest.mark.asyncio
    async def test_hidden_while_impersonating(self, client, super_admin, admin, regular_user):
        await login(client, super_admin)
        await client.post(f"/impersonate/{admin.id}")

        response = await client.get("/admin/users")
        assert response.status_code == 200
        assert {row["impersonation"] for row in response.json()["users"]} == {"hidden"}
