"""
Integration tests for session (linked device) endpoints.
"""
from datetime import timedelta

import pytest

from ephemera.models.session import UserSession
from ephemera.utils.datetime_utils import ensure_utc, utc_now


@pytest.fixture
async def phone_session(db_session, test_user):
    session = UserSession(user_id=test_user.id, device_name="Phone")
    db_session.add(session)
    await db_session.commit()
    return session


@pytest.mark.asyncio
class TestSessionAPI:

    async def test_list_sessions(self, client, test_session, phone_session):
        response = await client.get("/api/sessions")

        assert response.status_code == 200
        sessions = response.json()["sessions"]
        assert {s["id"] for s in sessions} == {test_session.id, phone_session.id}
        current = {s["id"]: s["is_current"] for s in sessions}
        assert current[test_session.id] is True
        assert current[phone_session.id] is False

    async def test_rename_session(self, client, phone_session):
        response = await client.put(f"/api/sessions/{phone_session.id}/name", json={"name": "Pixel"})

        assert response.status_code == 200
        assert response.json()["device_name"] == "Pixel"

    async def test_rename_session_too_long(self, client, phone_session):
        response = await client.put(f"/api/sessions/{phone_session.id}/name", json={"name": "x" * 60})

        assert response.status_code == 400

    async def test_revoke_current_session(self, client, test_session):
        response = await client.post(f"/api/sessions/{test_session.id}/revoke")

        assert response.status_code == 400
        assert response.json() == {"error": "Cannot revoke current session"}

    async def test_revoked_device_loses_access(self, client, client_factory, test_user, phone_session):
        phone = client_factory(test_user, phone_session.id)
        assert (await phone.get("/api/sessions")).status_code == 200

        response = await client.post(f"/api/sessions/{phone_session.id}/revoke")
        assert response.status_code == 200

        denied = await phone.get("/api/sessions")
        assert denied.status_code == 401
        assert denied.json() == {"error": "Session has been revoked"}

    async def test_revoke_others(self, client, phone_session, mock_websocket_manager):
        response = await client.post("/api/sessions/revoke-others")

        assert response.status_code == 200
        assert response.json() == {"success": True, "revoked_count": 1}
        mock_websocket_manager.send_sessions_revoked_others.assert_awaited_once()

    async def test_sessions_require_auth(self, unauth_client):
        response = await unauth_client.get("/api/sessions")

        assert response.status_code == 401


@pytest.mark.asyncio
class TestSessionActivity:

    async def test_request_refreshes_last_active(self, client_factory, db_session, test_user, phone_session):
        an_hour_ago = utc_now() - timedelta(hours=1)
        phone_session.last_active_at = an_hour_ago
        await db_session.commit()

        phone = client_factory(test_user, phone_session.id)
        assert (await phone.get("/api/sessions")).status_code == 200

        await db_session.refresh(phone_session)
        assert ensure_utc(phone_session.last_active_at) > an_hour_ago + timedelta(minutes=59)

    async def test_recent_activity_is_not_rewritten(self, client_factory, db_session, test_user, phone_session):
        recently = utc_now() - timedelta(seconds=10)
        phone_session.last_active_at = recently
        await db_session.commit()

        phone = client_factory(test_user, phone_session.id)
        await phone.get("/api/sessions")

        await db_session.refresh(phone_session)
        assert ensure_utc(phone_session.last_active_at) == recently
