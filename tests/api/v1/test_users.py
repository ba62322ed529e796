"""
Integration tests for presence and health endpoints.
"""
from datetime import datetime, timezone

import pytest


@pytest.mark.asyncio
class TestPresenceAPI:

    async def test_offline_without_cache_entry(self, client, test_user_2):
        response = await client.get(f"/api/users/{test_user_2.id}/presence")

        assert response.status_code == 200
        assert response.json() == {"user_id": test_user_2.id, "status": "offline", "last_seen_at": None}

    async def test_offline_falls_back_to_stored_last_seen(self, client, db_session, test_user_2):
        test_user_2.last_seen_at = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        await db_session.commit()

        response = await client.get(f"/api/users/{test_user_2.id}/presence")

        assert response.status_code == 200
        assert response.json() == {
            "user_id": test_user_2.id,
            "status": "offline",
            "last_seen_at": "2026-01-01T12:00:00Z",
        }

    async def test_online_from_cache(self, client, test_user_2, mocker):
        mocker.patch(
            "ephemera.api.v1.users.get_user_presence",
            return_value={"status": "online", "last_seen_at": "2026-01-01T12:00:00Z"}
        )

        response = await client.get(f"/api/users/{test_user_2.id}/presence")

        assert response.json() == {
            "user_id": test_user_2.id,
            "status": "online",
            "last_seen_at": "2026-01-01T12:00:00Z",
        }

    async def test_presence_requires_auth(self, unauth_client, test_user_2):
        response = await unauth_client.get(f"/api/users/{test_user_2.id}/presence")

        assert response.status_code == 401


@pytest.mark.asyncio
async def test_health_check(unauth_client):
    response = await unauth_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "active_connections" in data
