"""
Unit tests for SessionService (linked devices).
"""
import pytest
from fastapi import HTTPException

from ephemera.models.session import UserSession
from ephemera.services.session_service import SessionService


@pytest.fixture
async def other_sessions(db_session, test_user, test_user_2):
    """Two more devices for alice and one for bob."""
    phone = UserSession(user_id=test_user.id, device_name="Phone", os="Android")
    tablet = UserSession(user_id=test_user.id, device_name="Tablet")
    bobs = UserSession(user_id=test_user_2.id, device_name="Bob's laptop")
    db_session.add_all([phone, tablet, bobs])
    await db_session.commit()
    return phone, tablet, bobs


@pytest.mark.asyncio
class TestListSessions:

    async def test_marks_current_session(self, db_session, test_user, test_session, other_sessions):
        service = SessionService(db_session)

        result = await service.list_sessions(test_user.id, test_session.id)

        assert len(result.sessions) == 3
        current = [s for s in result.sessions if s.is_current]
        assert [s.id for s in current] == [test_session.id]

    async def test_only_own_sessions(self, db_session, test_user_2, other_sessions):
        service = SessionService(db_session)

        result = await service.list_sessions(test_user_2.id, None)

        assert [s.device_name for s in result.sessions] == ["Bob's laptop"]
        assert result.sessions[0].is_current is False


@pytest.mark.asyncio
class TestRenameSession:

    async def test_rename_strips_whitespace(self, db_session, test_user, test_session):
        service = SessionService(db_session)

        renamed = await service.rename_session(test_session.id, test_user.id, "  Work laptop  ")

        assert renamed.device_name == "Work laptop"

    @pytest.mark.parametrize("name", [None, "", "   ", "x" * 51])
    async def test_rename_rejects_bad_names(self, db_session, test_user, test_session, name):
        service = SessionService(db_session)

        with pytest.raises(HTTPException) as exc_info:
            await service.rename_session(test_session.id, test_user.id, name)

        assert exc_info.value.status_code == 400

    async def test_rename_other_users_session(self, db_session, test_user_2, test_session):
        service = SessionService(db_session)

        with pytest.raises(HTTPException) as exc_info:
            await service.rename_session(test_session.id, test_user_2.id, "Mine now")

        assert exc_info.value.status_code == 404


@pytest.mark.asyncio
class TestRevokeSessions:

    async def test_revoke_other_device(
        self, db_session, test_user, test_session, other_sessions, mock_websocket_manager
    ):
        phone, _, _ = other_sessions
        service = SessionService(db_session)

        result = await service.revoke_session(phone.id, test_user.id, test_session.id)

        assert result.success is True
        assert await service.session_repo.get_for_user(phone.id, test_user.id) is None
        mock_websocket_manager.send_session_revoked.assert_awaited_once_with(test_user.id, phone.id)

    async def test_cannot_revoke_current_session(self, db_session, test_user, test_session):
        service = SessionService(db_session)

        with pytest.raises(HTTPException) as exc_info:
            await service.revoke_session(test_session.id, test_user.id, test_session.id)

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Cannot revoke current session"

    async def test_revoke_unknown_session(self, db_session, test_user, test_session, other_sessions):
        _, _, bobs = other_sessions
        service = SessionService(db_session)

        with pytest.raises(HTTPException) as exc_info:
            await service.revoke_session(bobs.id, test_user.id, test_session.id)

        assert exc_info.value.status_code == 404

    async def test_revoke_others_keeps_current(
        self, db_session, test_user, test_user_2, test_session, other_sessions, mock_websocket_manager
    ):
        service = SessionService(db_session)

        result = await service.revoke_other_sessions(test_user.id, test_session.id)

        assert result.revoked_count == 2
        remaining = await service.list_sessions(test_user.id, test_session.id)
        assert [s.id for s in remaining.sessions] == [test_session.id]
        # Other users' devices are untouched
        assert len((await service.list_sessions(test_user_2.id, None)).sessions) == 1
        mock_websocket_manager.send_sessions_revoked_others.assert_awaited_once_with(
            test_user.id, test_session.id
        )

    async def test_revoke_others_needs_current_session(self, db_session, test_user):
        service = SessionService(db_session)

        with pytest.raises(HTTPException) as exc_info:
            await service.revoke_other_sessions(test_user.id, None)

        assert exc_info.value.status_code == 400
