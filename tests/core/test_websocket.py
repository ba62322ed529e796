"""
Tests for the Socket.IO connection manager handlers.

The AsyncServer is replaced with a mock so handlers can be driven directly.
"""
import pytest

from ephemera.core.security import create_access_token
from ephemera.core.websocket import ConnectionManager, room_channel, user_channel
from ephemera.repositories.receipt_repo import ReceiptRepository


@pytest.fixture
def manager(mocker, session_factory):
    ws = ConnectionManager()
    ws.sio = mocker.AsyncMock()
    ws.session_factory = session_factory
    return ws


def token_for(user, session_id=None):
    claims = {"id": user.id, "username": user.username}
    if session_id:
        claims["sessionId"] = session_id
    return create_access_token(data=claims)


def emitted(manager, event):
    """Payloads and kwargs of every emit of one event."""
    return [
        (call.args[1], call.kwargs)
        for call in manager.sio.emit.await_args_list
        if call.args[0] == event
    ]


@pytest.mark.asyncio
class TestConnect:

    async def test_rejects_missing_token(self, manager):
        assert await manager.handle_connect("sid-1", {}, None) is False
        assert await manager.handle_connect("sid-1", {}, {}) is False

    async def test_rejects_invalid_token(self, manager):
        assert await manager.handle_connect("sid-1", {}, {"token": "garbage"}) is False

    async def test_accepts_valid_session(self, manager, test_user, test_session):
        accepted = await manager.handle_connect("sid-1", {}, {"token": token_for(test_user, test_session.id)})

        assert accepted is True
        assert manager.connections["sid-1"] == test_user.id
        assert manager.is_user_online(test_user.id)
        manager.sio.enter_room.assert_awaited_once_with("sid-1", user_channel(test_user.id))
        assert emitted(manager, "user_online")[0][0]["user_id"] == test_user.id

    async def test_rejects_revoked_session(self, manager, test_user):
        accepted = await manager.handle_connect("sid-1", {}, {"token": token_for(test_user, "gone")})

        assert accepted is False
        assert "sid-1" not in manager.connections

    async def test_second_device_does_not_reannounce(self, manager, test_user):
        token = token_for(test_user)
        await manager.handle_connect("sid-1", {}, {"token": token})
        await manager.handle_connect("sid-2", {}, {"token": token})

        assert len(emitted(manager, "user_online")) == 1
        assert manager.user_sessions[test_user.id] == {"sid-1", "sid-2"}


@pytest.mark.asyncio
class TestDisconnect:

    async def test_offline_after_last_socket(self, manager, test_user):
        token = token_for(test_user)
        await manager.handle_connect("sid-1", {}, {"token": token})
        await manager.handle_connect("sid-2", {}, {"token": token})

        await manager.handle_disconnect("sid-1")
        assert emitted(manager, "user_offline") == []

        await manager.handle_disconnect("sid-2")
        offline = emitted(manager, "user_offline")
        assert offline[0][0]["user_id"] == test_user.id
        assert offline[0][0]["last_seen_at"].endswith("Z")
        assert not manager.is_user_online(test_user.id)

    async def test_last_disconnect_stores_last_seen(self, manager, db_session, test_user):
        await manager.handle_connect("sid-1", {}, {"token": token_for(test_user)})
        assert test_user.last_seen_at is None

        await manager.handle_disconnect("sid-1")

        await db_session.refresh(test_user)
        assert test_user.last_seen_at is not None
        offline = emitted(manager, "user_offline")[0][0]
        assert offline["last_seen_at"].startswith(test_user.last_seen_at.strftime("%Y-%m-%dT%H:%M:%S"))

    async def test_unknown_sid_is_ignored(self, manager):
        await manager.handle_disconnect("never-connected")

        manager.sio.emit.assert_not_awaited()


@pytest.mark.asyncio
class TestJoinRoom:

    async def test_join_marks_pending_delivered(
        self, manager, db_session, test_user, test_user_2, test_room, test_message, mock_websocket_manager
    ):
        await manager.handle_connect("sid-b", {}, {"token": token_for(test_user_2)})

        await manager.handle_join_room("sid-b", {"roomId": test_room.id})

        manager.sio.enter_room.assert_any_await("sid-b", room_channel(test_room.id))
        assert manager.chat_rooms[test_room.id] == {"sid-b"}
        assert emitted(manager, "joined_room") == [({"room_id": test_room.id}, {"to": "sid-b"})]

        state = await ReceiptRepository(db_session).get_ack_state(test_message.id)
        assert test_user_2.id in state.delivered
        status = mock_websocket_manager.send_message_status.await_args.kwargs
        assert status["sender_id"] == test_user.id
        assert status["status"] == "delivered"

    async def test_join_accepts_plain_room_id(self, manager, test_user_2, test_room):
        await manager.handle_connect("sid-b", {}, {"token": token_for(test_user_2)})

        await manager.handle_join_room("sid-b", test_room.id)

        assert "sid-b" in manager.chat_rooms[test_room.id]

    async def test_non_member_gets_error(self, manager, outsider, test_room):
        await manager.handle_connect("sid-x", {}, {"token": token_for(outsider)})

        await manager.handle_join_room("sid-x", {"roomId": test_room.id})

        assert emitted(manager, "error") == [({"message": "Not a member of this room"}, {"to": "sid-x"})]
        assert test_room.id not in manager.chat_rooms

    async def test_unauthenticated_socket(self, manager, test_room):
        await manager.handle_join_room("stranger", {"roomId": test_room.id})

        assert emitted(manager, "error")[0][0] == {"message": "Unauthorized"}

    async def test_leave_room(self, manager, test_user_2, test_room):
        await manager.handle_connect("sid-b", {}, {"token": token_for(test_user_2)})
        await manager.handle_join_room("sid-b", {"roomId": test_room.id})

        await manager.handle_leave_room("sid-b", {"roomId": test_room.id})

        manager.sio.leave_room.assert_awaited_once_with("sid-b", room_channel(test_room.id))
        assert test_room.id not in manager.chat_rooms


@pytest.mark.asyncio
class TestSocketSend:

    async def test_send_message_goes_through_service(
        self, manager, test_user, test_room, mock_websocket_manager
    ):
        await manager.handle_connect("sid-a", {}, {"token": token_for(test_user)})

        await manager.handle_send_message("sid-a", {"roomId": test_room.id, "content": "over the socket", "tempId": "t1"})

        mock_websocket_manager.broadcast_new_message.assert_awaited_once()
        payload = mock_websocket_manager.broadcast_new_message.await_args.args[1]
        assert payload["content"] == "over the socket"
        assert payload["temp_id"] == "t1"

    async def test_blank_content_is_rejected(self, manager, test_user, test_room):
        await manager.handle_connect("sid-a", {}, {"token": token_for(test_user)})

        await manager.handle_send_message("sid-a", {"roomId": test_room.id, "content": "  "})

        assert emitted(manager, "error") == [({"message": "Text messages must have content"}, {"to": "sid-a"})]

    async def test_non_member_send_is_rejected(self, manager, outsider, test_room):
        await manager.handle_connect("sid-x", {}, {"token": token_for(outsider)})

        await manager.handle_send_message("sid-x", {"roomId": test_room.id, "content": "hi"})

        assert emitted(manager, "error")[0][0] == {"message": "Not a member of this room"}


@pytest.mark.asyncio
class TestServerEvents:

    async def test_message_status_goes_to_sender_channel(self, manager):
        await manager.send_message_status("alice", "m1", "r1", "bob", "read", "2026-01-01T12:00:00Z")

        manager.sio.emit.assert_awaited_once_with(
            "message_status",
            {"message_id": "m1", "room_id": "r1", "user_id": "bob", "status": "read", "at": "2026-01-01T12:00:00Z"},
            room=user_channel("alice"),
        )

    async def test_message_deleted_payload(self, manager):
        await manager.broadcast_message_deleted("r1", "m1")

        payload = manager.sio.emit.await_args.args[1]
        assert payload == {
            "message_id": "m1",
            "room_id": "r1",
            "is_deleted_for_everyone": True,
            "content": "",
        }

    async def test_heartbeat_updates_last_seen(self, manager, db_session, test_user):
        await manager.handle_connect("sid-a", {}, {"token": token_for(test_user)})

        await manager.handle_heartbeat("sid-a")

        await db_session.refresh(test_user)
        assert test_user.last_seen_at is not None
