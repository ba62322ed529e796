"""
WebSocket manager for real-time messaging.
Handles Socket.IO connections, room channels, presence and event broadcasting.

Two kinds of Socket.IO rooms are used:
- room:<room_id>  every socket currently viewing a chat room
- user:<user_id>  every socket of one user (all devices)
"""
import logging
from typing import Dict, Set, Optional, Any

import socketio

from ephemera.config import settings
from ephemera.core.database import AsyncSessionLocal
from ephemera.utils.datetime_utils import utc_now, to_iso_utc

logger = logging.getLogger(__name__)


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


class ConnectionManager:
    """
    WebSocket connection manager using Socket.IO.

    Handlers only announce state that has already been committed by the
    REST layer or by the services they call; emits are best-effort.
    """

    def __init__(self):
        """Initialize the connection manager."""
        cors_origins = settings.get_allowed_origins_list() or "*"

        self.sio = socketio.AsyncServer(
            async_mode='asgi',
            cors_allowed_origins=cors_origins,
            # Socket.IO logs normal packet traffic at high levels; the
            # application logger covers the events that matter.
            logger=False,
            engineio_logger=False,
            ping_timeout=settings.ws_heartbeat_interval,
            ping_interval=settings.ws_heartbeat_interval // 2,
        )

        # Session factory used by socket handlers (replaced in tests)
        self.session_factory = AsyncSessionLocal

        # Track connections: {sid: user_id}
        self.connections: Dict[str, str] = {}

        # Track user sessions: {user_id: set of sids}
        self.user_sessions: Dict[str, Set[str]] = {}

        # Track chat rooms: {room_id: set of sids}
        self.chat_rooms: Dict[str, Set[str]] = {}

        self._setup_handlers()

    def _setup_handlers(self):
        """Register Socket.IO event handlers."""
        self.sio.on('connect', self.handle_connect)
        self.sio.on('disconnect', self.handle_disconnect)
        self.sio.on('join_room', self.handle_join_room)
        self.sio.on('leave_room', self.handle_leave_room)
        self.sio.on('send_message', self.handle_send_message)
        self.sio.on('presence:heartbeat', self.handle_heartbeat)

    def is_user_online(self, user_id: str) -> bool:
        return bool(self.user_sessions.get(str(user_id)))

    async def handle_connect(self, sid, environ, auth=None):
        """
        Handle client connection.

        The client provides its JWT in the handshake as auth.token. Tokens
        whose session row has been revoked are refused.
        """
        token = auth.get('token') if isinstance(auth, dict) else None

        if not token:
            logger.warning(f"[connect] Connection rejected - no token: {sid}")
            return False

        from ephemera.core.security import decode_token, SecurityException
        from ephemera.repositories.session_repo import SessionRepository

        try:
            payload = decode_token(token)
        except SecurityException as e:
            logger.warning(f"[connect] Connection rejected - {e.detail}: {sid}")
            return False

        user_id = str(payload['id'])
        session_id = payload.get('sessionId')

        try:
            async with self.session_factory() as db:
                if session_id:
                    session = await SessionRepository(db).get_for_user(session_id, user_id)
                    if not session:
                        logger.warning(f"[connect] Connection rejected - revoked session {session_id}: {sid}")
                        return False
        except Exception as e:
            logger.error(f"[connect] Connection error: {type(e).__name__}: {e}", exc_info=True)
            return False

        self.connections[sid] = user_id
        first_connection = not self.user_sessions.get(user_id)
        self.user_sessions.setdefault(user_id, set()).add(sid)

        await self.sio.enter_room(sid, user_channel(user_id))
        logger.info(f"[connect] Client connected: {sid} (user: {user_id})")

        if first_connection:
            from ephemera.core.cache import set_user_presence

            await set_user_presence(user_id, 'online')
            await self.sio.emit('user_online', {
                'user_id': user_id,
                'timestamp': to_iso_utc(utc_now())
            }, skip_sid=sid)

        return True

    async def handle_disconnect(self, sid, *args):
        """Handle client disconnection."""
        user_id = self.connections.pop(sid, None)

        for room_id, sids in list(self.chat_rooms.items()):
            sids.discard(sid)
            if not sids:
                del self.chat_rooms[room_id]

        if not user_id:
            return

        sids = self.user_sessions.get(user_id)
        if sids is not None:
            sids.discard(sid)
            if not sids:
                del self.user_sessions[user_id]

                # User fully disconnected (no more sessions)
                from ephemera.core.cache import set_user_presence
                from ephemera.repositories.user_repo import UserRepository

                now = utc_now()
                last_seen = to_iso_utc(now)
                await set_user_presence(user_id, 'offline', last_seen)

                try:
                    async with self.session_factory() as db:
                        await UserRepository(db).touch_last_seen(user_id, now)
                        await db.commit()
                except Exception as e:
                    logger.error(f"[disconnect] Failed to update last_seen_at for {user_id}: {e}")

                await self.sio.emit('user_offline', {
                    'user_id': user_id,
                    'last_seen_at': last_seen
                })

        logger.info(f"[disconnect] Client disconnected: {sid} (user: {user_id})")

    async def handle_join_room(self, sid, data):
        """
        Join a chat room.

        Accepts either the room id or {'roomId': id}. Joining marks every
        pending message of the room as delivered to the user.
        """
        room_id = data.get('roomId') if isinstance(data, dict) else data
        user_id = self.connections.get(sid)

        if not user_id:
            await self.sio.emit('error', {'message': 'Unauthorized'}, to=sid)
            return

        if not room_id:
            await self.sio.emit('error', {'message': 'roomId is required'}, to=sid)
            return

        room_id = str(room_id)

        from ephemera.repositories.room_repo import RoomRepository
        from ephemera.services.receipt_service import ReceiptService

        try:
            async with self.session_factory() as db:
                member = await RoomRepository(db).get_member(room_id, user_id)
                if not member:
                    logger.warning(f"[join_room] User {user_id} not a member of room {room_id}")
                    await self.sio.emit('error', {'message': 'Not a member of this room'}, to=sid)
                    return

                await self.sio.enter_room(sid, room_channel(room_id))
                self.chat_rooms.setdefault(room_id, set()).add(sid)

                try:
                    result = await ReceiptService(db).mark_room_delivered(room_id, user_id)
                    if result.updated_count:
                        logger.info(f"[join_room] Auto-marked {result.updated_count} messages as delivered")
                except Exception as delivery_error:
                    # Joining still succeeds when delivery marking fails
                    logger.error(f"[join_room] Failed to auto-mark delivered: {delivery_error}", exc_info=True)

            await self.sio.emit('joined_room', {'room_id': room_id}, to=sid)

        except Exception as e:
            logger.error(f"[join_room] Error joining room {room_id}: {e}", exc_info=True)
            await self.sio.emit('error', {'message': 'Failed to join room'}, to=sid)

    async def handle_leave_room(self, sid, data):
        """Leave a chat room."""
        room_id = data.get('roomId') if isinstance(data, dict) else data
        if not room_id:
            return

        room_id = str(room_id)
        await self.sio.leave_room(sid, room_channel(room_id))

        if room_id in self.chat_rooms:
            self.chat_rooms[room_id].discard(sid)
            if not self.chat_rooms[room_id]:
                del self.chat_rooms[room_id]

    async def handle_send_message(self, sid, data):
        """
        Send a text message over the socket.

        Expected data: {'roomId', 'content', 'tempId', 'replyToMessageId'}
        Goes through the same checks and broadcasts as POST /api/messages.
        """
        user_id = self.connections.get(sid)
        if not user_id:
            await self.sio.emit('error', {'message': 'Unauthorized'}, to=sid)
            return

        if not isinstance(data, dict) or not data.get('roomId'):
            await self.sio.emit('error', {'message': 'roomId is required'}, to=sid)
            return

        from fastapi import HTTPException
        from pydantic import ValidationError
        from ephemera.models.message import MessageType
        from ephemera.schemas.message import MessageCreate
        from ephemera.services.message_service import MessageService

        try:
            payload = MessageCreate(
                room_id=str(data['roomId']),
                type=MessageType.TEXT,
                content=data.get('content'),
                temp_id=data.get('tempId'),
                reply_to_message_id=data.get('replyToMessageId'),
            )
            async with self.session_factory() as db:
                await MessageService(db).send_message(user_id, payload)
        except ValidationError:
            await self.sio.emit('error', {'message': 'Text messages must have content'}, to=sid)
        except HTTPException as e:
            await self.sio.emit('error', {'message': e.detail}, to=sid)
        except Exception as e:
            logger.error(f"[send_message] Failed for user {user_id}: {e}", exc_info=True)
            await self.sio.emit('error', {'message': 'Failed to send message'}, to=sid)

    async def handle_heartbeat(self, sid, data=None):
        """Refresh presence for the connected user."""
        user_id = self.connections.get(sid)
        if not user_id:
            return

        from ephemera.core.cache import set_user_presence
        from ephemera.repositories.user_repo import UserRepository

        now = utc_now()
        await set_user_presence(user_id, 'online', to_iso_utc(now))

        try:
            async with self.session_factory() as db:
                await UserRepository(db).touch_last_seen(user_id, now)
                await db.commit()
        except Exception as e:
            logger.error(f"[presence:heartbeat] Failed to update last_seen_at for {user_id}: {e}")

    async def broadcast_new_message(self, room_id: str, message_data: Dict[str, Any]):
        """Broadcast a new message to everyone viewing the room (sender included)."""
        logger.info(f"[broadcast_new_message] Message {message_data.get('id')} -> {room_channel(room_id)}")
        await self.sio.emit('new_message', message_data, room=room_channel(room_id))

    async def broadcast_message_edited(self, room_id: str, payload: Dict[str, Any]):
        """
        Broadcast message edit.

        Payload: {id, room_id, content, edited_at, edit_version}
        """
        await self.sio.emit('message_edited', payload, room=room_channel(room_id))

    async def broadcast_message_deleted(self, room_id: str, message_id: str):
        """Broadcast delete-for-everyone tombstone."""
        await self.sio.emit('message_deleted', {
            'message_id': str(message_id),
            'room_id': str(room_id),
            'is_deleted_for_everyone': True,
            'content': ''
        }, room=room_channel(room_id))

    async def send_message_status(
        self,
        sender_id: str,
        message_id: str,
        room_id: str,
        user_id: str,
        status: str,
        at: Optional[str] = None
    ):
        """
        Notify a message's sender that a recipient acknowledged it.

        Args:
            sender_id: Message author (receives the event on all devices)
            message_id: Acknowledged message
            room_id: Room of the message
            user_id: Recipient who acknowledged
            status: delivered, read, played or viewed
            at: ISO timestamp of the ledger row
        """
        await self.sio.emit('message_status', {
            'message_id': str(message_id),
            'room_id': str(room_id),
            'user_id': str(user_id),
            'status': status,
            'at': at
        }, room=user_channel(sender_id))

    async def send_room_updated(self, user_id: str, room_data: Dict[str, Any]):
        """Tell one user that a room changed (e.g. reappeared in their list)."""
        await self.sio.emit('room:updated', room_data, room=user_channel(user_id))

    async def send_session_revoked(self, user_id: str, session_id: str):
        await self.sio.emit('session:revoked', {'sessionId': str(session_id)}, room=user_channel(user_id))

    async def send_sessions_revoked_others(self, user_id: str, current_session_id: str):
        await self.sio.emit(
            'session:revoked-others',
            {'currentSessionId': str(current_session_id)},
            room=user_channel(user_id)
        )

    def get_asgi_app(self, fastapi_app):
        """
        Get the ASGI app for Socket.IO wrapping FastAPI.

        Socket.IO wraps FastAPI, not the other way around; clients connect
        to /socket.io/ and every other path falls through to FastAPI.
        """
        return socketio.ASGIApp(self.sio, fastapi_app)


# Global connection manager instance
connection_manager = ConnectionManager()
