"""
Message service containing business logic for messaging operations.
Handles sending, editing, deleting, view-once gating and message info.
"""
import logging
from typing import Dict, List, Optional

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.cache import invalidate_unread_count_cache
from ephemera.core.websocket import connection_manager
from ephemera.models.message import Message, MessageType, ReceiptStatus
from ephemera.models.room import RoomMember, RoomType, SendMode, MemberRole
from ephemera.models.user import User
from ephemera.repositories.message_repo import MessageRepository
from ephemera.repositories.receipt_repo import ReceiptRepository, AckState
from ephemera.repositories.room_repo import RoomRepository
from ephemera.repositories.user_repo import UserRepository
from ephemera.schemas.message import (
    MessageCreate,
    MessageResponse,
    MessageListResponse,
    MessageInfoResponse,
    InteractionGroups,
    ReceiptEntry,
    SenderInfo,
    SuccessResponse,
)
from ephemera.services.receipt_service import ReceiptService
from ephemera.services.storage_service import storage_service
from ephemera.utils.datetime_utils import utc_now, to_iso_utc, is_past
from ephemera.utils.helpers import parse_waveform

logger = logging.getLogger(__name__)

MEDIA_FIELDS = (
    "media_url",
    "preview_url",
    "width",
    "height",
    "caption",
    "file_name",
    "file_size",
    "mime_type",
    "audio_url",
    "audio_duration_ms",
    "audio_waveform",
)


def _iso_map(entries: Dict[str, object]) -> Dict[str, str]:
    return {user_id: to_iso_utc(at) for user_id, at in entries.items()}


def build_message_response(
    message: Message,
    viewer_id: Optional[str],
    ack: Optional[AckState] = None,
    temp_id: Optional[str] = None,
    reveal_media: bool = False
) -> MessageResponse:
    """
    Render a message for one viewer.

    Args:
        message: Message row
        viewer_id: User the payload is for; None renders the recipient view
            used for room broadcasts
        ack: Ledger state of the message
        temp_id: Client id echoed back on send
        reveal_media: Include view-once media for a recipient (the single
            response of POST /messages/{id}/view)
    """
    ack = ack or AckState()
    response = MessageResponse.model_validate(message)
    response.temp_id = temp_id
    response.is_edited = message.edited_at is not None

    if message.sender is not None:
        response.sender = SenderInfo(
            id=message.sender.id,
            username=message.sender.username,
            display_name=message.sender.display_name,
            avatar_url=message.sender.avatar_thumb_url or message.sender.avatar_url,
        )

    response.delivered_to = list(ack.delivered)
    response.read_by = list(ack.read)
    response.viewed_by = list(ack.opened)
    response.played_by = list(ack.played)
    response.delivered_at = _iso_map(ack.delivered)
    response.read_at = _iso_map(ack.read)
    response.viewed_at = _iso_map(ack.opened)
    response.played_at = _iso_map(ack.played)

    if message.is_deleted_for_everyone:
        response.content = ""
        for field_name in MEDIA_FIELDS:
            setattr(response, field_name, None)
        return response

    if message.is_view_once and viewer_id != message.user_id:
        opened = viewer_id is not None and viewer_id in ack.opened
        response.view_once_state = "opened" if opened else "unopened"
        if not reveal_media:
            for field_name in MEDIA_FIELDS:
                setattr(response, field_name, None)

    return response


class MessageService:
    """Service for message operations with business logic."""

    def __init__(self, db: AsyncSession):
        """
        Initialize message service.

        Args:
            db: Database session
        """
        self.db = db
        self.message_repo = MessageRepository(db)
        self.receipt_repo = ReceiptRepository(db)
        self.room_repo = RoomRepository(db)
        self.user_repo = UserRepository(db)
        self.receipts = ReceiptService(db)
        self.storage = storage_service
        self.ws_manager = connection_manager

    async def _require_member(self, room_id: str, user_id: str) -> RoomMember:
        member = await self.room_repo.get_member(room_id, user_id)
        if not member:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not a member of this room"
            )
        return member

    async def _get_message_or_404(self, message_id: str) -> Message:
        message = await self.message_repo.get(message_id)
        if not message:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Message not found"
            )
        return message

    async def _check_can_send(self, room_id: str, user_id: str) -> RoomMember:
        """
        Membership, group send mode and room expiry checks shared by every send path.

        Raises:
            HTTPException: 404 unknown room, 403 not allowed to post, 400 expired room
        """
        room = await self.room_repo.get(room_id)
        if not room:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Room not found"
            )

        member = await self._require_member(room_id, user_id)

        if room.type == RoomType.GROUP:
            send_mode = await self.room_repo.get_send_mode(room_id)
            if send_mode == SendMode.ADMINS_ONLY and member.role not in (MemberRole.ADMIN, MemberRole.OWNER):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Only admins can send messages"
                )
            if send_mode == SendMode.OWNER_ONLY and member.role != MemberRole.OWNER:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Only owner can send messages"
                )

        if is_past(room.expires_at):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Room expired"
            )

        return member

    async def _check_reply_target(self, room_id: str, reply_to_message_id: Optional[str]) -> None:
        if not reply_to_message_id:
            return
        parent = await self.message_repo.get(reply_to_message_id)
        if not parent:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Parent message not found"
            )
        if parent.room_id != room_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent message is from a different room"
            )

    async def _publish_new_message(self, message: Message, temp_id: Optional[str]) -> MessageResponse:
        """
        Unhide the room for everyone, commit, then broadcast.

        Returns:
            The sender's view of the new message
        """
        unhidden_user_ids = await self.room_repo.unhide_for_all(message.room_id)
        await self.db.commit()

        members = await self.room_repo.get_members(message.room_id)
        for member in members:
            if member.user_id != message.user_id:
                await invalidate_unread_count_cache(member.user_id, message.room_id)

        # Recipient view: view-once media never goes out on the room channel
        broadcast = build_message_response(message, None, temp_id=temp_id)

        try:
            await self.ws_manager.broadcast_new_message(
                message.room_id,
                broadcast.model_dump(mode="json")
            )
            for user_id in unhidden_user_ids:
                await self.ws_manager.send_room_updated(user_id, {
                    "room_id": message.room_id,
                    "is_hidden": False
                })
        except Exception as broadcast_error:
            # The message is committed; a failed broadcast must not fail the send
            logger.error(
                f"[MESSAGE_SERVICE] Broadcast failed for {message.id}: "
                f"{type(broadcast_error).__name__}: {broadcast_error}"
            )

        return build_message_response(message, message.user_id, temp_id=temp_id)

    async def send_message(self, sender_id: str, payload: MessageCreate) -> MessageResponse:
        """
        Send a new message.

        Args:
            sender_id: Sender user ID
            payload: Validated request body

        Returns:
            The created message as seen by the sender (temp_id echoed)

        Raises:
            HTTPException: 403/404/400 from the send checks, 400 if view-once
                is requested for anything but an image
        """
        await self._check_can_send(payload.room_id, sender_id)

        if payload.is_view_once and payload.type != MessageType.IMAGE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only images can be sent as view once"
            )

        await self._check_reply_target(payload.room_id, payload.reply_to_message_id)

        message = await self.message_repo.create(
            room_id=payload.room_id,
            user_id=sender_id,
            type=payload.type,
            content=payload.content,
            media_url=payload.media_url,
            preview_url=payload.preview_url,
            width=payload.width,
            height=payload.height,
            caption=payload.caption,
            file_name=payload.file_name,
            file_size=payload.file_size,
            mime_type=payload.mime_type,
            is_view_once=payload.is_view_once,
            reply_to_message_id=payload.reply_to_message_id,
        )
        logger.info(f"[MESSAGE_SERVICE] Message {message.id} ({message.type.value}) created in room {message.room_id}")

        return await self._publish_new_message(message, payload.temp_id)

    async def send_voice_note(
        self,
        sender_id: str,
        room_id: str,
        audio: Optional[UploadFile],
        duration_ms: Optional[int] = None,
        waveform: Optional[str] = None,
        reply_to_message_id: Optional[str] = None,
        temp_id: Optional[str] = None
    ) -> MessageResponse:
        """
        Store an uploaded voice note and send it as an audio message.

        The waveform arrives as a JSON string; anything unparsable becomes [].
        """
        if audio is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No audio file provided"
            )

        await self._check_can_send(room_id, sender_id)
        await self._check_reply_target(room_id, reply_to_message_id)

        stored = await self.storage.save_voice_note(audio, room_id, sender_id)

        message = await self.message_repo.create(
            room_id=room_id,
            user_id=sender_id,
            type=MessageType.AUDIO,
            content="Voice message",
            audio_url=stored.url,
            audio_duration_ms=duration_ms,
            audio_waveform=parse_waveform(waveform),
            mime_type=stored.mime,
            file_size=stored.size,
            reply_to_message_id=reply_to_message_id,
        )
        logger.info(f"[MESSAGE_SERVICE] Voice note {message.id} stored at {stored.key}")

        return await self._publish_new_message(message, temp_id)

    async def edit_message(self, message_id: str, user_id: str, new_content: str) -> MessageResponse:
        """
        Edit a text message.

        Raises:
            HTTPException: 404 not found, 403 not the sender,
                400 not a text message or deleted for everyone
        """
        message = await self._get_message_or_404(message_id)

        if message.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to edit this message"
            )

        if message.type != MessageType.TEXT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only text messages can be edited"
            )

        if message.is_deleted_for_everyone:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot edit deleted message"
            )

        message.content = new_content
        message.edited_at = utc_now()
        message.edit_version = (message.edit_version or 0) + 1
        await self.db.commit()

        ack = await self.receipt_repo.get_ack_state(message.id)

        try:
            await self.ws_manager.broadcast_message_edited(message.room_id, {
                "id": message.id,
                "room_id": message.room_id,
                "content": message.content,
                "edited_at": to_iso_utc(message.edited_at),
                "edit_version": message.edit_version,
            })
        except Exception as e:
            logger.error(f"[MESSAGE_SERVICE] message_edited broadcast failed for {message.id}: {e}")

        return build_message_response(message, user_id, ack)

    async def delete_for_me(self, message_id: str, user_id: str) -> SuccessResponse:
        """Hide a message for the caller only (idempotent)."""
        message = await self._get_message_or_404(message_id)
        await self._require_member(message.room_id, user_id)

        await self.message_repo.delete_for_user(message.id, user_id)
        await self.db.commit()
        await invalidate_unread_count_cache(user_id, message.room_id)

        return SuccessResponse()

    async def delete_for_everyone(self, message_id: str, user_id: str) -> SuccessResponse:
        """
        Replace a message with a tombstone for every member.

        Raises:
            HTTPException: 404 not found, 403 not the sender
        """
        message = await self._get_message_or_404(message_id)

        if message.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to delete this message"
            )

        if message.is_deleted_for_everyone:
            return SuccessResponse()

        message.is_deleted_for_everyone = True
        await self.db.commit()

        members = await self.room_repo.get_members(message.room_id)
        for member in members:
            await invalidate_unread_count_cache(member.user_id, message.room_id)

        try:
            await self.ws_manager.broadcast_message_deleted(message.room_id, message.id)
        except Exception as e:
            logger.error(f"[MESSAGE_SERVICE] message_deleted broadcast failed for {message.id}: {e}")

        return SuccessResponse()

    async def get_message(self, message_id: str, user_id: str) -> MessageResponse:
        """
        Get one message as the caller sees it.

        Messages deleted for the caller are reported as not found.
        """
        message = await self._get_message_or_404(message_id)
        await self._require_member(message.room_id, user_id)

        if await self.message_repo.is_deleted_for_user(message.id, user_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Message not found"
            )

        ack = await self.receipt_repo.get_ack_state(message.id)
        return build_message_response(message, user_id, ack)

    async def view_message(self, message_id: str, user_id: str) -> MessageResponse:
        """
        Open a view-once message.

        The first call by a recipient records the opened interaction (and
        delivery) and is the only response that carries the media. Later
        calls return the opened placeholder. The sender always gets media.

        Raises:
            HTTPException: 404 not found / deleted for caller, 403 non-member,
                400 deleted for everyone or not a view-once message
        """
        message = await self._get_message_or_404(message_id)
        await self._require_member(message.room_id, user_id)

        if await self.message_repo.is_deleted_for_user(message.id, user_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Message not found"
            )

        if message.is_deleted_for_everyone:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message was deleted"
            )

        if not message.is_view_once:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message is not view once"
            )

        if message.user_id == user_id:
            ack = await self.receipt_repo.get_ack_state(message.id)
            return build_message_response(message, user_id, ack)

        events = await self.receipts.record(message, user_id, ReceiptStatus.VIEWED)
        first_view = any(e.status == ReceiptStatus.VIEWED for e in events)
        await self.db.commit()

        await self.receipts.announce(events)

        ack = await self.receipt_repo.get_ack_state(message.id)
        if first_view:
            logger.info(f"[MESSAGE_SERVICE] View-once message {message.id} opened by {user_id}")
        return build_message_response(message, user_id, ack, reveal_media=first_view)

    async def get_message_info(self, message_id: str, user_id: str) -> MessageInfoResponse:
        """
        Per-recipient receipt breakdown for the sender.

        Raises:
            HTTPException: 404 not found, 403 caller is not the sender
        """
        message = await self._get_message_or_404(message_id)

        if message.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the sender can view message info"
            )

        ack = await self.receipt_repo.get_ack_state(message.id)
        members = await self.room_repo.get_members(message.room_id)

        known_ids = set(ack.delivered) | set(ack.read) | set(ack.played) | set(ack.opened)
        users: Dict[str, User] = {m.user_id: m.user for m in members if m.user is not None}
        missing = [uid for uid in known_ids if uid not in users]
        if missing:
            users.update(await self.user_repo.get_map(missing))

        def entries(marks: Dict[str, object]) -> List[ReceiptEntry]:
            result = []
            for uid, at in marks.items():
                user = users.get(uid)
                result.append(ReceiptEntry(
                    userId=uid,
                    name=user.name if user else "Unknown",
                    avatar=(user.avatar_thumb_url or user.avatar_url) if user else None,
                    at=to_iso_utc(at),
                ))
            return result

        pending = [
            ReceiptEntry(
                userId=m.user_id,
                name=m.user.name if m.user else "Unknown",
                avatar=(m.user.avatar_thumb_url or m.user.avatar_url) if m.user else None,
            )
            for m in members
            if m.user_id != message.user_id and m.user_id not in ack.delivered
        ]

        return MessageInfoResponse(
            message=build_message_response(message, user_id, ack),
            delivered=entries(ack.delivered),
            pending=pending,
            interactions=InteractionGroups(
                read=entries(ack.read),
                played=entries(ack.played),
                opened=entries(ack.opened),
            ),
        )

    async def get_room_messages(
        self,
        room_id: str,
        user_id: str,
        limit: int = 50,
        before: Optional[str] = None
    ) -> MessageListResponse:
        """
        Room history for the caller, newest page first, ascending within the page.

        Messages deleted for the caller and messages before the caller's
        clear point are excluded; view-once media is gated per message.
        """
        member = await self._require_member(room_id, user_id)

        messages, next_cursor, has_more = await self.message_repo.get_room_history(
            room_id,
            user_id,
            limit=limit,
            before=before,
            cleared_at=member.cleared_at
        )

        states = await self.receipt_repo.get_ack_states([m.id for m in messages])

        return MessageListResponse(
            messages=[build_message_response(m, user_id, states[m.id]) for m in messages],
            has_more=has_more,
            next_cursor=next_cursor,
        )
