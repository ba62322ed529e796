"""
Receipt service: delivered / read / played / viewed acknowledgments.

Every acknowledgment is written to the ledger first and committed; only
then is the sender told about it through a message_status event on their
user channel. Duplicate acknowledgments write nothing and announce nothing.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.cache import invalidate_unread_count_cache
from ephemera.core.websocket import connection_manager
from ephemera.models.message import Message, MessageType, InteractionType, ReceiptStatus
from ephemera.repositories.message_repo import MessageRepository
from ephemera.repositories.receipt_repo import ReceiptRepository
from ephemera.repositories.room_repo import RoomRepository
from ephemera.schemas.message import AcknowledgmentResponse, BulkAcknowledgmentResponse
from ephemera.utils.datetime_utils import to_iso_utc

logger = logging.getLogger(__name__)

INTERACTION_FOR_STATUS = {
    ReceiptStatus.READ: InteractionType.READ,
    ReceiptStatus.PLAYED: InteractionType.PLAYED,
    ReceiptStatus.VIEWED: InteractionType.OPENED,
}


@dataclass
class StatusEvent:
    """A ledger row that was just inserted and must be announced."""

    message_id: str
    room_id: str
    sender_id: str
    user_id: str
    status: ReceiptStatus
    at: Optional[datetime]


class ReceiptService:
    """Service for recording and announcing message acknowledgments."""

    def __init__(self, db: AsyncSession):
        """
        Initialize receipt service.

        Args:
            db: Database session
        """
        self.db = db
        self.receipt_repo = ReceiptRepository(db)
        self.message_repo = MessageRepository(db)
        self.room_repo = RoomRepository(db)
        self.ws_manager = connection_manager

    async def _load_for_ack(self, message_id: str, user_id: str) -> Message:
        message = await self.message_repo.get(message_id)
        if not message:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Message not found"
            )

        if not await self.room_repo.get_member(message.room_id, user_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not a member of this room"
            )

        if message.is_deleted_for_everyone:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message was deleted"
            )

        return message

    async def record(
        self,
        message: Message,
        user_id: str,
        receipt_status: ReceiptStatus
    ) -> List[StatusEvent]:
        """
        Write the ledger rows for one acknowledgment (no commit).

        Read, played and viewed also record delivery when it is missing.
        The sender acknowledging their own message records nothing.

        Returns:
            One StatusEvent per inserted row
        """
        if message.user_id == user_id:
            return []

        events: List[StatusEvent] = []

        delivered_at = await self.receipt_repo.record_delivery(message.id, user_id)
        if delivered_at is not None:
            events.append(StatusEvent(
                message.id, message.room_id, message.user_id, user_id,
                ReceiptStatus.DELIVERED, delivered_at
            ))

        interaction_type = INTERACTION_FOR_STATUS.get(receipt_status)
        if interaction_type is not None:
            created_at = await self.receipt_repo.record_interaction(message.id, user_id, interaction_type)
            if created_at is not None:
                events.append(StatusEvent(
                    message.id, message.room_id, message.user_id, user_id,
                    receipt_status, created_at
                ))

        return events

    async def announce(self, events: List[StatusEvent]) -> None:
        """Emit message_status to each sender; failures are logged only."""
        for event in events:
            try:
                await self.ws_manager.send_message_status(
                    sender_id=event.sender_id,
                    message_id=event.message_id,
                    room_id=event.room_id,
                    user_id=event.user_id,
                    status=event.status.value,
                    at=to_iso_utc(event.at)
                )
            except Exception as e:
                logger.error(f"[RECEIPTS] Failed to emit message_status for {event.message_id}: {e}")

    async def acknowledge(
        self,
        message_id: str,
        user_id: str,
        receipt_status: ReceiptStatus
    ) -> AcknowledgmentResponse:
        """
        Acknowledge a single message.

        Raises:
            HTTPException: 404 unknown message, 403 non-member,
                400 deleted for everyone or played on a non-audio message
        """
        message = await self._load_for_ack(message_id, user_id)

        if receipt_status == ReceiptStatus.PLAYED and message.type != MessageType.AUDIO:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only voice messages can be marked as heard"
            )

        events = await self.record(message, user_id, receipt_status)
        await self.db.commit()

        if any(e.status == ReceiptStatus.READ for e in events):
            await invalidate_unread_count_cache(user_id, message.room_id)

        await self.announce(events)

        return AcknowledgmentResponse(
            message_id=message.id,
            status=receipt_status,
            recorded=bool(events)
        )

    async def _require_membership(self, room_id: str, user_id: str):
        member = await self.room_repo.get_member(room_id, user_id)
        if not member:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not a member of this room"
            )
        return member

    async def mark_room_delivered(self, room_id: str, user_id: str) -> BulkAcknowledgmentResponse:
        """
        Mark every pending message of a room as delivered to user_id.

        Called when the user joins the room's socket channel and from
        POST /api/rooms/{room_id}/delivered.

        Returns:
            updated_count is the number of delivery rows inserted
        """
        member = await self._require_membership(room_id, user_id)

        pending = await self.receipt_repo.get_undelivered_messages(room_id, user_id, member.cleared_at)

        events: List[StatusEvent] = []
        for message_id, sender_id in pending:
            delivered_at = await self.receipt_repo.record_delivery(message_id, user_id)
            if delivered_at is not None:
                events.append(StatusEvent(
                    message_id, room_id, sender_id, user_id,
                    ReceiptStatus.DELIVERED, delivered_at
                ))

        await self.db.commit()
        await self.announce(events)

        if events:
            logger.info(f"[RECEIPTS] {len(events)} messages delivered to {user_id} in room {room_id}")

        return BulkAcknowledgmentResponse(updated_count=len(events))

    async def mark_room_read(self, room_id: str, user_id: str) -> BulkAcknowledgmentResponse:
        """
        Mark every unread message of a room as read by user_id ("opened the chat").

        Missing deliveries are recorded along the way.

        Returns:
            updated_count is the number of read rows inserted
        """
        member = await self._require_membership(room_id, user_id)

        unread = await self.receipt_repo.get_unread_messages(room_id, user_id, member.cleared_at)

        events: List[StatusEvent] = []
        read_count = 0
        for message_id, sender_id in unread:
            delivered_at = await self.receipt_repo.record_delivery(message_id, user_id)
            if delivered_at is not None:
                events.append(StatusEvent(
                    message_id, room_id, sender_id, user_id,
                    ReceiptStatus.DELIVERED, delivered_at
                ))

            read_at = await self.receipt_repo.record_interaction(message_id, user_id, InteractionType.READ)
            if read_at is not None:
                read_count += 1
                events.append(StatusEvent(
                    message_id, room_id, sender_id, user_id,
                    ReceiptStatus.READ, read_at
                ))

        await self.db.commit()
        await invalidate_unread_count_cache(user_id, room_id)
        await self.announce(events)

        return BulkAcknowledgmentResponse(updated_count=read_count)
