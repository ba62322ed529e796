"""
Acknowledgment ledger repository.

message_deliveries and message_interactions are the only record of who
received, read, played or opened a message. Writes are INSERT ... ON
CONFLICT DO NOTHING so concurrent or repeated acknowledgments leave exactly
one row; the RETURNING clause tells the caller whether a row was actually
written.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, and_, func, exists
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.models.message import (
    Message,
    MessageDelivery,
    MessageInteraction,
    InteractionType,
)
from ephemera.models.user_deleted_message import UserDeletedMessage
from ephemera.repositories.base import BaseRepository


@dataclass
class AckState:
    """Acknowledgment views of one message, derived from the ledger."""

    delivered: Dict[str, datetime] = field(default_factory=dict)
    read: Dict[str, datetime] = field(default_factory=dict)
    played: Dict[str, datetime] = field(default_factory=dict)
    opened: Dict[str, datetime] = field(default_factory=dict)

    def for_type(self, interaction_type: InteractionType) -> Dict[str, datetime]:
        return {
            InteractionType.READ: self.read,
            InteractionType.PLAYED: self.played,
            InteractionType.OPENED: self.opened,
        }[interaction_type]


class ReceiptRepository(BaseRepository[MessageDelivery]):
    """Repository for the delivery / interaction ledger."""

    def __init__(self, db: AsyncSession):
        """Initialize receipt repository."""
        super().__init__(MessageDelivery, db)

    async def record_delivery(
        self,
        message_id: str,
        user_id: str,
        delivered_at: Optional[datetime] = None
    ) -> Optional[datetime]:
        """
        Insert a delivery row if absent.

        Args:
            message_id: Message ID
            user_id: Recipient ID
            delivered_at: Explicit timestamp (backfill); defaults to the database clock

        Returns:
            The stored timestamp when a row was inserted, None if it already existed
        """
        table = MessageDelivery.__table__
        stmt = (
            self.insert(table)
            .values(
                message_id=message_id,
                user_id=user_id,
                delivered_at=delivered_at if delivered_at is not None else func.now()
            )
            .on_conflict_do_nothing(index_elements=["message_id", "user_id"])
            .returning(table.c.delivered_at)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def record_interaction(
        self,
        message_id: str,
        user_id: str,
        interaction_type: InteractionType
    ) -> Optional[datetime]:
        """
        Insert a read / played / opened row if absent.

        Returns:
            The stored timestamp when a row was inserted, None if it already existed
        """
        table = MessageInteraction.__table__
        stmt = (
            self.insert(table)
            .values(
                message_id=message_id,
                user_id=user_id,
                interaction_type=interaction_type,
                created_at=func.now()
            )
            .on_conflict_do_nothing(index_elements=["message_id", "user_id", "interaction_type"])
            .returning(table.c.created_at)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def has_interaction(
        self,
        message_id: str,
        user_id: str,
        interaction_type: InteractionType
    ) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    and_(
                        MessageInteraction.message_id == message_id,
                        MessageInteraction.user_id == user_id,
                        MessageInteraction.interaction_type == interaction_type
                    )
                )
            )
        )
        return bool(result.scalar())

    def _room_candidates(self, room_id: str, user_id: str, cleared_at: Optional[datetime]):
        """Messages from others in a room that the user can still see."""
        deleted_for_user = select(UserDeletedMessage.message_id).where(
            UserDeletedMessage.user_id == user_id
        )
        query = select(Message.id, Message.user_id).where(
            and_(
                Message.room_id == room_id,
                Message.user_id != user_id,
                Message.is_deleted_for_everyone.is_(False),
                Message.id.notin_(deleted_for_user)
            )
        )
        if cleared_at is not None:
            query = query.where(Message.created_at > cleared_at)
        return query

    async def get_undelivered_messages(
        self,
        room_id: str,
        user_id: str,
        cleared_at: Optional[datetime] = None
    ) -> List[Tuple[str, str]]:
        """(message_id, sender_id) of visible messages from others with no delivery row for user_id."""
        delivered = select(MessageDelivery.message_id).where(MessageDelivery.user_id == user_id)
        query = (
            self._room_candidates(room_id, user_id, cleared_at)
            .where(Message.id.notin_(delivered))
            .order_by(Message.created_at, Message.id)
        )
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def get_unread_messages(
        self,
        room_id: str,
        user_id: str,
        cleared_at: Optional[datetime] = None
    ) -> List[Tuple[str, str]]:
        """(message_id, sender_id) of visible messages from others with no read row for user_id."""
        read = select(MessageInteraction.message_id).where(
            and_(
                MessageInteraction.user_id == user_id,
                MessageInteraction.interaction_type == InteractionType.READ
            )
        )
        query = (
            self._room_candidates(room_id, user_id, cleared_at)
            .where(Message.id.notin_(read))
            .order_by(Message.created_at, Message.id)
        )
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def count_unread(
        self,
        room_id: str,
        user_id: str,
        cleared_at: Optional[datetime] = None
    ) -> int:
        """Count of visible messages from others that user_id has not read."""
        read = select(MessageInteraction.message_id).where(
            and_(
                MessageInteraction.user_id == user_id,
                MessageInteraction.interaction_type == InteractionType.READ
            )
        )
        candidates = self._room_candidates(room_id, user_id, cleared_at).where(
            Message.id.notin_(read)
        ).subquery()
        result = await self.db.execute(select(func.count()).select_from(candidates))
        return result.scalar() or 0

    async def get_ack_states(self, message_ids: Sequence[str]) -> Dict[str, AckState]:
        """
        Load the ledger for a batch of messages.

        Returns:
            {message_id: AckState}; messages with no rows map to an empty state
        """
        states: Dict[str, AckState] = defaultdict(AckState)
        ids = list(message_ids)
        if not ids:
            return states

        deliveries = await self.db.execute(
            select(MessageDelivery.message_id, MessageDelivery.user_id, MessageDelivery.delivered_at)
            .where(MessageDelivery.message_id.in_(ids))
            .order_by(MessageDelivery.delivered_at)
        )
        for message_id, user_id, delivered_at in deliveries.all():
            states[message_id].delivered[user_id] = delivered_at

        interactions = await self.db.execute(
            select(
                MessageInteraction.message_id,
                MessageInteraction.user_id,
                MessageInteraction.interaction_type,
                MessageInteraction.created_at
            )
            .where(MessageInteraction.message_id.in_(ids))
            .order_by(MessageInteraction.created_at)
        )
        for message_id, user_id, interaction_type, created_at in interactions.all():
            states[message_id].for_type(interaction_type)[user_id] = created_at

        return states

    async def get_ack_state(self, message_id: str) -> AckState:
        states = await self.get_ack_states([message_id])
        return states[message_id]

    async def count_deliveries(self, message_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(MessageDelivery).where(
                MessageDelivery.message_id == message_id
            )
        )
        return result.scalar() or 0

    async def backfill_missing_deliveries(self) -> int:
        """
        Insert a delivery row for every interaction that lacks one.

        The delivery is stamped with the message's created_at. Interactions
        recorded by the sender are skipped.

        Returns:
            Number of delivery rows inserted
        """
        missing = await self.db.execute(
            select(MessageInteraction.message_id, MessageInteraction.user_id, Message.created_at)
            .join(Message, Message.id == MessageInteraction.message_id)
            .where(
                and_(
                    MessageInteraction.user_id != Message.user_id,
                    ~exists().where(
                        and_(
                            MessageDelivery.message_id == MessageInteraction.message_id,
                            MessageDelivery.user_id == MessageInteraction.user_id
                        )
                    )
                )
            )
            .distinct()
        )

        inserted = 0
        for message_id, user_id, created_at in missing.all():
            if await self.record_delivery(message_id, user_id, delivered_at=created_at) is not None:
                inserted += 1
        await self.db.flush()
        return inserted
