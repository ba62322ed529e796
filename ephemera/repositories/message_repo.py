"""
Message repository for database operations.
Handles message lookup, per-user visibility and room history pagination.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, and_, or_, desc, exists
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.models.message import Message
from ephemera.models.user_deleted_message import UserDeletedMessage
from ephemera.repositories.base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Repository for message database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize message repository."""
        super().__init__(Message, db)

    async def is_deleted_for_user(self, message_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            select(
                exists().where(
                    and_(
                        UserDeletedMessage.message_id == message_id,
                        UserDeletedMessage.user_id == user_id
                    )
                )
            )
        )
        return bool(result.scalar())

    async def delete_for_user(self, message_id: str, user_id: str) -> bool:
        """
        Hide a message for one user.

        Returns:
            True if newly hidden, False if it was already hidden
        """
        table = UserDeletedMessage.__table__
        stmt = (
            self.insert(table)
            .values(message_id=message_id, user_id=user_id)
            .on_conflict_do_nothing(index_elements=["user_id", "message_id"])
            .returning(table.c.message_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_room_history(
        self,
        room_id: str,
        user_id: str,
        limit: int = 50,
        before: Optional[str] = None,
        cleared_at: Optional[datetime] = None
    ) -> Tuple[List[Message], Optional[str], bool]:
        """
        Get one page of a room's history as seen by user_id.

        Messages deleted for the user and messages older than the user's
        cleared_at are excluded. Tombstones (deleted for everyone) are kept.

        Args:
            room_id: Room ID
            user_id: Viewer ID
            limit: Page size
            before: Message ID cursor; only older messages are returned.
                An id outside the room yields an empty final page
            cleared_at: Viewer's clear-history point

        Returns:
            Tuple of (messages in ascending order, next_cursor, has_more)
        """
        deleted_for_user = select(UserDeletedMessage.message_id).where(
            UserDeletedMessage.user_id == user_id
        )

        query = select(Message).where(
            and_(
                Message.room_id == room_id,
                Message.id.notin_(deleted_for_user)
            )
        )

        if cleared_at is not None:
            query = query.where(Message.created_at > cleared_at)

        if before:
            cursor_msg = await self.get(before)
            if not cursor_msg or cursor_msg.room_id != room_id:
                # Unknown cursor: nothing older to return
                return [], None, False

            # created_at plus id keeps pagination stable for identical timestamps
            query = query.where(
                or_(
                    Message.created_at < cursor_msg.created_at,
                    and_(
                        Message.created_at == cursor_msg.created_at,
                        Message.id < cursor_msg.id
                    )
                )
            )

        query = query.order_by(desc(Message.created_at), desc(Message.id)).limit(limit + 1)

        result = await self.db.execute(query)
        messages = list(result.unique().scalars().all())

        has_more = len(messages) > limit
        if has_more:
            messages = messages[:limit]

        # Oldest message of this page is the cursor for the next (older) page
        next_cursor = messages[-1].id if messages and has_more else None

        messages.reverse()
        return messages, next_cursor, has_more
