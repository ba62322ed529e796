"""
User repository for database operations.
"""
from datetime import datetime
from typing import Dict, Sequence

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.models.user import User
from ephemera.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize user repository."""
        super().__init__(User, db)

    async def get_map(self, user_ids: Sequence[str]) -> Dict[str, User]:
        """Load several users keyed by id."""
        users = await self.get_many(list(set(user_ids)))
        return {user.id: user for user in users}

    async def touch_last_seen(self, user_id: str, seen_at: datetime) -> None:
        """Record a presence heartbeat."""
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_seen_at=seen_at)
        )
        await self.db.flush()
