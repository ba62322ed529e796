"""
Session repository for linked-device management.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, delete, and_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.models.session import UserSession
from ephemera.repositories.base import BaseRepository


class SessionRepository(BaseRepository[UserSession]):
    """Repository for user sessions (one row per signed-in device)."""

    def __init__(self, db: AsyncSession):
        """Initialize session repository."""
        super().__init__(UserSession, db)

    async def get_for_user(self, session_id: str, user_id: str) -> Optional[UserSession]:
        """Get a session only if it belongs to user_id."""
        result = await self.db.execute(
            select(UserSession).where(
                and_(
                    UserSession.id == session_id,
                    UserSession.user_id == user_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> List[UserSession]:
        """All sessions of a user, most recently active first."""
        result = await self.db.execute(
            select(UserSession)
            .where(UserSession.user_id == user_id)
            .order_by(desc(UserSession.last_active_at), desc(UserSession.created_at))
        )
        return list(result.scalars().all())

    async def delete_others(self, user_id: str, keep_session_id: str) -> int:
        """
        Delete every session of user_id except keep_session_id.

        Returns:
            Number of sessions deleted
        """
        result = await self.db.execute(
            delete(UserSession).where(
                and_(
                    UserSession.user_id == user_id,
                    UserSession.id != keep_session_id
                )
            )
        )
        await self.db.flush()
        return result.rowcount or 0

    async def touch(self, session: UserSession, active_at: datetime) -> None:
        """Record activity on a session."""
        session.last_active_at = active_at
        await self.db.flush()
