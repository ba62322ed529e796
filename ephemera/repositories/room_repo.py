"""
Room repository for database operations.
Handles rooms, memberships, group permissions and per-user chat locks.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, delete, and_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.models.room import Room, RoomMember, GroupPermission, RoomLock, SendMode
from ephemera.repositories.base import BaseRepository


class RoomRepository(BaseRepository[Room]):
    """Repository for rooms and their memberships."""

    def __init__(self, db: AsyncSession):
        """Initialize room repository."""
        super().__init__(Room, db)

    async def get_member(self, room_id: str, user_id: str) -> Optional[RoomMember]:
        """
        Get room member record.

        Returns:
            RoomMember or None when user_id is not in the room
        """
        result = await self.db.execute(
            select(RoomMember).where(
                and_(
                    RoomMember.room_id == room_id,
                    RoomMember.user_id == user_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_members(self, room_id: str) -> List[RoomMember]:
        """Get all members of a room with their user rows loaded."""
        result = await self.db.execute(
            select(RoomMember)
            .where(RoomMember.room_id == room_id)
            .options(selectinload(RoomMember.user))
            .order_by(RoomMember.joined_at)
        )
        return list(result.scalars().all())

    async def get_send_mode(self, room_id: str) -> SendMode:
        """Group send mode; rooms without a permissions row allow everyone."""
        result = await self.db.execute(
            select(GroupPermission.send_mode).where(GroupPermission.group_id == room_id)
        )
        return result.scalar_one_or_none() or SendMode.EVERYONE

    async def unhide_for_all(self, room_id: str) -> List[str]:
        """
        Clear is_hidden for every member of the room.

        Returns:
            IDs of the members for whom the room was hidden
        """
        result = await self.db.execute(
            select(RoomMember.user_id).where(
                and_(
                    RoomMember.room_id == room_id,
                    RoomMember.is_hidden.is_(True)
                )
            )
        )
        hidden_user_ids = [row[0] for row in result.all()]
        if not hidden_user_ids:
            return []

        await self.db.execute(
            update(RoomMember)
            .where(
                and_(
                    RoomMember.room_id == room_id,
                    RoomMember.user_id.in_(hidden_user_ids)
                )
            )
            .values(is_hidden=False)
        )
        await self.db.flush()
        return hidden_user_ids

    async def set_cleared_at(self, room_id: str, user_id: str, cleared_at: datetime) -> None:
        await self.db.execute(
            update(RoomMember)
            .where(
                and_(
                    RoomMember.room_id == room_id,
                    RoomMember.user_id == user_id
                )
            )
            .values(cleared_at=cleared_at)
        )
        await self.db.flush()


class RoomLockRepository:
    """Repository for per-user chat locks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, room_id: str, user_id: str) -> Optional[RoomLock]:
        result = await self.db.execute(
            select(RoomLock).where(
                and_(
                    RoomLock.room_id == room_id,
                    RoomLock.user_id == user_id
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_locked_room_ids(self, user_id: str) -> List[str]:
        result = await self.db.execute(
            select(RoomLock.room_id)
            .where(RoomLock.user_id == user_id)
            .order_by(RoomLock.created_at)
        )
        return [row[0] for row in result.all()]

    async def create(self, room_id: str, user_id: str, passcode_hash: str) -> RoomLock:
        lock = RoomLock(room_id=room_id, user_id=user_id, passcode_hash=passcode_hash)
        self.db.add(lock)
        await self.db.flush()
        return lock

    async def delete(self, room_id: str, user_id: str) -> bool:
        result = await self.db.execute(
            delete(RoomLock).where(
                and_(
                    RoomLock.room_id == room_id,
                    RoomLock.user_id == user_id
                )
            )
        )
        await self.db.flush()
        return result.rowcount > 0
