"""
Room service: unread counts, clearing history and per-user chat locks.
"""
import logging

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.cache import (
    cache_unread_count,
    get_cached_unread_count,
    invalidate_unread_count_cache,
)
from ephemera.core.security import hash_passcode, verify_passcode
from ephemera.models.room import RoomMember
from ephemera.repositories.receipt_repo import ReceiptRepository
from ephemera.repositories.room_repo import RoomRepository, RoomLockRepository
from ephemera.schemas.room import (
    UnreadCountResponse,
    ClearRoomResponse,
    LockedRoomsResponse,
    LockResponse,
)
from ephemera.utils.datetime_utils import utc_now, to_iso_utc
from ephemera.utils.validators import validate_passcode

logger = logging.getLogger(__name__)


class RoomService:
    """Service for room-level operations of a single member."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.room_repo = RoomRepository(db)
        self.lock_repo = RoomLockRepository(db)
        self.receipt_repo = ReceiptRepository(db)

    async def _require_member(self, room_id: str, user_id: str) -> RoomMember:
        member = await self.room_repo.get_member(room_id, user_id)
        if not member:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not a member of this room"
            )
        return member

    async def get_unread_count(self, room_id: str, user_id: str) -> UnreadCountResponse:
        """
        Unread count for the caller, served from Redis when cached.

        Counts messages from others with no read row, excluding messages
        deleted for everyone, deleted for the caller or older than the
        caller's clear point.
        """
        member = await self._require_member(room_id, user_id)

        cached = await get_cached_unread_count(user_id, room_id)
        if cached is not None:
            return UnreadCountResponse(room_id=room_id, unread_count=cached)

        count = await self.receipt_repo.count_unread(room_id, user_id, member.cleared_at)
        await cache_unread_count(user_id, room_id, count)

        return UnreadCountResponse(room_id=room_id, unread_count=count)

    async def clear_room(self, room_id: str, user_id: str) -> ClearRoomResponse:
        """Hide the current history of a room for the caller only."""
        await self._require_member(room_id, user_id)

        cleared_at = utc_now()
        await self.room_repo.set_cleared_at(room_id, user_id, cleared_at)
        await self.db.commit()

        await invalidate_unread_count_cache(user_id, room_id)

        logger.info(f"[ROOM_SERVICE] Room {room_id} cleared for {user_id}")
        return ClearRoomResponse(cleared_at=to_iso_utc(cleared_at))

    async def get_locked_rooms(self, user_id: str) -> LockedRoomsResponse:
        room_ids = await self.lock_repo.get_locked_room_ids(user_id)
        return LockedRoomsResponse(lockedRoomIds=room_ids)

    async def lock_room(self, room_id: str, user_id: str, passcode: str) -> LockResponse:
        """
        Lock a room for the caller.

        Raises:
            HTTPException: 403 non-member, 400 malformed passcode, 409 already locked
        """
        await self._require_member(room_id, user_id)
        validate_passcode(passcode)

        if await self.lock_repo.get(room_id, user_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Chat is already locked"
            )

        await self.lock_repo.create(room_id, user_id, hash_passcode(passcode))
        await self.db.commit()

        return LockResponse(room_id=room_id, locked=True)

    async def _check_passcode(self, room_id: str, user_id: str, passcode: str) -> None:
        lock = await self.lock_repo.get(room_id, user_id)
        if not lock:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Chat is not locked"
            )
        if not verify_passcode(passcode, lock.passcode_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect passcode"
            )

    async def verify_lock(self, room_id: str, user_id: str, passcode: str) -> LockResponse:
        await self._check_passcode(room_id, user_id, passcode)
        return LockResponse(room_id=room_id, locked=True)

    async def unlock_room(self, room_id: str, user_id: str, passcode: str) -> LockResponse:
        """
        Remove the caller's lock.

        Raises:
            HTTPException: 404 not locked, 401 wrong passcode
        """
        await self._check_passcode(room_id, user_id, passcode)

        await self.lock_repo.delete(room_id, user_id)
        await self.db.commit()

        return LockResponse(room_id=room_id, locked=False)
