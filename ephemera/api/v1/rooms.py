"""
Room API routes.
Provides room history, bulk acknowledgments, unread counts, clearing and chat locks.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.database import get_db
from ephemera.dependencies import get_current_user, get_pagination_params
from ephemera.schemas.message import MessageListResponse, BulkAcknowledgmentResponse
from ephemera.schemas.room import (
    UnreadCountResponse,
    ClearRoomResponse,
    PasscodeRequest,
    LockedRoomsResponse,
    LockResponse,
)
from ephemera.services.message_service import MessageService
from ephemera.services.receipt_service import ReceiptService
from ephemera.services.room_service import RoomService

router = APIRouter()


# Declared before the /{room_id} routes so "locks" is not read as a room id
@router.get(
    "/locks/all",
    response_model=LockedRoomsResponse,
    summary="List locked rooms"
)
async def get_locked_rooms(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = RoomService(db)
    return await service.get_locked_rooms(current_user["id"])


@router.get(
    "/{room_id}/messages",
    response_model=MessageListResponse,
    summary="Get room history",
    description="One page of history, newest page first, ascending within the page."
)
async def get_room_messages(
    room_id: str,
    pagination: dict = Depends(get_pagination_params),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get messages of a room.

    - **limit**: Page size (1-100, default 50)
    - **before**: Message ID cursor; pass next_cursor to load older messages
    """
    service = MessageService(db)
    return await service.get_room_messages(
        room_id,
        current_user["id"],
        limit=pagination["limit"],
        before=pagination["before"]
    )


@router.post(
    "/{room_id}/delivered",
    response_model=BulkAcknowledgmentResponse,
    summary="Mark all pending messages delivered"
)
async def mark_room_delivered(
    room_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ReceiptService(db)
    return await service.mark_room_delivered(room_id, current_user["id"])


@router.post(
    "/{room_id}/read",
    response_model=BulkAcknowledgmentResponse,
    summary="Mark all messages read"
)
async def mark_room_read(
    room_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark every unread message from others as read (the user opened the chat)."""
    service = ReceiptService(db)
    return await service.mark_room_read(room_id, current_user["id"])


@router.get(
    "/{room_id}/unread-count",
    response_model=UnreadCountResponse,
    summary="Unread message count"
)
async def get_unread_count(
    room_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = RoomService(db)
    return await service.get_unread_count(room_id, current_user["id"])


@router.post(
    "/{room_id}/clear",
    response_model=ClearRoomResponse,
    summary="Clear chat history for me"
)
async def clear_room(
    room_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = RoomService(db)
    return await service.clear_room(room_id, current_user["id"])


@router.post(
    "/{room_id}/lock",
    response_model=LockResponse,
    summary="Lock a chat with a passcode"
)
async def lock_room(
    room_id: str,
    body: PasscodeRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = RoomService(db)
    return await service.lock_room(room_id, current_user["id"], body.passcode)


@router.post(
    "/{room_id}/lock/verify",
    response_model=LockResponse,
    summary="Verify a chat passcode"
)
async def verify_lock(
    room_id: str,
    body: PasscodeRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = RoomService(db)
    return await service.verify_lock(room_id, current_user["id"], body.passcode)


@router.delete(
    "/{room_id}/lock",
    response_model=LockResponse,
    summary="Unlock a chat"
)
async def unlock_room(
    room_id: str,
    body: PasscodeRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = RoomService(db)
    return await service.unlock_room(room_id, current_user["id"], body.passcode)
