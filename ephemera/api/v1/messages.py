"""
Message API routes.
Provides endpoints for sending, editing, deleting and acknowledging messages.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from slowapi import Limiter
from slowapi.util import get_remote_address

from ephemera.config import settings
from ephemera.core.database import get_db
from ephemera.dependencies import get_current_user
from ephemera.models.message import ReceiptStatus
from ephemera.schemas.message import (
    MessageCreate,
    MessageEdit,
    MessageResponse,
    MessageInfoResponse,
    AcknowledgmentResponse,
    SuccessResponse,
)
from ephemera.services.message_service import MessageService
from ephemera.services.receipt_service import ReceiptService

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a new message",
    description="Send a message to a room. User must be a member and allowed to post."
)
@limiter.limit(settings.rate_limit_messages)
async def send_message(
    request: Request,
    message_data: MessageCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Send a new message to a room.

    - **room_id**: ID of the room
    - **type**: text, image, gif, audio, file, poll or location
    - **content**: Message text (required for text messages)
    - **is_view_once**: Images only; each recipient can open it once
    - **reply_to_message_id**: Optional message being replied to
    - **temp_id**: Client id echoed back in new_message
    """
    service = MessageService(db)
    return await service.send_message(current_user["id"], message_data)


@router.post(
    "/audio",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a voice note",
    description="Upload a voice note (multipart) and send it as an audio message."
)
@limiter.limit(settings.rate_limit_messages)
async def send_voice_note(
    request: Request,
    room_id: str = Form(..., alias="roomId"),
    duration_ms: Optional[int] = Form(None, alias="durationMs"),
    waveform: Optional[str] = Form(None),
    reply_to_message_id: Optional[str] = Form(None, alias="replyToMessageId"),
    temp_id: Optional[str] = Form(None, alias="tempId"),
    audio: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    return await service.send_voice_note(
        sender_id=current_user["id"],
        room_id=room_id,
        audio=audio,
        duration_ms=duration_ms,
        waveform=waveform,
        reply_to_message_id=reply_to_message_id,
        temp_id=temp_id
    )


@router.get(
    "/{message_id}",
    response_model=MessageResponse,
    summary="Get a message by ID"
)
async def get_message(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get a single message as the caller sees it.

    Messages the caller deleted for themselves are reported as 404.
    """
    service = MessageService(db)
    return await service.get_message(message_id, current_user["id"])


@router.get(
    "/{message_id}/info",
    response_model=MessageInfoResponse,
    summary="Delivery and read details",
    description="Per-recipient delivered / read / played / opened breakdown. Sender only."
)
async def get_message_info(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    return await service.get_message_info(message_id, current_user["id"])


@router.put(
    "/{message_id}/edit",
    response_model=MessageResponse,
    summary="Edit a message",
    description="Edit a text message. Only the sender can edit."
)
async def edit_message(
    message_id: str,
    edit_data: MessageEdit,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    return await service.edit_message(message_id, current_user["id"], edit_data.new_content)


@router.delete(
    "/{message_id}/for-me",
    response_model=SuccessResponse,
    summary="Delete a message for me"
)
async def delete_for_me(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    return await service.delete_for_me(message_id, current_user["id"])


@router.delete(
    "/{message_id}/for-everyone",
    response_model=SuccessResponse,
    summary="Delete a message for everyone",
    description="Replace the message with a tombstone for all members. Sender only."
)
async def delete_for_everyone(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    return await service.delete_for_everyone(message_id, current_user["id"])


@router.post(
    "/{message_id}/delivered",
    response_model=AcknowledgmentResponse,
    summary="Mark a message as delivered"
)
async def mark_delivered(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ReceiptService(db)
    return await service.acknowledge(message_id, current_user["id"], ReceiptStatus.DELIVERED)


@router.post(
    "/{message_id}/read",
    response_model=AcknowledgmentResponse,
    summary="Mark a message as read"
)
async def mark_read(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark a message as read.

    Also records delivery when it is missing. Repeating the call is a no-op
    (recorded is false and no message_status event is sent).
    """
    service = ReceiptService(db)
    return await service.acknowledge(message_id, current_user["id"], ReceiptStatus.READ)


@router.post(
    "/{message_id}/audio-heard",
    response_model=AcknowledgmentResponse,
    summary="Mark a voice note as played"
)
async def mark_audio_heard(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = ReceiptService(db)
    return await service.acknowledge(message_id, current_user["id"], ReceiptStatus.PLAYED)


@router.post(
    "/{message_id}/view",
    response_model=MessageResponse,
    summary="Open a view-once message",
    description="The first call by a recipient returns the media and records the view."
)
async def view_message(
    message_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessageService(db)
    return await service.view_message(message_id, current_user["id"])
