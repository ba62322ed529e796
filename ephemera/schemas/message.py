"""
Pydantic schemas for message requests and responses.
Handles validation for message-related API endpoints.
"""
from datetime import datetime
from typing import Optional, List, Dict, Literal

from pydantic import BaseModel, Field, ConfigDict, field_serializer, model_validator

from ephemera.models.message import MessageType, ReceiptStatus
from ephemera.utils.datetime_utils import to_iso_utc


# ============================================================================
# Request Schemas
# ============================================================================

class MessageCreate(BaseModel):
    """Schema for creating a new message."""

    room_id: str = Field(..., description="Room ID")
    type: MessageType = Field(default=MessageType.TEXT, description="Message type")
    content: Optional[str] = Field(None, max_length=10000, description="Message text content")
    gif_url: Optional[str] = Field(None, max_length=1000, description="GIF URL (type=gif)")
    media_url: Optional[str] = Field(None, max_length=1000)
    preview_url: Optional[str] = Field(None, max_length=1000)
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)
    caption: Optional[str] = Field(None, max_length=2000)
    file_name: Optional[str] = Field(None, max_length=255)
    file_size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = Field(None, max_length=100)
    is_view_once: bool = Field(default=False, description="Image can be opened once per recipient")
    reply_to_message_id: Optional[str] = Field(None, description="ID of message being replied to")
    temp_id: Optional[str] = Field(None, max_length=100, description="Client-side id echoed in new_message")

    @model_validator(mode="after")
    def validate_content(self) -> "MessageCreate":
        """GIFs get a default label; text messages need content."""
        if self.type == MessageType.GIF:
            if not self.content:
                self.content = "GIF"
            if self.gif_url and not self.media_url:
                self.media_url = self.gif_url

        if self.type == MessageType.TEXT and (not self.content or not self.content.strip()):
            raise ValueError("Text messages must have content")

        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "room_id": "123e4567-e89b-12d3-a456-426614174000",
                "type": "text",
                "content": "Hello, how are you?",
                "temp_id": "tmp-1"
            }
        }
    )


class MessageEdit(BaseModel):
    """Schema for editing a text message."""

    new_content: str = Field(..., min_length=1, max_length=10000, description="Updated message content")

    @model_validator(mode="after")
    def validate_not_blank(self) -> "MessageEdit":
        if not self.new_content.strip():
            raise ValueError("Content cannot be empty or whitespace only")
        return self


# ============================================================================
# Response Schemas
# ============================================================================

class SenderInfo(BaseModel):
    """Basic sender information embedded in message payloads."""

    id: str
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    """
    Message as seen by one viewer.

    Acknowledgment fields are derived from the ledger. For view-once
    messages received by the viewer, media fields are blank and
    view_once_state tells the client which placeholder to render.
    """

    id: str
    room_id: str
    user_id: str
    type: MessageType
    content: Optional[str] = None
    media_url: Optional[str] = None
    preview_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    caption: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    audio_url: Optional[str] = None
    audio_duration_ms: Optional[int] = None
    audio_waveform: Optional[List[float]] = None
    is_view_once: bool = False
    view_once_state: Optional[Literal["unopened", "opened"]] = None
    reply_to_message_id: Optional[str] = None
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    edit_version: int = 0
    is_deleted_for_everyone: bool = False
    created_at: datetime
    sender: Optional[SenderInfo] = None
    temp_id: Optional[str] = None

    # Derived from message_deliveries / message_interactions
    delivered_to: List[str] = Field(default_factory=list)
    read_by: List[str] = Field(default_factory=list)
    viewed_by: List[str] = Field(default_factory=list)
    played_by: List[str] = Field(default_factory=list)
    delivered_at: Dict[str, str] = Field(default_factory=dict)
    read_at: Dict[str, str] = Field(default_factory=dict)
    viewed_at: Dict[str, str] = Field(default_factory=dict)
    played_at: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "edited_at")
    def serialize_timestamp(self, dt: Optional[datetime]) -> Optional[str]:
        return to_iso_utc(dt)


class MessageListResponse(BaseModel):
    """Paginated room history (ascending order)."""

    messages: List[MessageResponse]
    has_more: bool
    next_cursor: Optional[str] = None


class AcknowledgmentResponse(BaseModel):
    """Result of acknowledging a single message."""

    success: bool = True
    message_id: str
    status: ReceiptStatus
    recorded: bool = Field(description="False when nothing new was written")


class BulkAcknowledgmentResponse(BaseModel):
    """Result of a room-wide delivered/read mark."""

    success: bool = True
    updated_count: int


class SuccessResponse(BaseModel):
    success: bool = True


class ReceiptEntry(BaseModel):
    """One recipient in the message info view."""

    userId: str
    name: str
    avatar: Optional[str] = None
    at: Optional[str] = None


class InteractionGroups(BaseModel):
    read: List[ReceiptEntry] = Field(default_factory=list)
    played: List[ReceiptEntry] = Field(default_factory=list)
    opened: List[ReceiptEntry] = Field(default_factory=list)


class MessageInfoResponse(BaseModel):
    """Per-recipient receipt breakdown, visible to the sender only."""

    message: MessageResponse
    delivered: List[ReceiptEntry]
    pending: List[ReceiptEntry]
    interactions: InteractionGroups
