"""
Pydantic schema exports.
Provides request/response models for API endpoints.
"""
from ephemera.schemas.message import (
    MessageCreate,
    MessageEdit,
    MessageResponse,
    MessageListResponse,
    AcknowledgmentResponse,
    BulkAcknowledgmentResponse,
    SuccessResponse,
    ReceiptEntry,
    MessageInfoResponse,
)
from ephemera.schemas.room import (
    UnreadCountResponse,
    ClearRoomResponse,
    PasscodeRequest,
    LockedRoomsResponse,
    LockResponse,
)
from ephemera.schemas.session import (
    SessionRename,
    SessionResponse,
    SessionListResponse,
    RevokeOthersResponse,
)
from ephemera.schemas.user import PresenceResponse

__all__ = [
    # Message schemas
    "MessageCreate",
    "MessageEdit",
    "MessageResponse",
    "MessageListResponse",
    "AcknowledgmentResponse",
    "BulkAcknowledgmentResponse",
    "SuccessResponse",
    "ReceiptEntry",
    "MessageInfoResponse",
    # Room schemas
    "UnreadCountResponse",
    "ClearRoomResponse",
    "PasscodeRequest",
    "LockedRoomsResponse",
    "LockResponse",
    # Session schemas
    "SessionRename",
    "SessionResponse",
    "SessionListResponse",
    "RevokeOthersResponse",
    # User schemas
    "PresenceResponse",
]
