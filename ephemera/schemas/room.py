"""
Pydantic schemas for room endpoints (unread counts, clearing, chat locks).
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class UnreadCountResponse(BaseModel):
    room_id: str
    unread_count: int


class ClearRoomResponse(BaseModel):
    success: bool = True
    cleared_at: Optional[str] = None


class PasscodeRequest(BaseModel):
    """Chat-lock passcode; format (4 to 8 digits) is checked by the service."""

    passcode: str = Field(..., description="Numeric passcode")


class LockedRoomsResponse(BaseModel):
    lockedRoomIds: List[str]


class LockResponse(BaseModel):
    success: bool = True
    room_id: str
    locked: bool
