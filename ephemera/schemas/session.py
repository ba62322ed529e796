"""
Session (linked device) schemas.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_serializer

from ephemera.utils.datetime_utils import to_iso_utc


class SessionRename(BaseModel):
    """Rename request; length rules are enforced by the service (400)."""

    name: Optional[str] = None


class SessionResponse(BaseModel):
    """One signed-in device."""

    id: str
    device_name: Optional[str] = None
    device_type: Optional[str] = None
    os: Optional[str] = None
    browser: Optional[str] = None
    ip_address: Optional[str] = None
    location: Optional[str] = None
    last_active_at: datetime
    created_at: datetime
    is_current: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("last_active_at", "created_at")
    def serialize_timestamp(self, dt: Optional[datetime]) -> Optional[str]:
        return to_iso_utc(dt)


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse]


class RevokeOthersResponse(BaseModel):
    success: bool = True
    revoked_count: int
