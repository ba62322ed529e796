"""
User schemas for API request/response validation.
"""
from typing import Literal, Optional

from pydantic import BaseModel


class PresenceResponse(BaseModel):
    """Presence of one user; offline when nothing is cached."""

    user_id: str
    status: Literal["online", "offline"]
    last_seen_at: Optional[str] = None
