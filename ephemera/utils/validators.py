"""
Custom validators for application data.
Provides reusable validation functions.
"""
import re
from typing import Optional

from fastapi import HTTPException, status

PASSCODE_PATTERN = re.compile(r"^\d{4,8}$")
SESSION_NAME_MAX_LENGTH = 50


def validate_passcode(passcode: Optional[str]) -> str:
    """
    Validate a chat-lock passcode (4 to 8 digits).

    Raises:
        HTTPException: 400 if the passcode is missing or malformed
    """
    if not passcode or not PASSCODE_PATTERN.match(passcode):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Passcode must be 4 to 8 digits"
        )
    return passcode


def validate_session_name(name: Optional[str]) -> str:
    """
    Validate and normalise a device/session name.

    Raises:
        HTTPException: 400 if empty or longer than 50 characters
    """
    name = (name or "").strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name is required"
        )
    if len(name) > SESSION_NAME_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Name must be {SESSION_NAME_MAX_LENGTH} characters or less"
        )
    return name


def validate_file_type(mime_type: Optional[str], allowed_types: list) -> bool:
    """
    Validate file MIME type.

    Parameters such as "; codecs=opus" are ignored.
    """
    if not mime_type:
        return False
    base_type = mime_type.split(";", 1)[0].strip().lower()
    return base_type in [t.lower() for t in allowed_types]


def validate_file_size(size_bytes: int, max_size: int) -> bool:
    """Validate file size (non-empty and within the limit)."""
    return 0 < size_bytes <= max_size
