"""
SQLAlchemy models for the Ephemera chat server.

All models must be imported here for Alembic auto-generation to work.
"""

# Import Base first
from ephemera.models.base import Base, TimestampMixin, UUIDMixin

# Import all models (order matters for relationships)
from ephemera.models.user import User
from ephemera.models.room import Room, RoomMember, RoomType, MemberRole, SendMode, GroupPermission, RoomLock
from ephemera.models.message import (
    Message,
    MessageType,
    MessageDelivery,
    MessageInteraction,
    InteractionType,
    ReceiptStatus,
)
from ephemera.models.user_deleted_message import UserDeletedMessage
from ephemera.models.session import UserSession

# Export all models and enums
__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # User
    "User",
    "UserSession",
    # Rooms
    "Room",
    "RoomMember",
    "RoomType",
    "MemberRole",
    "SendMode",
    "GroupPermission",
    "RoomLock",
    # Messages
    "Message",
    "MessageType",
    "MessageDelivery",
    "MessageInteraction",
    "InteractionType",
    "ReceiptStatus",
    "UserDeletedMessage",
]
