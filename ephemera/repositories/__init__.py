"""
Repository layer exports.
Provides database access layer for the application.
"""
from ephemera.repositories.base import BaseRepository
from ephemera.repositories.message_repo import MessageRepository
from ephemera.repositories.receipt_repo import ReceiptRepository, AckState
from ephemera.repositories.room_repo import RoomRepository, RoomLockRepository
from ephemera.repositories.session_repo import SessionRepository
from ephemera.repositories.user_repo import UserRepository

__all__ = [
    "BaseRepository",
    "MessageRepository",
    "ReceiptRepository",
    "AckState",
    "RoomRepository",
    "RoomLockRepository",
    "SessionRepository",
    "UserRepository",
]
