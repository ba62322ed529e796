"""
Service layer exports.
Provides business logic for the application.
"""
from ephemera.services.message_service import MessageService
from ephemera.services.receipt_service import ReceiptService
from ephemera.services.room_service import RoomService
from ephemera.services.session_service import SessionService
from ephemera.services.storage_service import StorageService, storage_service

__all__ = [
    "MessageService",
    "ReceiptService",
    "RoomService",
    "SessionService",
    "StorageService",
    "storage_service",
]
