"""
API v1 router exports.
Provides API endpoint routers.
"""
from ephemera.api.v1 import messages, rooms, sessions, users

__all__ = [
    "messages",
    "rooms",
    "sessions",
    "users",
]
