"""
User model.

Accounts are issued elsewhere; this table holds the profile fields the chat
server needs for payloads plus presence bookkeeping.
"""
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ephemera.models.base import Base, UUIDMixin

if TYPE_CHECKING:
    from ephemera.models.room import RoomMember
    from ephemera.models.session import UserSession


class User(Base, UUIDMixin):
    """Chat user."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        doc="Unique handle"
    )

    display_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        doc="Name shown in chats"
    )

    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    avatar_thumb_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    last_seen_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Last presence heartbeat"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    room_memberships: Mapped[List["RoomMember"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan"
    )
    sessions: Mapped[List["UserSession"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @property
    def name(self) -> str:
        """Display name with username fallback."""
        return self.display_name or self.username

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
