"""
UserDeletedMessage model - tracks per-user message deletions.

Implements "Delete for me": a message is hidden for one user without
affecting anyone else's view of the room.
"""
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ephemera.models.base import Base

if TYPE_CHECKING:
    from ephemera.models.message import Message


class UserDeletedMessage(Base):
    """
    Tracks messages that have been deleted "for me" by individual users.

    - "Delete for me" adds an entry here (message hidden only for this user)
    - "Delete for everyone" uses Message.is_deleted_for_everyone

    When fetching messages, exclude any messages in this table for the requesting user.
    """

    __tablename__ = "user_deleted_messages"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        doc="User who deleted the message for themselves"
    )

    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True,
        doc="Message that was deleted for this user"
    )

    deleted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    message: Mapped["Message"] = relationship(back_populates="deleted_by_users")

    def __repr__(self) -> str:
        return f"<UserDeletedMessage(user_id={self.user_id}, message_id={self.message_id})>"


Index("idx_user_deleted_messages_message", UserDeletedMessage.message_id)
