"""
Message, MessageDelivery and MessageInteraction models.

Messages carry content and media; the acknowledgment ledger
(deliveries + interactions) records who received, read, played or
opened each message. The ledger is the only store of acknowledgment
state: per-message recipient lists are derived from it on read.
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    JSON,
    Enum as SQLEnum,
    func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ephemera.models.base import Base, UUIDMixin

if TYPE_CHECKING:
    from ephemera.models.room import Room
    from ephemera.models.user import User
    from ephemera.models.user_deleted_message import UserDeletedMessage


class MessageType(str, enum.Enum):
    """Enum for message types."""
    TEXT = "text"
    IMAGE = "image"
    GIF = "gif"
    AUDIO = "audio"
    FILE = "file"
    POLL = "poll"
    LOCATION = "location"


class InteractionType(str, enum.Enum):
    """Per-recipient interactions recorded after delivery."""
    READ = "read"
    PLAYED = "played"
    OPENED = "opened"


class ReceiptStatus(str, enum.Enum):
    """Status values announced in message_status events."""
    DELIVERED = "delivered"
    READ = "read"
    PLAYED = "played"
    VIEWED = "viewed"


class Message(Base, UUIDMixin):
    """
    Message model for all message types.

    Only text messages are editable. Deleting for everyone keeps the row
    as a tombstone; deleting for one user is recorded in
    user_deleted_messages.
    """

    __tablename__ = "messages"

    room_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Room this message belongs to"
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Sender"
    )

    type: Mapped[MessageType] = mapped_column(
        SQLEnum(MessageType, name="message_type", native_enum=False),
        nullable=False,
        default=MessageType.TEXT
    )

    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Image / GIF / file
    media_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    preview_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Voice notes
    audio_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    audio_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    audio_waveform: Mapped[list | None] = mapped_column(JSON, nullable=True)

    is_view_once: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Media can be opened once per recipient"
    )

    reply_to_message_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="SET NULL"),
        nullable=True
    )

    # Editing
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    edit_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_deleted_for_everyone: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True
    )

    # Relationships
    room: Mapped["Room"] = relationship(back_populates="messages")
    sender: Mapped["User"] = relationship(foreign_keys=[user_id], lazy="joined")

    # Ledger rows are written with INSERT ... ON CONFLICT DO NOTHING and read
    # through ReceiptRepository; these relationships exist for cascades only.
    deliveries: Mapped[List["MessageDelivery"]] = relationship(
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    interactions: Mapped[List["MessageInteraction"]] = relationship(
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    deleted_by_users: Mapped[List["UserDeletedMessage"]] = relationship(
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        content_preview = self.content[:50] if self.content else f"<{self.type}>"
        return f"<Message(id={self.id}, type={self.type}, content='{content_preview}')>"


class MessageDelivery(Base):
    """
    Delivery ledger - one row per (message, recipient).

    The composite primary key makes repeated deliveries a no-op.
    """

    __tablename__ = "message_deliveries"

    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )

    delivered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    message: Mapped["Message"] = relationship(back_populates="deliveries")

    def __repr__(self) -> str:
        return f"<MessageDelivery(message_id={self.message_id}, user_id={self.user_id})>"


class MessageInteraction(Base):
    """
    Interaction ledger - read, played and opened marks.

    One row per (message, recipient, interaction type).
    """

    __tablename__ = "message_interactions"

    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )

    interaction_type: Mapped[InteractionType] = mapped_column(
        SQLEnum(InteractionType, name="interaction_type", native_enum=False),
        primary_key=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    message: Mapped["Message"] = relationship(back_populates="interactions")

    def __repr__(self) -> str:
        return (
            f"<MessageInteraction(message_id={self.message_id}, "
            f"user_id={self.user_id}, type={self.interaction_type})>"
        )


# Indexes for performance
Index("idx_messages_room_created", Message.room_id, Message.created_at.desc())
Index("idx_message_deliveries_user", MessageDelivery.user_id)
Index("idx_message_interactions_user_type", MessageInteraction.user_id, MessageInteraction.interaction_type)
