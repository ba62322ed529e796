"""
Room, RoomMember, GroupPermission and RoomLock models.

Handles direct chats, group chats and AI chats, plus the per-user
visibility flags and chat locks layered over a shared room.
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Enum as SQLEnum,
    func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ephemera.models.base import Base, UUIDMixin, TimestampMixin

if TYPE_CHECKING:
    from ephemera.models.user import User
    from ephemera.models.message import Message


class RoomType(str, enum.Enum):
    """Enum for room types."""
    DIRECT = "direct"
    GROUP = "group"
    AI = "ai"


class MemberRole(str, enum.Enum):
    """Enum for room member roles."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class SendMode(str, enum.Enum):
    """Who may post in a group."""
    EVERYONE = "everyone"
    ADMINS_ONLY = "admins_only"
    OWNER_ONLY = "owner_only"


class Room(Base, UUIDMixin, TimestampMixin):
    """
    Room model for direct, group and AI chats.

    Rooms may be ephemeral: once expires_at has passed no new messages
    are accepted.
    """

    __tablename__ = "rooms"

    type: Mapped[RoomType] = mapped_column(
        SQLEnum(RoomType, name="room_type", native_enum=False),
        nullable=False,
        default=RoomType.DIRECT,
        doc="Type of room: 'direct', 'group' or 'ai'"
    )

    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Group name (null for direct chats)"
    )

    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)

    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        doc="User who created the room"
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the room stops accepting messages"
    )

    # Relationships
    members: Mapped[List["RoomMember"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    messages: Mapped[List["Message"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        lazy="select"
    )

    permissions: Mapped["GroupPermission | None"] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, type={self.type}, name={self.name})>"


class RoomMember(Base):
    """
    RoomMember model - association table for users in rooms.

    Besides the role, each membership carries the per-user view of the
    room: pinned, archived, hidden and the point up to which history was
    cleared.
    """

    __tablename__ = "room_members"

    room_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        primary_key=True
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )

    role: Mapped[MemberRole] = mapped_column(
        SQLEnum(MemberRole, name="member_role", native_enum=False),
        default=MemberRole.MEMBER,
        nullable=False
    )

    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pinned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    cleared_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Messages created before this instant are hidden for this member"
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    # Relationships
    room: Mapped["Room"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship(back_populates="room_memberships")

    def __repr__(self) -> str:
        return f"<RoomMember(room_id={self.room_id}, user_id={self.user_id}, role={self.role})>"


class GroupPermission(Base):
    """Posting permissions for a group room."""

    __tablename__ = "group_permissions"

    group_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        primary_key=True
    )

    send_mode: Mapped[SendMode] = mapped_column(
        SQLEnum(SendMode, name="send_mode", native_enum=False),
        default=SendMode.EVERYONE,
        nullable=False
    )

    room: Mapped["Room"] = relationship(back_populates="permissions")


class RoomLock(Base):
    """
    Per-user chat lock.

    Locking is a personal preference: the room stays visible to the other
    members, only this user has to enter the passcode to open it.
    """

    __tablename__ = "room_locks"

    room_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        primary_key=True
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True
    )

    passcode_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<RoomLock(room_id={self.room_id}, user_id={self.user_id})>"


# Indexes for performance
Index("idx_room_members_user", RoomMember.user_id)
Index("idx_room_locks_user", RoomLock.user_id)
