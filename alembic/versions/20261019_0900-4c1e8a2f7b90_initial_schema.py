"""initial_schema

Revision ID: 4c1e8a2f7b90
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4c1e8a2f7b90'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the chat schema.

    Acknowledgments live only in message_deliveries and
    message_interactions; their composite primary keys make every
    acknowledgment insert idempotent (INSERT ... ON CONFLICT DO NOTHING).
    """
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('avatar_thumb_url', sa.String(length=500), nullable=True),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    op.create_table('rooms',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.Enum('DIRECT', 'GROUP', 'AI', name='room_type', native_enum=False), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('bio', sa.Text(), nullable=False),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('room_members',
        sa.Column('room_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('role', sa.Enum('OWNER', 'ADMIN', 'MEMBER', name='member_role', native_enum=False), nullable=False),
        sa.Column('is_pinned', sa.Boolean(), nullable=False),
        sa.Column('pinned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False),
        sa.Column('is_hidden', sa.Boolean(), nullable=False),
        sa.Column('cleared_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('room_id', 'user_id')
    )
    op.create_index('idx_room_members_user', 'room_members', ['user_id'], unique=False)

    op.create_table('group_permissions',
        sa.Column('group_id', sa.String(length=36), nullable=False),
        sa.Column('send_mode', sa.Enum('EVERYONE', 'ADMINS_ONLY', 'OWNER_ONLY', name='send_mode', native_enum=False), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['rooms.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('group_id')
    )

    op.create_table('room_locks',
        sa.Column('room_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('passcode_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('room_id', 'user_id')
    )
    op.create_index('idx_room_locks_user', 'room_locks', ['user_id'], unique=False)

    op.create_table('messages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('room_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.Enum('TEXT', 'IMAGE', 'GIF', 'AUDIO', 'FILE', 'POLL', 'LOCATION', name='message_type', native_enum=False), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('media_url', sa.String(length=1000), nullable=True),
        sa.Column('preview_url', sa.String(length=1000), nullable=True),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('caption', sa.Text(), nullable=True),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('audio_url', sa.String(length=1000), nullable=True),
        sa.Column('audio_duration_ms', sa.Integer(), nullable=True),
        sa.Column('audio_waveform', sa.JSON(), nullable=True),
        sa.Column('is_view_once', sa.Boolean(), nullable=False),
        sa.Column('reply_to_message_id', sa.String(length=36), nullable=True),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('edit_version', sa.Integer(), nullable=False),
        sa.Column('is_deleted_for_everyone', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['reply_to_message_id'], ['messages.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_messages_room_id'), 'messages', ['room_id'], unique=False)
    op.create_index(op.f('ix_messages_user_id'), 'messages', ['user_id'], unique=False)
    op.create_index(op.f('ix_messages_created_at'), 'messages', ['created_at'], unique=False)
    op.create_index('idx_messages_room_created', 'messages', ['room_id', sa.text('created_at DESC')], unique=False)

    op.create_table('user_deleted_messages',
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('message_id', sa.String(length=36), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'message_id')
    )
    op.create_index('idx_user_deleted_messages_message', 'user_deleted_messages', ['message_id'], unique=False)

    op.create_table('message_deliveries',
        sa.Column('message_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('delivered_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('message_id', 'user_id')
    )
    op.create_index('idx_message_deliveries_user', 'message_deliveries', ['user_id'], unique=False)

    op.create_table('message_interactions',
        sa.Column('message_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('interaction_type', sa.Enum('READ', 'PLAYED', 'OPENED', name='interaction_type', native_enum=False), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('message_id', 'user_id', 'interaction_type')
    )
    op.create_index('idx_message_interactions_user_type', 'message_interactions', ['user_id', 'interaction_type'], unique=False)

    op.create_table('user_sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('device_name', sa.String(length=50), nullable=True),
        sa.Column('device_type', sa.String(length=50), nullable=True),
        sa.Column('os', sa.String(length=100), nullable=True),
        sa.Column('browser', sa.String(length=100), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('last_active_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_user_sessions_user', 'user_sessions', ['user_id', sa.text('last_active_at DESC')], unique=False)


def downgrade() -> None:
    """Drop the chat schema."""
    op.drop_index('idx_user_sessions_user', table_name='user_sessions')
    op.drop_table('user_sessions')
    op.drop_index('idx_message_interactions_user_type', table_name='message_interactions')
    op.drop_table('message_interactions')
    op.drop_index('idx_message_deliveries_user', table_name='message_deliveries')
    op.drop_table('message_deliveries')
    op.drop_index('idx_user_deleted_messages_message', table_name='user_deleted_messages')
    op.drop_table('user_deleted_messages')
    op.drop_index('idx_messages_room_created', table_name='messages')
    op.drop_index(op.f('ix_messages_created_at'), table_name='messages')
    op.drop_index(op.f('ix_messages_user_id'), table_name='messages')
    op.drop_index(op.f('ix_messages_room_id'), table_name='messages')
    op.drop_table('messages')
    op.drop_index('idx_room_locks_user', table_name='room_locks')
    op.drop_table('room_locks')
    op.drop_table('group_permissions')
    op.drop_index('idx_room_members_user', table_name='room_members')
    op.drop_table('room_members')
    op.drop_table('rooms')
    op.drop_index(op.f('ix_users_username'), table_name='users')
    op.drop_table('users')
