"""
Pytest configuration and fixtures for tests.
Provides reusable test fixtures for database, users, rooms and messages.
"""
import os
import struct
import tempfile

os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="ephemera-media-"))
os.environ.setdefault("REDIS_URL", "")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from ephemera.main import fastapi_app
from ephemera.core.database import get_db
from ephemera.models.base import Base


# In-memory SQLite shared by every session of a test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed clock for messages whose ordering matters
BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def base_time():
    """Reference instant used by make_message offsets."""
    return BASE_TIME


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def test_user(db_session: AsyncSession):
    """Create a test user (the sender in most tests)."""
    from ephemera.models.user import User

    user = User(username="alice", display_name="Alice", avatar_url="https://example.com/alice.png")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)

    return user


@pytest.fixture
async def test_user_2(db_session: AsyncSession):
    """Create a second test user (a recipient)."""
    from ephemera.models.user import User

    user = User(username="bob", display_name="Bob", avatar_thumb_url="https://example.com/bob-thumb.png")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)

    return user


@pytest.fixture
async def test_user_3(db_session: AsyncSession):
    """Create a third test user (a second recipient)."""
    from ephemera.models.user import User

    user = User(username="carol")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)

    return user


@pytest.fixture
async def outsider(db_session: AsyncSession):
    """Create a user who is not a member of any room."""
    from ephemera.models.user import User

    user = User(username="mallory")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)

    return user


@pytest.fixture
async def test_room(db_session: AsyncSession, test_user, test_user_2, test_user_3):
    """Create a group room: alice owns it, bob and carol are members."""
    from ephemera.models.room import Room, RoomMember, RoomType, MemberRole

    room = Room(type=RoomType.GROUP, name="Test Group", created_by=test_user.id)
    db_session.add(room)
    await db_session.flush()

    db_session.add_all([
        RoomMember(room_id=room.id, user_id=test_user.id, role=MemberRole.OWNER),
        RoomMember(room_id=room.id, user_id=test_user_2.id, role=MemberRole.MEMBER),
        RoomMember(room_id=room.id, user_id=test_user_3.id, role=MemberRole.MEMBER),
    ])

    await db_session.commit()
    await db_session.refresh(room)

    return room


@pytest.fixture
def make_message(db_session: AsyncSession, test_room, test_user):
    """
    Factory for messages with explicit, increasing created_at values.

    SQLite's CURRENT_TIMESTAMP has one-second resolution, so tests that
    depend on ordering pass offset_seconds instead of relying on the default.
    """
    from ephemera.models.message import Message, MessageType

    async def _make(
        content: str = "Test message content",
        sender=None,
        type: MessageType = MessageType.TEXT,
        offset_seconds: int = 0,
        **fields
    ) -> Message:
        message = Message(
            room_id=test_room.id,
            user_id=(sender or test_user).id,
            type=type,
            content=content,
            created_at=BASE_TIME + timedelta(seconds=offset_seconds),
            **fields
        )
        db_session.add(message)
        await db_session.commit()
        await db_session.refresh(message)
        return message

    return _make


@pytest.fixture
async def test_message(make_message):
    """A text message from alice."""
    return await make_message()


@pytest.fixture
async def view_once_message(make_message):
    """A view-once image from alice."""
    from ephemera.models.message import MessageType

    return await make_message(
        content=None,
        type=MessageType.IMAGE,
        media_url="https://cdn.example.com/secret.jpg",
        preview_url="https://cdn.example.com/secret-preview.jpg",
        width=800,
        height=600,
        is_view_once=True,
    )


@pytest.fixture
async def audio_message(make_message):
    """A voice note from alice."""
    from ephemera.models.message import MessageType

    return await make_message(
        content="Voice message",
        type=MessageType.AUDIO,
        audio_url="/media/audio/room/1-alice.webm",
        audio_duration_ms=3200,
        audio_waveform=[0.1, 0.4, 0.9],
    )


@pytest.fixture
async def test_session(db_session: AsyncSession, test_user):
    """Alice's current device session."""
    from ephemera.models.session import UserSession

    session = UserSession(user_id=test_user.id, device_name="Laptop", browser="Firefox")
    db_session.add(session)
    await db_session.commit()
    await db_session.refresh(session)

    return session


@pytest.fixture(scope="function")
async def client_factory(db_session: AsyncSession):
    """
    Create test HTTP clients authenticated as a given user.

    Each client carries a real JWT, so several users can talk to the app
    in one test. Overrides are applied to the FastAPI app, not to the
    Socket.IO wrapper.
    """
    from ephemera.core.security import create_access_token
    from ephemera.api.v1.messages import limiter

    async def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    clients = []

    def _client(user=None, session_id=None) -> AsyncClient:
        headers = {}
        if user is not None:
            claims = {"id": user.id, "username": user.username, "display_name": user.display_name}
            if session_id:
                claims["sessionId"] = session_id
            headers["Authorization"] = f"Bearer {create_access_token(data=claims)}"
        ac = AsyncClient(
            transport=ASGITransport(app=fastapi_app),
            base_url="http://test",
            headers=headers
        )
        clients.append(ac)
        return ac

    yield _client

    for ac in clients:
        await ac.aclose()

    # Clear overrides after test
    fastapi_app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
async def client(client_factory, test_user, test_session) -> AsyncClient:
    """HTTP client authenticated as alice on her current session."""
    return client_factory(test_user, test_session.id)


@pytest.fixture
async def unauth_client(client_factory) -> AsyncClient:
    """HTTP client WITHOUT an Authorization header."""
    return client_factory()


@pytest.fixture
def mock_auth_token(test_user, test_session):
    """Real JWT for alice's session."""
    from ephemera.core.security import create_access_token

    return create_access_token(
        data={"id": test_user.id, "username": test_user.username, "sessionId": test_session.id}
    )


@pytest.fixture
def auth_headers(mock_auth_token):
    """Create authentication headers."""
    return {"Authorization": f"Bearer {mock_auth_token}"}


@pytest.fixture(autouse=True)
def mock_websocket_manager(mocker):
    """Mock WebSocket connection manager for all service tests."""
    mock_manager = mocker.AsyncMock()
    mock_manager.broadcast_new_message = mocker.AsyncMock()
    mock_manager.broadcast_message_edited = mocker.AsyncMock()
    mock_manager.broadcast_message_deleted = mocker.AsyncMock()
    mock_manager.send_message_status = mocker.AsyncMock()
    mock_manager.send_room_updated = mocker.AsyncMock()
    mock_manager.send_session_revoked = mocker.AsyncMock()
    mock_manager.send_sessions_revoked_others = mocker.AsyncMock()

    mocker.patch("ephemera.services.message_service.connection_manager", mock_manager)
    mocker.patch("ephemera.services.receipt_service.connection_manager", mock_manager)
    mocker.patch("ephemera.services.session_service.connection_manager", mock_manager)

    return mock_manager


@pytest.fixture(autouse=True)
def media_root(tmp_path, mocker):
    """Point voice-note storage at a per-test directory."""
    from ephemera.services.storage_service import StorageService

    storage = StorageService(media_root=str(tmp_path / "media"), base_url="/media")
    mocker.patch("ephemera.services.message_service.storage_service", storage)
    return tmp_path / "media"


@pytest.fixture
def wav_bytes():
    """A tiny but well-formed PCM WAV file that libmagic recognises as audio."""
    samples = b"\x80" * 16
    fmt = struct.pack("<IHHIIHH", 16, 1, 1, 8000, 8000, 1, 8)
    return (
        b"RIFF" + struct.pack("<I", 4 + 8 + len(fmt) + 8 + len(samples))
        + b"WAVE" + b"fmt " + fmt
        + b"data" + struct.pack("<I", len(samples)) + samples
    )
