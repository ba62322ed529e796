"""
Tests for MessageRepository: per-user deletion and history pagination.
"""
from datetime import timedelta

import pytest

from ephemera.models.message import Message
from ephemera.models.room import Room, RoomType
from ephemera.repositories.message_repo import MessageRepository


@pytest.mark.asyncio
class TestDeleteForUser:

    async def test_delete_for_user_is_idempotent(self, db_session, test_message, test_user_2):
        repo = MessageRepository(db_session)

        assert await repo.delete_for_user(test_message.id, test_user_2.id) is True
        assert await repo.delete_for_user(test_message.id, test_user_2.id) is False
        assert await repo.is_deleted_for_user(test_message.id, test_user_2.id)

    async def test_delete_for_user_does_not_affect_others(
        self, db_session, test_message, test_user, test_user_2
    ):
        repo = MessageRepository(db_session)

        await repo.delete_for_user(test_message.id, test_user_2.id)

        assert not await repo.is_deleted_for_user(test_message.id, test_user.id)


@pytest.mark.asyncio
class TestRoomHistory:
    """Cursor pagination over (created_at, id)."""

    async def test_pages_are_ascending_and_chain(self, db_session, test_room, test_user, make_message):
        repo = MessageRepository(db_session)
        created = [await make_message(f"m{i}", offset_seconds=i) for i in range(5)]

        page, cursor, has_more = await repo.get_room_history(test_room.id, test_user.id, limit=2)

        assert [m.content for m in page] == ["m3", "m4"]
        assert has_more is True
        assert cursor == created[3].id

        page, cursor, has_more = await repo.get_room_history(
            test_room.id, test_user.id, limit=2, before=cursor
        )
        assert [m.content for m in page] == ["m1", "m2"]
        assert has_more is True

        page, cursor, has_more = await repo.get_room_history(
            test_room.id, test_user.id, limit=2, before=cursor
        )
        assert [m.content for m in page] == ["m0"]
        assert has_more is False
        assert cursor is None

    async def test_unknown_cursor_ends_paging(self, db_session, test_room, test_user, make_message):
        repo = MessageRepository(db_session)
        await make_message("m0")

        page, cursor, has_more = await repo.get_room_history(
            test_room.id, test_user.id, limit=2, before="no-such-message"
        )

        assert (page, cursor, has_more) == ([], None, False)

    async def test_cursor_from_another_room_ends_paging(self, db_session, test_room, test_user, make_message):
        repo = MessageRepository(db_session)
        await make_message("m0")
        other_room = Room(type=RoomType.DIRECT)
        db_session.add(other_room)
        await db_session.flush()
        foreign = Message(room_id=other_room.id, user_id=test_user.id, content="elsewhere")
        db_session.add(foreign)
        await db_session.commit()

        page, cursor, has_more = await repo.get_room_history(
            test_room.id, test_user.id, limit=2, before=foreign.id
        )

        assert (page, cursor, has_more) == ([], None, False)

    async def test_history_hides_deleted_for_user_and_keeps_tombstones(
        self, db_session, test_room, test_user_2, make_message
    ):
        repo = MessageRepository(db_session)
        hidden = await make_message("hidden", offset_seconds=1)
        tombstone = await make_message("tombstone", offset_seconds=2, is_deleted_for_everyone=True)
        await repo.delete_for_user(hidden.id, test_user_2.id)

        page, _, _ = await repo.get_room_history(test_room.id, test_user_2.id)

        assert [m.id for m in page] == [tombstone.id]

    async def test_history_respects_cleared_at(
        self, db_session, test_room, test_user_2, make_message, base_time
    ):
        repo = MessageRepository(db_session)
        await make_message("before", offset_seconds=1)
        after = await make_message("after", offset_seconds=20)

        page, _, _ = await repo.get_room_history(
            test_room.id,
            test_user_2.id,
            cleared_at=base_time + timedelta(seconds=10)
        )

        assert [m.id for m in page] == [after.id]
