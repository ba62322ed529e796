"""
Tests for scripts/backfill_deliveries.py.
"""
import importlib.util
from pathlib import Path

import pytest

from ephemera.models.message import InteractionType, MessageInteraction
from ephemera.repositories.receipt_repo import ReceiptRepository

SCRIPT_PATH = Path(__file__).resolve().parent.parent / "scripts" / "backfill_deliveries.py"


@pytest.fixture
def backfill_module():
    spec = importlib.util.spec_from_file_location("backfill_deliveries", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.asyncio
async def test_backfill_commits_missing_rows(
    backfill_module, session_factory, db_session, test_message, test_user_2, test_user_3
):
    db_session.add_all([
        MessageInteraction(message_id=test_message.id, user_id=test_user_2.id, interaction_type=InteractionType.READ),
        MessageInteraction(message_id=test_message.id, user_id=test_user_3.id, interaction_type=InteractionType.OPENED),
    ])
    await db_session.commit()

    inserted = await backfill_module.backfill_deliveries(session_factory)

    assert inserted == 2
    state = await ReceiptRepository(db_session).get_ack_state(test_message.id)
    assert set(state.delivered) == {test_user_2.id, test_user_3.id}

    assert await backfill_module.backfill_deliveries(session_factory) == 0
