"""
Backfill missing delivery rows.

Every read / played / opened interaction implies the message was delivered
to that user. This script inserts the missing message_deliveries rows,
stamped with the message's created_at. Safe to run repeatedly.

Usage:
    python scripts/backfill_deliveries.py
"""
import asyncio

from ephemera.core.database import AsyncSessionLocal, engine
from ephemera.repositories.receipt_repo import ReceiptRepository


async def backfill_deliveries(session_factory=AsyncSessionLocal) -> int:
    """
    Insert the missing delivery rows and commit.

    Returns:
        Number of rows inserted
    """
    async with session_factory() as db:
        try:
            inserted = await ReceiptRepository(db).backfill_missing_deliveries()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return inserted


async def main():
    print("🔄 Backfilling missing message deliveries...")
    try:
        inserted = await backfill_deliveries()
        print(f"✅ Inserted {inserted} delivery rows")
    except Exception as e:
        print(f"\n❌ Error: {e}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
