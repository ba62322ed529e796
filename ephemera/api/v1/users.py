"""
User API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.cache import get_user_presence
from ephemera.core.database import get_db
from ephemera.dependencies import get_current_user
from ephemera.repositories.user_repo import UserRepository
from ephemera.schemas.user import PresenceResponse
from ephemera.utils.datetime_utils import to_iso_utc

router = APIRouter()


@router.get("/{user_id}/presence", response_model=PresenceResponse)
async def get_presence(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get a user's presence.

    Live presence comes from Redis. Once that entry has expired (or Redis
    is unavailable) the user is offline and last_seen_at falls back to the
    stored users.last_seen_at.
    """
    presence = await get_user_presence(user_id)
    if not presence:
        user = await UserRepository(db).get(user_id)
        return PresenceResponse(
            user_id=user_id,
            status="offline",
            last_seen_at=to_iso_utc(user.last_seen_at) if user else None
        )

    return PresenceResponse(
        user_id=user_id,
        status="online" if presence.get("status") == "online" else "offline",
        last_seen_at=presence.get("last_seen_at")
    )
