"""
Dependency injection for FastAPI routes.
Provides reusable dependencies for authentication and pagination.
"""
import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.database import get_db
from ephemera.core.security import decode_token, extract_token_from_header
from ephemera.repositories.session_repo import SessionRepository
from ephemera.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Sessions are re-stamped at most this often
SESSION_TOUCH_INTERVAL = timedelta(minutes=1)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    Dependency to get the current authenticated user.

    The bearer token is decoded locally. When it names a session, that
    session must still exist: revoking a device deletes its row, which
    invalidates every token issued for it. A live session has its
    last_active_at refreshed, at most once per SESSION_TOUCH_INTERVAL.

    Args:
        authorization: Authorization header containing Bearer token
        db: Database session

    Returns:
        Dictionary with id, username, display_name and session_id

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired or revoked

    Example:
        ```python
        @router.get("/protected")
        async def protected_route(current_user: dict = Depends(get_current_user)):
            return {"user": current_user["username"]}
        ```
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = extract_token_from_header(authorization)
    payload = decode_token(token)

    user_id = str(payload["id"])
    session_id = payload.get("sessionId")

    if session_id:
        session_repo = SessionRepository(db)
        session = await session_repo.get_for_user(str(session_id), user_id)
        if not session:
            logger.info(f"[AUTH] Rejected token for revoked session {session_id}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session has been revoked",
                headers={"WWW-Authenticate": "Bearer"},
            )

        now = utc_now()
        if now - ensure_utc(session.last_active_at) >= SESSION_TOUCH_INTERVAL:
            await session_repo.touch(session, now)
            await db.commit()

    return {
        "id": user_id,
        "username": payload.get("username"),
        "display_name": payload.get("display_name"),
        "session_id": str(session_id) if session_id else None,
    }


def get_pagination_params(
    before: Optional[str] = None,
    limit: int = 50
) -> dict:
    """
    Dependency for cursor-based pagination parameters.

    Args:
        before: Message ID cursor (only older messages are returned)
        limit: Number of items to return (default: 50, max: 100)

    Returns:
        Dictionary with pagination parameters
    """
    # Enforce maximum limit
    if limit > 100:
        limit = 100
    elif limit < 1:
        limit = 1

    return {
        "before": before,
        "limit": limit,
    }
