"""
Session service for linked-device management.

A session row exists for every signed-in device. Deleting the row is what
revokes it: authentication refuses tokens whose sessionId is gone.
"""
import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.websocket import connection_manager
from ephemera.repositories.session_repo import SessionRepository
from ephemera.schemas.session import (
    SessionResponse,
    SessionListResponse,
    RevokeOthersResponse,
)
from ephemera.schemas.message import SuccessResponse
from ephemera.utils.validators import validate_session_name

logger = logging.getLogger(__name__)


class SessionService:
    """Service for listing, renaming and revoking a user's sessions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.session_repo = SessionRepository(db)
        self.ws_manager = connection_manager

    async def list_sessions(self, user_id: str, current_session_id: Optional[str]) -> SessionListResponse:
        sessions = await self.session_repo.list_for_user(user_id)

        items = []
        for session in sessions:
            item = SessionResponse.model_validate(session)
            item.is_current = session.id == current_session_id
            items.append(item)

        return SessionListResponse(sessions=items)

    async def rename_session(self, session_id: str, user_id: str, name: Optional[str]) -> SessionResponse:
        """
        Rename one of the caller's devices.

        Raises:
            HTTPException: 400 missing or too long name, 404 unknown session
        """
        name = validate_session_name(name)

        session = await self.session_repo.get_for_user(session_id, user_id)
        if not session:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Session not found"
            )

        session.device_name = name
        await self.db.commit()

        return SessionResponse.model_validate(session)

    async def revoke_session(
        self,
        session_id: str,
        user_id: str,
        current_session_id: Optional[str]
    ) -> SuccessResponse:
        """
        Sign out one other device.

        Raises:
            HTTPException: 400 for the current session, 404 unknown session
        """
        if session_id == current_session_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot revoke current session"
            )

        session = await self.session_repo.get_for_user(session_id, user_id)
        if not session:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Session not found"
            )

        await self.session_repo.delete(session.id)
        await self.db.commit()
        logger.info(f"[SESSIONS] Session {session_id} revoked by {user_id}")

        try:
            await self.ws_manager.send_session_revoked(user_id, session_id)
        except Exception as e:
            logger.error(f"[SESSIONS] Failed to emit session:revoked for {session_id}: {e}")

        return SuccessResponse()

    async def revoke_other_sessions(self, user_id: str, current_session_id: Optional[str]) -> RevokeOthersResponse:
        """Sign out every device except the one making the request."""
        if not current_session_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current session is unknown"
            )

        revoked = await self.session_repo.delete_others(user_id, current_session_id)
        await self.db.commit()
        logger.info(f"[SESSIONS] {revoked} sessions revoked for {user_id}")

        try:
            await self.ws_manager.send_sessions_revoked_others(user_id, current_session_id)
        except Exception as e:
            logger.error(f"[SESSIONS] Failed to emit session:revoked-others for {user_id}: {e}")

        return RevokeOthersResponse(revoked_count=revoked)
