"""
Session (linked device) API routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.core.database import get_db
from ephemera.dependencies import get_current_user
from ephemera.schemas.message import SuccessResponse
from ephemera.schemas.session import (
    SessionRename,
    SessionResponse,
    SessionListResponse,
    RevokeOthersResponse,
)
from ephemera.services.session_service import SessionService

router = APIRouter()


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's signed-in devices, most recently active first."""
    service = SessionService(db)
    return await service.list_sessions(current_user["id"], current_user.get("session_id"))


@router.post("/revoke-others", response_model=RevokeOthersResponse)
async def revoke_other_sessions(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = SessionService(db)
    return await service.revoke_other_sessions(current_user["id"], current_user.get("session_id"))


@router.put("/{session_id}/name", response_model=SessionResponse)
async def rename_session(
    session_id: str,
    body: SessionRename,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = SessionService(db)
    return await service.rename_session(session_id, current_user["id"], body.name)


@router.post("/{session_id}/revoke", response_model=SuccessResponse)
async def revoke_session(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Sign out another device. The current session cannot revoke itself."""
    service = SessionService(db)
    return await service.revoke_session(session_id, current_user["id"], current_user.get("session_id"))
