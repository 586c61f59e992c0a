"""
BoardScan Backend — Activity Session Routes
=============================================

Client contract: call start when the app comes to the foreground, ping
periodically while it stays there, and end when it goes away. start is
idempotent, so a client that lost its session id can simply call it again.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.database import get_db_session
from boardscan.dependencies import get_current_user
from boardscan.models import User
from boardscan.schemas.activity import (
    ActivitySessionListResponse,
    ActivitySessionResponse,
    ActivityStatsResponse,
)
from boardscan.schemas.common import ErrorResponse
from boardscan.services.activity_service import activity_service

router = APIRouter(prefix="/api/activity", tags=["Activity"])


@router.post(
    "/sessions/start",
    response_model=ActivitySessionResponse,
    summary="Open (or return the already open) activity session",
)
async def start_session(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ActivitySessionResponse:
    return await activity_service.start_session(db, user)


@router.post(
    "/sessions/{session_id}/ping",
    response_model=ActivitySessionResponse,
    responses={404: {"description": "No such open session", "model": ErrorResponse}},
    summary="Heartbeat an open session",
)
async def ping_session(
    session_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ActivitySessionResponse:
    return await activity_service.ping_session(db, user, session_id)


@router.post(
    "/sessions/{session_id}/end",
    response_model=ActivitySessionResponse,
    responses={404: {"description": "No such open session", "model": ErrorResponse}},
    summary="Close a session and record its duration",
)
async def end_session(
    session_id: UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ActivitySessionResponse:
    return await activity_service.end_session(db, user, session_id)


@router.get("/sessions", response_model=ActivitySessionListResponse, summary="Recent sessions")
async def list_sessions(
    user_id: Optional[UUID] = Query(default=None, description="Admins only"),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ActivitySessionListResponse:
    return await activity_service.list_sessions(db, user, user_id=user_id, limit=limit)


@router.get("/stats", response_model=ActivityStatsResponse, summary="Time-spent statistics")
async def activity_stats(
    user_id: Optional[UUID] = Query(default=None, description="Admins only; omit for everyone"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ActivityStatsResponse:
    return await activity_service.activity_stats(
        db,
        user,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
    )
