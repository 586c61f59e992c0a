"""
BoardScan Backend — Board Name Catalog Routes
===============================================
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.database import get_db_session
from boardscan.dependencies import require_admin
from boardscan.models import User
from boardscan.schemas.board_name import (
    BoardNameCreate,
    BoardNameListResponse,
    BoardNameResponse,
    BoardNameUpdate,
)
from boardscan.services.board_name_service import board_name_service

router = APIRouter(prefix="/api/board-names", tags=["Board Names"])


@router.get("", response_model=BoardNameListResponse, summary="List active catalog entries")
async def list_board_names(
    category: Optional[str] = Query(default=None),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> BoardNameListResponse:
    return await board_name_service.list_entries(db, admin, category=category)


@router.get("/search", response_model=BoardNameListResponse, summary="Search by board type")
async def search_board_names(
    q: str = Query(default="", max_length=255),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> BoardNameListResponse:
    return await board_name_service.search(db, admin, q)


@router.post("", status_code=201, response_model=BoardNameResponse, summary="Add a catalog entry")
async def create_board_name(
    payload: BoardNameCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> BoardNameResponse:
    return await board_name_service.create(db, admin, payload)


@router.put("/{board_name_id}", response_model=BoardNameResponse, summary="Update a catalog entry")
async def update_board_name(
    board_name_id: UUID,
    payload: BoardNameUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> BoardNameResponse:
    return await board_name_service.update(db, admin, board_name_id, payload)


@router.delete("/{board_name_id}", response_model=BoardNameResponse, summary="Deactivate a catalog entry")
async def delete_board_name(
    board_name_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> BoardNameResponse:
    return await board_name_service.delete(db, admin, board_name_id)
