"""
BoardScan Backend — Lot Route Handlers
========================================

What:  Admin endpoints for lot lifecycle, membership and statistics.
How:   Every handler depends on require_admin; LotService re-checks the role
       so the rule also holds for non-HTTP callers.

Endpoints:
    POST /api/lots                      create (201)
    GET  /api/lots?status=open|closed   list, newest first
    GET  /api/lots/{id}                 detail with stored rollups
    POST /api/lots/{id}/boards          add boards (moves them from other lots)
    POST /api/lots/boards/remove        detach boards from their lots
    POST /api/lots/{id}/recompute       rebuild rollups from member rows
    POST /api/lots/{id}/close           open → closed
    GET  /api/lots/{id}/stats           live totals + board-type breakdown
    GET  /api/lots/{id}/boards          member records
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.database import get_db_session
from boardscan.dependencies import require_admin
from boardscan.models import User
from boardscan.schemas.common import ErrorResponse
from boardscan.schemas.lot import (
    BoardIdsRequest,
    LotCreate,
    LotListResponse,
    LotResponse,
    LotStatsResponse,
)
from boardscan.schemas.scan import ScanRecordResponse
from boardscan.services.lot_service import lot_service

router = APIRouter(
    prefix="/api/lots",
    tags=["Lots"],
    responses={
        403: {"description": "Admin access required", "model": ErrorResponse},
        404: {"description": "Lot or board not found", "model": ErrorResponse},
    },
)


@router.post("", status_code=201, response_model=LotResponse, summary="Create a lot")
async def create_lot(
    payload: LotCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LotResponse:
    return await lot_service.create_lot(db, admin, payload)


@router.get("", response_model=LotListResponse, summary="List lots")
async def list_lots(
    status: Optional[str] = Query(default=None, pattern="^(open|closed)$"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LotListResponse:
    return await lot_service.list_lots(db, admin, status=status)


# Declared before /{lot_id} routes so "boards" is never parsed as a lot id
@router.post(
    "/boards/remove",
    response_model=List[LotResponse],
    responses={409: {"description": "A board sits in a closed lot", "model": ErrorResponse}},
    summary="Remove boards from their lots",
)
async def remove_boards(
    payload: BoardIdsRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[LotResponse]:
    return await lot_service.remove_boards(db, admin, payload.board_ids)


@router.get("/{lot_id}", response_model=LotResponse, summary="Get a lot")
async def get_lot(
    lot_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LotResponse:
    return await lot_service.get_lot(db, admin, lot_id)


@router.post(
    "/{lot_id}/boards",
    response_model=LotResponse,
    responses={409: {"description": "Lot or source lot is closed", "model": ErrorResponse}},
    summary="Add boards to a lot",
)
async def add_boards(
    lot_id: UUID,
    payload: BoardIdsRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LotResponse:
    return await lot_service.add_boards(db, admin, lot_id, payload.board_ids)


@router.post("/{lot_id}/recompute", response_model=LotResponse, summary="Recompute lot rollups")
async def recompute_lot(
    lot_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LotResponse:
    return await lot_service.recompute_lot(db, admin, lot_id)


@router.post(
    "/{lot_id}/close",
    response_model=LotResponse,
    responses={409: {"description": "Lot already closed", "model": ErrorResponse}},
    summary="Close a lot",
)
async def close_lot(
    lot_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LotResponse:
    return await lot_service.close_lot(db, admin, lot_id)


@router.get("/{lot_id}/stats", response_model=LotStatsResponse, summary="Lot statistics")
async def lot_stats(
    lot_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> LotStatsResponse:
    return await lot_service.lot_stats(db, admin, lot_id)


@router.get("/{lot_id}/boards", response_model=List[ScanRecordResponse], summary="Boards in a lot")
async def list_lot_boards(
    lot_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> List[ScanRecordResponse]:
    return await lot_service.list_boards(db, admin, lot_id)
