"""
BoardScan Backend — Scan Route Handlers
=========================================

What:  POST /api/scan (photo upload + classification), scan-record CRUD and
       listing, and serving stored board photos.
How:   Thin handlers: extract request data, call ScanService, set headers.
Who:   The mobile scan flow, the history screen and the dashboard.

Caching:
    - GET /api/scanned-boards/{id}: private, no-cache (records are editable)
    - GET /api/files/{path}: private, 24h (stored photos are never rewritten)

Stored photos are served only to the owner of the record that references
them, or to an admin.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.database import get_db_session
from boardscan.dependencies import get_current_user
from boardscan.models import User
from boardscan.schemas.common import ErrorResponse
from boardscan.schemas.scan import (
    ScanRecordCreate,
    ScanRecordListResponse,
    ScanRecordResponse,
    ScanRecordUpdate,
    ScanResultResponse,
)
from boardscan.services.scan_service import MAX_PAGE_SIZE, scan_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Scans"])


@router.post(
    "/scan",
    status_code=201,
    response_model=ScanResultResponse,
    responses={
        400: {"description": "Invalid image type or size", "model": ErrorResponse},
        404: {"description": "Lot not found", "model": ErrorResponse},
        409: {"description": "Lot is closed", "model": ErrorResponse},
        503: {"description": "Vision service unavailable", "model": ErrorResponse},
    },
    summary="Scan and classify a circuit board photo",
)
async def scan_board(
    image: UploadFile = File(..., description="Board photo (PNG, JPEG or WebP)"),
    location: Optional[str] = Form(default=None, max_length=255),
    latitude: Optional[float] = Form(default=None, ge=-90, le=90),
    longitude: Optional[float] = Form(default=None, ge=-180, le=180),
    weight_kg: Optional[float] = Form(default=None, ge=0),
    price_per_kg: Optional[Decimal] = Form(default=None, ge=0),
    lot_id: Optional[UUID] = Form(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ScanResultResponse:
    """
    Store the photo, classify it and persist a scan record.

    A classification failure returns 503 and leaves neither a record nor a
    stored file behind.
    """
    try:
        content = await image.read()
        logger.info(
            "Received scan from user %s: filename=%s, size=%d bytes",
            user.id,
            image.filename or "unknown",
            len(content),
        )
        return await scan_service.scan_image(
            db=db,
            actor=user,
            filename=image.filename or "upload.jpg",
            content=content,
            content_length=image.size,
            location=location,
            latitude=latitude,
            longitude=longitude,
            weight_kg=weight_kg,
            price_per_kg=price_per_kg,
            lot_id=lot_id,
        )
    finally:
        await image.close()


@router.post(
    "/scanned-boards",
    status_code=201,
    response_model=ScanRecordResponse,
    summary="Create a scan record from structured data",
)
async def create_scanned_board(
    payload: ScanRecordCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ScanRecordResponse:
    return await scan_service.create_record(db, user, payload)


@router.get(
    "/scanned-boards",
    response_model=ScanRecordListResponse,
    summary="List scan records, newest first",
)
async def list_scanned_boards(
    response: Response,
    user_id: Optional[UUID] = Query(default=None, description="Owner filter (admins only)"),
    board_type: Optional[str] = Query(default=None, description="Case-insensitive substring"),
    category: Optional[str] = Query(default=None, description="Exact category"),
    start_date: Optional[date] = Query(default=None, description="First local day, inclusive"),
    end_date: Optional[date] = Query(default=None, description="Last local day, inclusive"),
    lot_id: Optional[UUID] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ScanRecordListResponse:
    result = await scan_service.list_records(
        db,
        user,
        user_id=user_id,
        board_type=board_type,
        category=category,
        start_date=start_date,
        end_date=end_date,
        lot_id=lot_id,
        limit=limit,
        offset=offset,
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/scanned-boards/{record_id}",
    response_model=ScanRecordResponse,
    responses={
        403: {"description": "Not the record's owner", "model": ErrorResponse},
        404: {"description": "Record not found", "model": ErrorResponse},
    },
    summary="Get a single scan record",
)
async def get_scanned_board(
    record_id: UUID,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ScanRecordResponse:
    result = await scan_service.get_record(db, user, record_id)
    response.headers["Cache-Control"] = "private, no-cache"
    return result


@router.patch(
    "/scanned-boards/{record_id}",
    response_model=ScanRecordResponse,
    responses={
        403: {"description": "Not the record's owner", "model": ErrorResponse},
        404: {"description": "Record not found", "model": ErrorResponse},
    },
    summary="Partially update a scan record",
)
async def update_scanned_board(
    record_id: UUID,
    payload: ScanRecordUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ScanRecordResponse:
    return await scan_service.update_record(db, user, record_id, payload)


@router.get(
    "/files/{file_path:path}",
    summary="Serve a stored board photo",
    responses={
        200: {"description": "Image file"},
        403: {"description": "Photo belongs to another user's record", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(
    file_path: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FileResponse:
    full_path = await scan_service.resolve_image(db, user, file_path)
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "private, max-age=86400"},
    )
