"""
BoardScan Backend — Scan Service (Business Logic Orchestrator)
================================================================

What:  Creates, updates, reads and lists scan records, including the
       upload → classify → persist workflow behind POST /api/scan.
Who:   routes/scans.py.

Scan workflow (POST /api/scan):
    ┌──────────┐    ┌─────────────┐    ┌──────────────┐    ┌──────────┐
    │  Upload  │───▶│  Validate   │───▶│  Gemini      │───▶│  Persist │
    │  (Route) │    │  & Store    │    │  (classify)  │    │  (DB)    │
    └──────────┘    └─────────────┘    └──────────────┘    └──────────┘

    If classification or persistence fails the stored image is removed
    and no record exists afterwards.

Derived pricing:
    total_price = weight_kg × price_per_kg, rounded half-up to cents, when
    both are present; NULL otherwise. It is recomputed whenever an update
    touches either input, from the merged (stored + updated) values.

Authorization:
    - get/update: the record's creator or any admin, otherwise ForbiddenError
    - stored photos: served only to whoever may read the record that owns them
    - list: non-admins always see only their own records; the user_id filter
      is honoured for admins only
"""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.exceptions import (
    BoardScanError,
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from boardscan.models import Lot, ScanRecord, User
from boardscan.schemas.scan import (
    ScanRecordCreate,
    ScanRecordListResponse,
    ScanRecordResponse,
    ScanRecordUpdate,
    ScanResultResponse,
)
from boardscan.services import clock
from boardscan.services.gemini_service import gemini_service
from boardscan.services.image_service import image_service
from boardscan.services.lot_service import lot_service
from boardscan.services.vision_base import clamp_confidence

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")
_PRICING_FIELDS = {"weight_kg", "price_per_kg"}
_REQUIRED_FIELDS = {"board_type", "category", "device_type"}

MAX_PAGE_SIZE = 100


def compute_total_price(
    weight_kg: Optional[float],
    price_per_kg: Optional[Decimal],
) -> Optional[Decimal]:
    """
    weight × unit price, rounded half-up to 2 decimal places.

    The float weight goes through str() so 1.1 kg multiplies as 1.1, not
    1.100000000000000088817841970012523.
    """
    if weight_kg is None or price_per_kg is None:
        return None
    product = Decimal(str(weight_kg)) * Decimal(str(price_per_kg))
    return product.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _can_access(actor: User, record: ScanRecord) -> bool:
    return actor.is_admin or record.user_id == actor.id


class ScanService:

    async def _require_open_lot(self, db: AsyncSession, lot_id: UUID) -> Lot:
        result = await db.execute(select(Lot).where(Lot.id == lot_id))
        lot = result.scalar_one_or_none()
        if lot is None:
            raise NotFoundError(resource="lot", resource_id=str(lot_id))
        if not lot.is_open:
            raise ConflictError(
                message=f"Lot '{lot.name}' is closed; boards can no longer be added",
                context={"lot_id": str(lot_id)},
            )
        return lot

    async def _get_accessible(self, db: AsyncSession, actor: User, record_id: UUID) -> ScanRecord:
        result = await db.execute(select(ScanRecord).where(ScanRecord.id == record_id))
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError(resource="scan record", resource_id=str(record_id))
        if not _can_access(actor, record):
            raise ForbiddenError(message="You can only access your own scan records")
        return record

    # ── Create ────────────────────────────────────────────────────────────

    async def scan_image(
        self,
        db: AsyncSession,
        actor: User,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
        location: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        weight_kg: Optional[float] = None,
        price_per_kg: Optional[Decimal] = None,
        lot_id: Optional[UUID] = None,
    ) -> ScanResultResponse:
        """
        Store a board photo, classify it and persist the result.

        Raises:
            ValidationError: bad file type/size (nothing stored)
            NotFoundError / ConflictError: lot_id missing or closed (nothing stored)
            UpstreamFailureError: classification failed (image removed, no record)
            DatabaseError: persistence failed (image removed, no record)
        """
        if lot_id is not None:
            await self._require_open_lot(db, lot_id)

        absolute_path, relative_path = await image_service.validate_and_store(
            filename=filename,
            content=content,
            content_length=content_length,
        )

        try:
            classification = await gemini_service.classify_board(absolute_path)

            record = ScanRecord(
                user_id=actor.id,
                board_type=classification.board_type,
                category=classification.category,
                device_type=classification.device_type,
                manufacturer=classification.manufacturer,
                model=classification.model,
                confidence=clamp_confidence(classification.confidence),
                image_path=relative_path,
                location=location,
                latitude=latitude,
                longitude=longitude,
                weight_kg=weight_kg,
                price_per_kg=price_per_kg,
                total_price=compute_total_price(weight_kg, price_per_kg),
                lot_id=lot_id,
                description=classification.description,
            )
            db.add(record)
            await db.flush()

            if lot_id is not None:
                await lot_service.recompute_totals(db, lot_id)

        except BoardScanError:
            await image_service.remove_image(absolute_path)
            raise
        except SQLAlchemyError as e:
            await image_service.remove_image(absolute_path)
            logger.error("Database error persisting scan: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="The scan could not be saved. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info(
            "Scan %s recorded for user %s: '%s' (confidence=%.2f)",
            record.id,
            actor.id,
            record.board_type,
            record.confidence,
        )
        return ScanResultResponse(
            record=ScanRecordResponse.from_record(record),
            components=classification.components,
            description=classification.description,
        )

    async def create_record(
        self,
        db: AsyncSession,
        actor: User,
        data: ScanRecordCreate,
    ) -> ScanRecordResponse:
        """Persist a record from structured data; total_price is derived."""
        if data.lot_id is not None:
            await self._require_open_lot(db, data.lot_id)

        record = ScanRecord(
            user_id=actor.id,
            **data.model_dump(),
            total_price=compute_total_price(data.weight_kg, data.price_per_kg),
        )
        db.add(record)
        await db.flush()

        if data.lot_id is not None:
            await lot_service.recompute_totals(db, data.lot_id)

        logger.info("Scan record %s created by user %s", record.id, actor.id)
        return ScanRecordResponse.from_record(record)

    # ── Read ──────────────────────────────────────────────────────────────

    async def get_record(self, db: AsyncSession, actor: User, record_id: UUID) -> ScanRecordResponse:
        return ScanRecordResponse.from_record(await self._get_accessible(db, actor, record_id))

    async def resolve_image(self, db: AsyncSession, actor: User, image_path: str) -> Path:
        """Absolute path of a stored photo, checked against the record that owns it."""
        result = await db.execute(
            select(ScanRecord.user_id).where(ScanRecord.image_path == image_path).limit(1)
        )
        owner_id = result.scalar_one_or_none()
        if owner_id is None:
            raise NotFoundError(resource="file", resource_id=image_path)
        if not actor.is_admin and owner_id != actor.id:
            raise ForbiddenError(message="You can only view photos of your own scan records")
        return image_service.resolve_stored_path(image_path)

    async def list_records(
        self,
        db: AsyncSession,
        actor: User,
        user_id: Optional[UUID] = None,
        board_type: Optional[str] = None,
        category: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        lot_id: Optional[UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ScanRecordListResponse:
        """
        Filtered, offset-paginated listing, newest first.

        Date bounds are inclusive local calendar days (APP_TIMEZONE).
        """
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(message=f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
        if offset < 0:
            raise ValidationError(message="offset must not be negative", field="offset")
        if start_date and end_date and start_date > end_date:
            raise ValidationError(message="start_date must not be after end_date", field="start_date")

        owner = user_id if actor.is_admin else actor.id

        filters = []
        if owner is not None:
            filters.append(ScanRecord.user_id == owner)
        if board_type:
            filters.append(ScanRecord.board_type.icontains(board_type, autoescape=True))
        if category:
            filters.append(ScanRecord.category == category)
        if start_date is not None:
            filters.append(ScanRecord.created_at >= clock.local_day_start(start_date))
        if end_date is not None:
            filters.append(ScanRecord.created_at < clock.local_day_end(end_date))
        if lot_id is not None:
            filters.append(ScanRecord.lot_id == lot_id)

        try:
            count_result = await db.execute(select(func.count(ScanRecord.id)).where(*filters))
            total_count = count_result.scalar() or 0

            result = await db.execute(
                select(ScanRecord)
                .where(*filters)
                .order_by(ScanRecord.created_at.desc(), ScanRecord.id.desc())
                .limit(limit)
                .offset(offset)
            )
            records = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing scan records: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve scan records. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return ScanRecordListResponse(
            records=[ScanRecordResponse.from_record(r) for r in records],
            total_count=total_count,
            limit=limit,
            offset=offset,
        )

    # ── Update ────────────────────────────────────────────────────────────

    async def update_record(
        self,
        db: AsyncSession,
        actor: User,
        record_id: UUID,
        data: ScanRecordUpdate,
    ) -> ScanRecordResponse:
        record = await self._get_accessible(db, actor, record_id)
        changes = data.model_dump(exclude_unset=True)

        for field_name in _REQUIRED_FIELDS:
            if field_name in changes and changes[field_name] is None:
                raise ValidationError(message=f"{field_name} cannot be null", field=field_name)

        for field_name, value in changes.items():
            setattr(record, field_name, value)

        if _PRICING_FIELDS & changes.keys():
            record.total_price = compute_total_price(record.weight_kg, record.price_per_kg)

        await db.flush()

        if record.lot_id is not None and _PRICING_FIELDS & changes.keys():
            await lot_service.recompute_totals(db, record.lot_id)

        logger.info("Scan record %s updated by %s: %s", record_id, actor.id, sorted(changes))
        return ScanRecordResponse.from_record(record)


# ── Singleton Instance ────────────────────────────────────────────────────
scan_service = ScanService()
