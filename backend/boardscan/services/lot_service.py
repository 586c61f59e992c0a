"""
BoardScan Backend — Lot Service (Batch Aggregation)
=====================================================

What:  Creates lots, moves scan records in and out of them, keeps their
       rollups correct and closes them.
Who:   routes/lots.py (admin only) and ScanService (when a record that sits
       in a lot changes weight or price).

Rollup maintenance:
    recompute_totals() re-derives total_weight, total_value and item_count
    from the member rows with one aggregate SELECT and writes all three in
    one UPDATE. Every membership change calls it for the target lot and for
    each lot a record was moved out of. Because it never applies deltas, two
    racing add_boards() calls converge once either recompute runs last.

Lifecycle decisions:
    - a closed lot is frozen: adding boards to it, or moving/removing boards
      that sit in it, raises ConflictError
    - closing an already closed lot raises ConflictError; closed_at keeps
      its original value
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from boardscan.models import LOT_STATUS_CLOSED, LOT_STATUS_OPEN, Lot, ScanRecord, User
from boardscan.schemas.lot import (
    BoardTypeCount,
    LotCreate,
    LotListResponse,
    LotResponse,
    LotStatsResponse,
)
from boardscan.schemas.scan import ScanRecordResponse
from boardscan.services import clock

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise ForbiddenError(message="Only admins can manage lots")


def _to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENTS)


def _unique(ids: Iterable[UUID]) -> List[UUID]:
    seen: Set[UUID] = set()
    ordered = []
    for board_id in ids:
        if board_id not in seen:
            seen.add(board_id)
            ordered.append(board_id)
    return ordered


class LotService:

    # ── Lookup ────────────────────────────────────────────────────────────

    async def _get_lot(self, db: AsyncSession, lot_id: UUID) -> Lot:
        result = await db.execute(select(Lot).where(Lot.id == lot_id))
        lot = result.scalar_one_or_none()
        if lot is None:
            raise NotFoundError(resource="lot", resource_id=str(lot_id))
        return lot

    async def _load_boards(self, db: AsyncSession, board_ids: List[UUID]) -> List[ScanRecord]:
        result = await db.execute(select(ScanRecord).where(ScanRecord.id.in_(board_ids)))
        boards = list(result.scalars().all())
        found = {b.id for b in boards}
        missing = [str(b) for b in board_ids if b not in found]
        if missing:
            raise NotFoundError(
                resource="scan record",
                resource_id=missing[0],
                context={"missing_ids": missing},
            )
        return boards

    async def _closed_lot_ids(self, db: AsyncSession, lot_ids: Set[UUID]) -> Set[UUID]:
        if not lot_ids:
            return set()
        result = await db.execute(
            select(Lot.id).where(Lot.id.in_(lot_ids), Lot.status == LOT_STATUS_CLOSED)
        )
        return set(result.scalars().all())

    async def get_lot(self, db: AsyncSession, actor: User, lot_id: UUID) -> LotResponse:
        _require_admin(actor)
        return LotResponse.model_validate(await self._get_lot(db, lot_id))

    async def list_lots(
        self,
        db: AsyncSession,
        actor: User,
        status: Optional[str] = None,
    ) -> LotListResponse:
        _require_admin(actor)
        if status is not None and status not in (LOT_STATUS_OPEN, LOT_STATUS_CLOSED):
            raise ValidationError(message=f"Invalid lot status '{status}'", field="status")

        query = select(Lot).order_by(Lot.created_at.desc())
        if status is not None:
            query = query.where(Lot.status == status)
        result = await db.execute(query)
        lots = [LotResponse.model_validate(lot) for lot in result.scalars().all()]
        return LotListResponse(lots=lots, total_count=len(lots))

    # ── Mutations ─────────────────────────────────────────────────────────

    async def create_lot(self, db: AsyncSession, actor: User, data: LotCreate) -> LotResponse:
        _require_admin(actor)
        name = data.name.strip()

        existing = await db.execute(select(Lot.id).where(Lot.name == name))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(message=f"A lot named '{name}' already exists", context={"name": name})

        lot = Lot(name=name, description=data.description, created_by=actor.id)
        db.add(lot)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(message=f"A lot named '{name}' already exists", context={"name": name})

        logger.info("Lot %s ('%s') created by %s", lot.id, name, actor.id)
        return LotResponse.model_validate(lot)

    async def add_boards(
        self,
        db: AsyncSession,
        actor: User,
        lot_id: UUID,
        board_ids: List[UUID],
    ) -> LotResponse:
        """
        Move every given record into the lot.

        A record belongs to at most one lot, so records already in another
        (open) lot leave it; that lot is recomputed too.

        Raises:
            NotFoundError: the lot or any record is missing (nothing moves)
            ConflictError: the target lot is closed, or a record sits in a
                closed lot
        """
        _require_admin(actor)
        board_ids = _unique(board_ids)

        lot = await self._get_lot(db, lot_id)
        if not lot.is_open:
            raise ConflictError(
                message=f"Lot '{lot.name}' is closed; boards can no longer be added",
                context={"lot_id": str(lot_id)},
            )

        boards = await self._load_boards(db, board_ids)
        previous_lots = {b.lot_id for b in boards if b.lot_id is not None and b.lot_id != lot_id}
        frozen = await self._closed_lot_ids(db, previous_lots)
        if frozen:
            raise ConflictError(
                message="Some boards belong to a closed lot and cannot be moved",
                context={"closed_lot_ids": sorted(str(i) for i in frozen)},
            )

        await db.execute(
            update(ScanRecord)
            .where(ScanRecord.id.in_(board_ids))
            .values(lot_id=lot_id)
            .execution_options(synchronize_session="fetch")
        )

        for previous in previous_lots:
            await self.recompute_totals(db, previous)
        await self.recompute_totals(db, lot_id)
        await db.refresh(lot)

        logger.info(
            "Added %d board(s) to lot %s (moved out of %d other lot(s))",
            len(board_ids),
            lot_id,
            len(previous_lots),
        )
        return LotResponse.model_validate(lot)

    async def remove_boards(
        self,
        db: AsyncSession,
        actor: User,
        board_ids: List[UUID],
    ) -> List[LotResponse]:
        """
        Detach every given record from whatever lot it is in.

        Returns the affected lots after recomputation.
        """
        _require_admin(actor)
        board_ids = _unique(board_ids)

        boards = await self._load_boards(db, board_ids)
        affected = {b.lot_id for b in boards if b.lot_id is not None}
        frozen = await self._closed_lot_ids(db, affected)
        if frozen:
            raise ConflictError(
                message="Some boards belong to a closed lot and cannot be removed",
                context={"closed_lot_ids": sorted(str(i) for i in frozen)},
            )

        await db.execute(
            update(ScanRecord)
            .where(ScanRecord.id.in_(board_ids))
            .values(lot_id=None)
            .execution_options(synchronize_session="fetch")
        )

        refreshed = []
        for affected_id in affected:
            refreshed.append(await self.recompute_totals(db, affected_id))

        logger.info("Removed %d board(s) from %d lot(s)", len(board_ids), len(affected))
        return refreshed

    async def recompute_totals(self, db: AsyncSession, lot_id: UUID) -> LotResponse:
        """
        Re-derive a lot's rollups from its current members.

        Absent weights and prices count as zero. Idempotent: a second call
        with no membership change writes the same values.
        """
        lot = await self._get_lot(db, lot_id)

        result = await db.execute(
            select(
                func.count(ScanRecord.id),
                func.coalesce(func.sum(ScanRecord.weight_kg), 0),
                func.coalesce(func.sum(ScanRecord.total_price), 0),
            ).where(ScanRecord.lot_id == lot_id)
        )
        item_count, total_weight, total_value = result.one()

        await db.execute(
            update(Lot)
            .where(Lot.id == lot_id)
            .values(
                item_count=int(item_count),
                total_weight=float(total_weight),
                total_value=_to_money(total_value),
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(lot)

        logger.debug(
            "Lot %s rollups: count=%d weight=%.3f value=%s",
            lot_id,
            lot.item_count,
            lot.total_weight,
            lot.total_value,
        )
        return LotResponse.model_validate(lot)

    async def recompute_lot(self, db: AsyncSession, actor: User, lot_id: UUID) -> LotResponse:
        """Admin-triggered repair of a lot's rollups."""
        _require_admin(actor)
        return await self.recompute_totals(db, lot_id)

    async def close_lot(self, db: AsyncSession, actor: User, lot_id: UUID) -> LotResponse:
        _require_admin(actor)
        lot = await self._get_lot(db, lot_id)
        if not lot.is_open:
            raise ConflictError(
                message=f"Lot '{lot.name}' is already closed",
                context={"lot_id": str(lot_id)},
            )

        lot.status = LOT_STATUS_CLOSED
        lot.closed_at = clock.utcnow()
        await db.flush()
        logger.info("Lot %s closed by %s", lot_id, actor.id)
        return LotResponse.model_validate(lot)

    # ── Reporting ─────────────────────────────────────────────────────────

    async def lot_stats(self, db: AsyncSession, actor: User, lot_id: UUID) -> LotStatsResponse:
        """Live totals plus a per-board-type count, most frequent first."""
        _require_admin(actor)
        await self._get_lot(db, lot_id)

        totals = await db.execute(
            select(
                func.count(ScanRecord.id),
                func.coalesce(func.sum(ScanRecord.weight_kg), 0),
                func.coalesce(func.sum(ScanRecord.total_price), 0),
            ).where(ScanRecord.lot_id == lot_id)
        )
        total_boards, total_weight, total_value = totals.one()

        board_count = func.count(ScanRecord.id).label("board_count")
        grouped = await db.execute(
            select(ScanRecord.board_type, board_count)
            .where(ScanRecord.lot_id == lot_id)
            .group_by(ScanRecord.board_type)
            .order_by(board_count.desc(), ScanRecord.board_type.asc())
        )

        return LotStatsResponse(
            lot_id=lot_id,
            total_boards=int(total_boards),
            total_weight=float(total_weight),
            total_value=_to_money(total_value),
            breakdown=[
                BoardTypeCount(board_type=board_type, count=count)
                for board_type, count in grouped.all()
            ],
        )

    async def list_boards(self, db: AsyncSession, actor: User, lot_id: UUID) -> List[ScanRecordResponse]:
        _require_admin(actor)
        await self._get_lot(db, lot_id)
        result = await db.execute(
            select(ScanRecord)
            .where(ScanRecord.lot_id == lot_id)
            .order_by(ScanRecord.created_at.desc())
        )
        return [ScanRecordResponse.from_record(r) for r in result.scalars().all()]


# ── Singleton Instance ────────────────────────────────────────────────────
lot_service = LotService()
