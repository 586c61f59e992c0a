"""
BoardScan Backend — Lot Service Tests
=======================================

What:  LotService against a real (in-memory SQLite) database.

What we test:
    ✅ Adding boards recomputes count, weight and value
    ✅ recompute_totals is idempotent
    ✅ Moving boards between lots updates both lots
    ✅ Closed lots are frozen; closing twice is a conflict
    ✅ Missing lot / missing boards → NotFoundError, nothing moves
    ✅ Non-admins cannot manage lots
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from boardscan.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from boardscan.models import ScanRecord
from boardscan.schemas.lot import LotCreate
from boardscan.services.lot_service import LotService


@pytest.fixture
def service():
    return LotService()


async def _lot(service, db, admin, name="LOT-001"):
    return await service.create_lot(db, admin, LotCreate(name=name))


class TestLotLifecycle:

    @pytest.mark.asyncio
    async def test_create_lot_starts_empty_and_open(self, service, db_session, admin):
        lot = await _lot(service, db_session, admin)

        assert lot.status == "open"
        assert lot.item_count == 0
        assert lot.total_weight == 0
        assert lot.total_value == Decimal("0")
        assert lot.closed_at is None

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, service, db_session, admin):
        await _lot(service, db_session, admin, name="LOT-7")
        with pytest.raises(ConflictError):
            await _lot(service, db_session, admin, name="LOT-7")

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, service, db_session, user):
        with pytest.raises(ForbiddenError):
            await _lot(service, db_session, user)

    @pytest.mark.asyncio
    async def test_close_sets_closed_at_and_second_close_conflicts(self, service, db_session, admin):
        lot = await _lot(service, db_session, admin)

        closed = await service.close_lot(db_session, admin, lot.id)
        assert closed.status == "closed"
        assert closed.closed_at is not None

        with pytest.raises(ConflictError):
            await service.close_lot(db_session, admin, lot.id)

    @pytest.mark.asyncio
    async def test_list_lots_filters_by_status(self, service, db_session, admin):
        first = await _lot(service, db_session, admin, name="A")
        await _lot(service, db_session, admin, name="B")
        await service.close_lot(db_session, admin, first.id)

        open_lots = await service.list_lots(db_session, admin, status="open")
        closed_lots = await service.list_lots(db_session, admin, status="closed")

        assert [l.name for l in open_lots.lots] == ["B"]
        assert [l.name for l in closed_lots.lots] == ["A"]

    @pytest.mark.asyncio
    async def test_list_lots_rejects_unknown_status(self, service, db_session, admin):
        with pytest.raises(ValidationError):
            await service.list_lots(db_session, admin, status="archived")


class TestLotMembership:

    @pytest.mark.asyncio
    async def test_add_boards_recomputes_totals(self, service, db_session, admin, user, make_record):
        """1.5 kg @ 2.00 + 2.0 kg @ 3.00 → 2 boards, 3.5 kg, 9.00."""
        lot = await _lot(service, db_session, admin)
        a = await make_record(user, weight_kg=1.5, price_per_kg="2")
        b = await make_record(user, weight_kg=2.0, price_per_kg="3")

        result = await service.add_boards(db_session, admin, lot.id, [a.id, b.id])

        assert result.item_count == 2
        assert result.total_weight == pytest.approx(3.5)
        assert result.total_value == Decimal("9.00")

        stats = await service.lot_stats(db_session, admin, lot.id)
        assert stats.total_boards == 2
        assert stats.total_weight == pytest.approx(3.5)
        assert stats.total_value == Decimal("9.00")

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, service, db_session, admin, user, make_record):
        lot = await _lot(service, db_session, admin)
        a = await make_record(user, weight_kg=1.25, price_per_kg="4")
        await service.add_boards(db_session, admin, lot.id, [a.id])

        first = await service.recompute_lot(db_session, admin, lot.id)
        second = await service.recompute_lot(db_session, admin, lot.id)

        assert (first.item_count, first.total_weight, first.total_value) == (
            second.item_count,
            second.total_weight,
            second.total_value,
        )
        assert second.total_value == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_boards_without_pricing_count_as_zero(self, service, db_session, admin, user, make_record):
        lot = await _lot(service, db_session, admin)
        a = await make_record(user)
        b = await make_record(user, weight_kg=2.0)

        result = await service.add_boards(db_session, admin, lot.id, [a.id, b.id])

        assert result.item_count == 2
        assert result.total_weight == pytest.approx(2.0)
        assert result.total_value == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_moving_boards_updates_both_lots(self, service, db_session, admin, user, make_record):
        source = await _lot(service, db_session, admin, name="SRC")
        target = await _lot(service, db_session, admin, name="DST")
        a = await make_record(user, weight_kg=1.0, price_per_kg="10")
        b = await make_record(user, weight_kg=3.0, price_per_kg="1")
        await service.add_boards(db_session, admin, source.id, [a.id, b.id])

        await service.add_boards(db_session, admin, target.id, [a.id])

        src = await service.get_lot(db_session, admin, source.id)
        dst = await service.get_lot(db_session, admin, target.id)
        assert src.item_count == 1
        assert src.total_value == Decimal("3.00")
        assert dst.item_count == 1
        assert dst.total_value == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_duplicate_ids_are_counted_once(self, service, db_session, admin, user, make_record):
        lot = await _lot(service, db_session, admin)
        a = await make_record(user, weight_kg=1.0, price_per_kg="1")

        result = await service.add_boards(db_session, admin, lot.id, [a.id, a.id])
        assert result.item_count == 1

    @pytest.mark.asyncio
    async def test_missing_board_moves_nothing(self, service, db_session, admin, user, make_record):
        lot = await _lot(service, db_session, admin)
        a = await make_record(user, weight_kg=1.0, price_per_kg="1")

        with pytest.raises(NotFoundError) as exc_info:
            await service.add_boards(db_session, admin, lot.id, [a.id, uuid4()])

        assert "missing_ids" in exc_info.value.context
        row = await db_session.execute(select(ScanRecord.lot_id).where(ScanRecord.id == a.id))
        assert row.scalar_one() is None

    @pytest.mark.asyncio
    async def test_missing_lot_raises_not_found(self, service, db_session, admin, user, make_record):
        a = await make_record(user)
        with pytest.raises(NotFoundError):
            await service.add_boards(db_session, admin, uuid4(), [a.id])

    @pytest.mark.asyncio
    async def test_closed_lot_rejects_new_boards(self, service, db_session, admin, user, make_record):
        lot = await _lot(service, db_session, admin)
        await service.close_lot(db_session, admin, lot.id)
        a = await make_record(user)

        with pytest.raises(ConflictError):
            await service.add_boards(db_session, admin, lot.id, [a.id])

    @pytest.mark.asyncio
    async def test_boards_in_closed_lot_cannot_move_or_leave(self, service, db_session, admin, user, make_record):
        closed = await _lot(service, db_session, admin, name="CLOSED")
        other = await _lot(service, db_session, admin, name="OTHER")
        a = await make_record(user, weight_kg=1.0, price_per_kg="1")
        await service.add_boards(db_session, admin, closed.id, [a.id])
        await service.close_lot(db_session, admin, closed.id)

        with pytest.raises(ConflictError):
            await service.add_boards(db_session, admin, other.id, [a.id])
        with pytest.raises(ConflictError):
            await service.remove_boards(db_session, admin, [a.id])

    @pytest.mark.asyncio
    async def test_remove_boards_recomputes_previous_lot(self, service, db_session, admin, user, make_record):
        lot = await _lot(service, db_session, admin)
        a = await make_record(user, weight_kg=1.5, price_per_kg="2")
        b = await make_record(user, weight_kg=2.0, price_per_kg="3")
        await service.add_boards(db_session, admin, lot.id, [a.id, b.id])

        affected = await service.remove_boards(db_session, admin, [b.id])

        assert len(affected) == 1
        assert affected[0].item_count == 1
        assert affected[0].total_value == Decimal("3.00")
        boards = await service.list_boards(db_session, admin, lot.id)
        assert [r.id for r in boards] == [a.id]


class TestLotStats:

    @pytest.mark.asyncio
    async def test_breakdown_orders_by_count_then_name(self, service, db_session, admin, user, make_record):
        lot = await _lot(service, db_session, admin)
        ids = []
        for board_type in ("PSU", "Main", "PSU", "Inverter"):
            ids.append((await make_record(user, board_type=board_type)).id)
        await service.add_boards(db_session, admin, lot.id, ids)

        stats = await service.lot_stats(db_session, admin, lot.id)

        assert [(b.board_type, b.count) for b in stats.breakdown] == [
            ("PSU", 2),
            ("Inverter", 1),
            ("Main", 1),
        ]

    @pytest.mark.asyncio
    async def test_empty_lot_stats(self, service, db_session, admin):
        lot = await _lot(service, db_session, admin)
        stats = await service.lot_stats(db_session, admin, lot.id)

        assert stats.total_boards == 0
        assert stats.total_weight == 0
        assert stats.breakdown == []
