"""
BoardScan Backend — Scan Service Tests
========================================

What:  Scan workflow, derived pricing, record updates and listing rules.
How:   Real in-memory database; image storage and Gemini are mocked at the
       scan_service module level.

What we test:
    ✅ total_price derivation and half-up rounding
    ✅ Scan workflow persists the classification
    ✅ Classification failure removes the image and leaves no record
    ✅ Updates re-derive total_price and the owning lot's rollups
    ✅ Ownership rules for get/update/list
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select

from boardscan.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
)
from boardscan.models import ScanRecord
from boardscan.schemas.lot import LotCreate
from boardscan.schemas.scan import ScanRecordCreate, ScanRecordUpdate
from boardscan.services.lot_service import lot_service
from boardscan.services.scan_service import ScanService, compute_total_price
from boardscan.services.vision_base import BoardClassification


@pytest.fixture
def service():
    return ScanService()


class TestComputeTotalPrice:

    def test_multiplies_and_rounds_half_up(self):
        assert compute_total_price(1.5, Decimal("2")) == Decimal("3.00")
        assert compute_total_price(0.125, Decimal("1.00")) == Decimal("0.13")
        assert compute_total_price(1.1, Decimal("3.33")) == Decimal("3.66")

    def test_missing_input_gives_none(self):
        assert compute_total_price(None, Decimal("2")) is None
        assert compute_total_price(1.0, None) is None

    def test_zero_weight_is_zero_not_none(self):
        assert compute_total_price(0.0, Decimal("5")) == Decimal("0.00")


class TestScanImage:

    @pytest.mark.asyncio
    async def test_scan_persists_classification(self, service, db_session, user):
        classification = BoardClassification(
            board_type="Samsung BN41-02568A",
            category="TV",
            device_type="Main board",
            manufacturer="Samsung",
            confidence=0.87,
            components=["SoC", "eMMC"],
            description="TV main board",
        )
        with patch("boardscan.services.scan_service.image_service") as mock_images, \
             patch("boardscan.services.scan_service.gemini_service") as mock_gemini:
            mock_images.validate_and_store = AsyncMock(
                return_value=("/abs/2025/01/01/x.jpg", "2025/01/01/x.jpg")
            )
            mock_images.remove_image = AsyncMock()
            mock_gemini.classify_board = AsyncMock(return_value=classification)

            result = await service.scan_image(
                db=db_session,
                actor=user,
                filename="board.jpg",
                content=b"bytes",
                weight_kg=1.5,
                price_per_kg=Decimal("2"),
            )

        assert result.record.board_type == "Samsung BN41-02568A"
        assert result.record.confidence == pytest.approx(0.87)
        assert result.record.total_price == Decimal("3.00")
        assert result.record.image_url == "/api/files/2025/01/01/x.jpg"
        assert result.components == ["SoC", "eMMC"]
        mock_gemini.classify_board.assert_awaited_once_with("/abs/2025/01/01/x.jpg")
        mock_images.remove_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_classification_failure_leaves_nothing_behind(self, service, db_session, user):
        with patch("boardscan.services.scan_service.image_service") as mock_images, \
             patch("boardscan.services.scan_service.gemini_service") as mock_gemini:
            mock_images.validate_and_store = AsyncMock(return_value=("/abs/y.jpg", "y.jpg"))
            mock_images.remove_image = AsyncMock()
            mock_gemini.classify_board = AsyncMock(
                side_effect=UpstreamFailureError(message="down", retry_after=60)
            )

            with pytest.raises(UpstreamFailureError):
                await service.scan_image(
                    db=db_session, actor=user, filename="board.jpg", content=b"bytes"
                )

            mock_images.remove_image.assert_awaited_once_with("/abs/y.jpg")

        count = await db_session.execute(select(func.count(ScanRecord.id)))
        assert count.scalar() == 0

    @pytest.mark.asyncio
    async def test_closed_lot_rejected_before_storing(self, service, db_session, admin, user):
        lot = await lot_service.create_lot(db_session, admin, LotCreate(name="DONE"))
        await lot_service.close_lot(db_session, admin, lot.id)

        with patch("boardscan.services.scan_service.image_service") as mock_images:
            mock_images.validate_and_store = AsyncMock()
            with pytest.raises(ConflictError):
                await service.scan_image(
                    db=db_session, actor=user, filename="b.jpg", content=b"x", lot_id=lot.id
                )
            mock_images.validate_and_store.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scan_into_lot_updates_rollups(self, service, db_session, admin, user):
        lot = await lot_service.create_lot(db_session, admin, LotCreate(name="LIVE"))

        with patch("boardscan.services.scan_service.image_service") as mock_images, \
             patch("boardscan.services.scan_service.gemini_service") as mock_gemini:
            mock_images.validate_and_store = AsyncMock(return_value=("/abs/z.jpg", "z.jpg"))
            mock_gemini.classify_board = AsyncMock(return_value=BoardClassification())

            await service.scan_image(
                db=db_session,
                actor=user,
                filename="b.jpg",
                content=b"x",
                weight_kg=2.0,
                price_per_kg=Decimal("3"),
                lot_id=lot.id,
            )

        refreshed = await lot_service.get_lot(db_session, admin, lot.id)
        assert refreshed.item_count == 1
        assert refreshed.total_value == Decimal("6.00")


class TestRecordCrud:

    @pytest.mark.asyncio
    async def test_create_derives_total_price(self, service, db_session, user):
        record = await service.create_record(
            db_session,
            user,
            ScanRecordCreate(board_type="PSU", weight_kg=2.0, price_per_kg=Decimal("1.25")),
        )
        assert record.total_price == Decimal("2.50")
        assert record.confidence == 1.0
        assert record.user_id == user.id

    def test_total_price_cannot_be_supplied(self):
        with pytest.raises(PydanticValidationError):
            ScanRecordCreate(board_type="PSU", total_price=Decimal("99"))

    @pytest.mark.asyncio
    async def test_update_recomputes_total_price(self, service, db_session, user, make_record):
        record = await make_record(user, weight_kg=1.0, price_per_kg="2")

        updated = await service.update_record(
            db_session, user, record.id, ScanRecordUpdate(weight_kg=4.0)
        )
        assert updated.total_price == Decimal("8.00")

        cleared = await service.update_record(
            db_session, user, record.id, ScanRecordUpdate(price_per_kg=None)
        )
        assert cleared.total_price is None

    @pytest.mark.asyncio
    async def test_update_unrelated_field_keeps_price(self, service, db_session, user, make_record):
        record = await make_record(user, weight_kg=1.0, price_per_kg="2")
        updated = await service.update_record(
            db_session, user, record.id, ScanRecordUpdate(location="Bay 3")
        )
        assert updated.location == "Bay 3"
        assert updated.total_price == Decimal("2.00")

    @pytest.mark.asyncio
    async def test_update_refreshes_lot_totals(self, service, db_session, admin, user, make_record):
        lot = await lot_service.create_lot(db_session, admin, LotCreate(name="L"))
        record = await make_record(user, weight_kg=1.0, price_per_kg="2")
        await lot_service.add_boards(db_session, admin, lot.id, [record.id])

        await service.update_record(db_session, user, record.id, ScanRecordUpdate(weight_kg=3.0))

        refreshed = await lot_service.get_lot(db_session, admin, lot.id)
        assert refreshed.total_weight == pytest.approx(3.0)
        assert refreshed.total_value == Decimal("6.00")

    @pytest.mark.asyncio
    async def test_admin_can_update_any_record(self, service, db_session, admin, user, make_record):
        lot = await lot_service.create_lot(db_session, admin, LotCreate(name="ADMIN-EDIT"))
        record = await make_record(user, weight_kg=1.0, price_per_kg="2")
        await lot_service.add_boards(db_session, admin, lot.id, [record.id])

        updated = await service.update_record(db_session, admin, record.id, ScanRecordUpdate(weight_kg=3.0))

        assert updated.total_price == Decimal("6.00")
        assert updated.user_id == user.id
        refreshed = await lot_service.get_lot(db_session, admin, lot.id)
        assert refreshed.total_value == Decimal("6.00")

    @pytest.mark.asyncio
    async def test_required_field_cannot_be_nulled(self, service, db_session, user, make_record):
        record = await make_record(user)
        with pytest.raises(ValidationError):
            await service.update_record(
                db_session, user, record.id, ScanRecordUpdate(board_type=None)
            )

    @pytest.mark.asyncio
    async def test_other_users_record_forbidden(self, service, db_session, user, other_user, make_record):
        record = await make_record(user)
        with pytest.raises(ForbiddenError):
            await service.get_record(db_session, other_user, record.id)
        with pytest.raises(ForbiddenError):
            await service.update_record(
                db_session, other_user, record.id, ScanRecordUpdate(location="x")
            )

    @pytest.mark.asyncio
    async def test_admin_can_read_any_record(self, service, db_session, user, admin, make_record):
        record = await make_record(user)
        fetched = await service.get_record(db_session, admin, record.id)
        assert fetched.id == record.id

    @pytest.mark.asyncio
    async def test_missing_record_not_found(self, service, db_session, user):
        with pytest.raises(NotFoundError):
            await service.get_record(db_session, user, uuid4())

    @pytest.mark.asyncio
    async def test_photo_access_follows_record_owner(self, service, db_session, user, other_user, make_record):
        await make_record(user, image_path="2025/01/02/owned.jpg")
        with pytest.raises(ForbiddenError):
            await service.resolve_image(db_session, other_user, "2025/01/02/owned.jpg")
        with pytest.raises(NotFoundError):
            await service.resolve_image(db_session, user, "2025/01/02/nobody.jpg")


class TestListRecords:

    @pytest.mark.asyncio
    async def test_non_admin_sees_only_own_records(self, service, db_session, user, other_user, make_record):
        await make_record(user)
        await make_record(other_user)

        result = await service.list_records(db_session, user, user_id=other_user.id)

        assert result.total_count == 1
        assert all(r.user_id == user.id for r in result.records)

    @pytest.mark.asyncio
    async def test_admin_sees_everyone_or_filters(self, service, db_session, user, other_user, admin, make_record):
        await make_record(user)
        await make_record(other_user)

        everyone = await service.list_records(db_session, admin)
        filtered = await service.list_records(db_session, admin, user_id=other_user.id)

        assert everyone.total_count == 2
        assert filtered.total_count == 1

    @pytest.mark.asyncio
    async def test_newest_first_with_pagination(self, service, db_session, user, make_record):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            await make_record(user, board_type=f"B{i}", created_at=base + timedelta(hours=i))

        page = await service.list_records(db_session, user, limit=2, offset=1)

        assert page.total_count == 5
        assert [r.board_type for r in page.records] == ["B3", "B2"]

    @pytest.mark.asyncio
    async def test_board_type_filter_is_case_insensitive_substring(self, service, db_session, user, make_record):
        await make_record(user, board_type="Samsung Main Board")
        await make_record(user, board_type="LG PSU")

        result = await service.list_records(db_session, user, board_type="main")
        assert [r.board_type for r in result.records] == ["Samsung Main Board"]

    @pytest.mark.asyncio
    async def test_date_filter_is_inclusive(self, service, db_session, user, make_record):
        await make_record(user, board_type="early", created_at=datetime(2025, 1, 1, 23, 59, tzinfo=timezone.utc))
        await make_record(user, board_type="inside", created_at=datetime(2025, 1, 2, 12, 0, tzinfo=timezone.utc))
        await make_record(user, board_type="late", created_at=datetime(2025, 1, 3, 0, 0, tzinfo=timezone.utc))

        d = datetime(2025, 1, 2).date()
        result = await service.list_records(db_session, user, start_date=d, end_date=d)
        assert [r.board_type for r in result.records] == ["inside"]

    @pytest.mark.asyncio
    async def test_invalid_paging_rejected(self, service, db_session, user):
        with pytest.raises(ValidationError):
            await service.list_records(db_session, user, limit=0)
        with pytest.raises(ValidationError):
            await service.list_records(db_session, user, limit=101)
        with pytest.raises(ValidationError):
            await service.list_records(db_session, user, offset=-1)
