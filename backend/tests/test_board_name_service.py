"""
BoardScan Backend — Board Name Catalog Tests
==============================================
"""

from uuid import uuid4

import pytest

from boardscan.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from boardscan.schemas.board_name import BoardNameCreate, BoardNameUpdate
from boardscan.services.board_name_service import BoardNameService


@pytest.fixture
def service():
    return BoardNameService()


def _entry(board_type="BN41-02568A", category="TV", device_type="Main board"):
    return BoardNameCreate(board_type=board_type, category=category, device_type=device_type)


class TestCatalogMutations:

    @pytest.mark.asyncio
    async def test_create_and_duplicate(self, service, db_session, admin):
        created = await service.create(db_session, admin, _entry())
        assert created.is_active is True
        assert created.created_by == admin.id

        with pytest.raises(ConflictError):
            await service.create(db_session, admin, _entry())

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, service, db_session, user):
        with pytest.raises(ForbiddenError):
            await service.create(db_session, user, _entry())
        with pytest.raises(ForbiddenError):
            await service.list_entries(db_session, user)

    @pytest.mark.asyncio
    async def test_rename_onto_existing_conflicts(self, service, db_session, admin):
        await service.create(db_session, admin, _entry(board_type="A"))
        second = await service.create(db_session, admin, _entry(board_type="B"))

        with pytest.raises(ConflictError):
            await service.update(db_session, admin, second.id, BoardNameUpdate(board_type="A"))

    @pytest.mark.asyncio
    async def test_update_partial_fields(self, service, db_session, admin):
        entry = await service.create(db_session, admin, _entry())
        updated = await service.update(
            db_session, admin, entry.id, BoardNameUpdate(manufacturer="Samsung")
        )
        assert updated.manufacturer == "Samsung"
        assert updated.board_type == entry.board_type

    @pytest.mark.asyncio
    async def test_null_required_field_rejected(self, service, db_session, admin):
        entry = await service.create(db_session, admin, _entry())
        with pytest.raises(ValidationError):
            await service.update(db_session, admin, entry.id, BoardNameUpdate(category=None))

    @pytest.mark.asyncio
    async def test_delete_is_soft_and_hides_entry(self, service, db_session, admin):
        entry = await service.create(db_session, admin, _entry())

        deleted = await service.delete(db_session, admin, entry.id)
        listed = await service.list_entries(db_session, admin)

        assert deleted.is_active is False
        assert listed.board_names == []

    @pytest.mark.asyncio
    async def test_missing_entry_not_found(self, service, db_session, admin):
        with pytest.raises(NotFoundError):
            await service.delete(db_session, admin, uuid4())


class TestCatalogQueries:

    @pytest.mark.asyncio
    async def test_list_filters_by_category(self, service, db_session, admin):
        await service.create(db_session, admin, _entry(board_type="TV-1", category="TV"))
        await service.create(db_session, admin, _entry(board_type="NB-1", category="Notebook"))

        result = await service.list_entries(db_session, admin, category="Notebook")
        assert [e.board_type for e in result.board_names] == ["NB-1"]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_and_sorted(self, service, db_session, admin):
        for name in ("Zeta Main Board", "alpha main board", "Power Supply"):
            await service.create(db_session, admin, _entry(board_type=name))

        result = await service.search(db_session, admin, "MAIN")
        assert [e.board_type for e in result.board_names] == ["Zeta Main Board", "alpha main board"]

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, service, db_session, admin):
        await service.create(db_session, admin, _entry(board_type="100% board"))
        await service.create(db_session, admin, _entry(board_type="1000 board"))

        result = await service.search(db_session, admin, "100%")
        assert [e.board_type for e in result.board_names] == ["100% board"]

    @pytest.mark.asyncio
    async def test_empty_search_rejected(self, service, db_session, admin):
        with pytest.raises(ValidationError):
            await service.search(db_session, admin, "   ")
