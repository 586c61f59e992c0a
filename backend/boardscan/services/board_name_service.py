"""
BoardScan Backend — Board Name Catalog Service
================================================

Admin-only CRUD over the board-name catalog. Deletes are soft
(is_active = False); listing and search only return active entries.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from boardscan.models import BoardName, User
from boardscan.schemas.board_name import (
    BoardNameCreate,
    BoardNameListResponse,
    BoardNameResponse,
    BoardNameUpdate,
)

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise ForbiddenError(message="Only admins can manage the board name catalog")


class BoardNameService:

    async def _get(self, db: AsyncSession, board_name_id: UUID) -> BoardName:
        result = await db.execute(select(BoardName).where(BoardName.id == board_name_id))
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError(resource="board name", resource_id=str(board_name_id))
        return entry

    async def _ensure_unique(
        self,
        db: AsyncSession,
        board_type: str,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        query = select(BoardName.id).where(BoardName.board_type == board_type)
        if exclude_id is not None:
            query = query.where(BoardName.id != exclude_id)
        result = await db.execute(query)
        if result.first() is not None:
            raise ConflictError(
                message=f"Board type '{board_type}' already exists in the catalog",
                context={"board_type": board_type},
            )

    async def create(self, db: AsyncSession, actor: User, data: BoardNameCreate) -> BoardNameResponse:
        _require_admin(actor)
        await self._ensure_unique(db, data.board_type)

        entry = BoardName(**data.model_dump(), created_by=actor.id)
        db.add(entry)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                message=f"Board type '{data.board_type}' already exists in the catalog",
                context={"board_type": data.board_type},
            )

        logger.info("Board name '%s' added by %s", entry.board_type, actor.id)
        return BoardNameResponse.model_validate(entry)

    async def update(
        self,
        db: AsyncSession,
        actor: User,
        board_name_id: UUID,
        data: BoardNameUpdate,
    ) -> BoardNameResponse:
        _require_admin(actor)
        entry = await self._get(db, board_name_id)
        changes = data.model_dump(exclude_unset=True)

        for field_name in ("board_type", "category", "device_type", "is_active"):
            if field_name in changes and changes[field_name] is None:
                raise ValidationError(message=f"{field_name} cannot be null", field=field_name)
        if "board_type" in changes and changes["board_type"] != entry.board_type:
            await self._ensure_unique(db, changes["board_type"], exclude_id=entry.id)

        for field_name, value in changes.items():
            setattr(entry, field_name, value)
        await db.flush()
        await db.refresh(entry)
        return BoardNameResponse.model_validate(entry)

    async def delete(self, db: AsyncSession, actor: User, board_name_id: UUID) -> BoardNameResponse:
        _require_admin(actor)
        entry = await self._get(db, board_name_id)
        entry.is_active = False
        await db.flush()
        await db.refresh(entry)
        logger.info("Board name '%s' deactivated by %s", entry.board_type, actor.id)
        return BoardNameResponse.model_validate(entry)

    async def list_entries(
        self,
        db: AsyncSession,
        actor: User,
        category: Optional[str] = None,
    ) -> BoardNameListResponse:
        _require_admin(actor)
        query = (
            select(BoardName)
            .where(BoardName.is_active.is_(True))
            .order_by(BoardName.created_at.desc(), BoardName.board_type.asc())
        )
        if category:
            query = query.where(BoardName.category == category)
        result = await db.execute(query)
        return BoardNameListResponse(
            board_names=[BoardNameResponse.model_validate(e) for e in result.scalars().all()]
        )

    async def search(self, db: AsyncSession, actor: User, q: str) -> BoardNameListResponse:
        _require_admin(actor)
        term = (q or "").strip()
        if not term:
            raise ValidationError(message="Search query must not be empty", field="q")

        result = await db.execute(
            select(BoardName)
            .where(
                BoardName.is_active.is_(True),
                BoardName.board_type.icontains(term, autoescape=True),
            )
            .order_by(BoardName.board_type.asc())
            .limit(SEARCH_LIMIT)
        )
        return BoardNameListResponse(
            board_names=[BoardNameResponse.model_validate(e) for e in result.scalars().all()]
        )


# ── Singleton Instance ────────────────────────────────────────────────────
board_name_service = BoardNameService()
