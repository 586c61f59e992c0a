"""
BoardScan Backend — Lot SQLAlchemy Model
==========================================

What:  ORM model for the `lots` table: a named batch of scan records.
Who:   Managed exclusively by LotService (admin only).

Lifecycle:
    open ──close()──▶ closed        (one-way; closed is terminal)

Rollup columns (total_weight, total_value, item_count):
    Denormalized copies of aggregates over the scan_records pointing at this
    lot. They are never incremented or decremented in place. LotService
    recomputes all three from the member rows after every membership change
    and writes them in a single UPDATE, so any earlier drift heals itself.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from boardscan.database import Base

LOT_STATUS_OPEN = "open"
LOT_STATUS_CLOSED = "closed"


class Lot(Base):
    __tablename__ = "lots"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Lot code printed on the physical bin; unique across all lots
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LOT_STATUS_OPEN,
        server_default=text("'open'"),
        comment="Lifecycle state: open, closed",
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
    )

    # ── Rollups ───────────────────────────────────────────────────────────
    total_weight: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
        comment="Sum of member weight_kg (absent weights count as 0)",
    )
    total_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        server_default=text("0"),
        comment="Sum of member total_price (absent prices count as 0)",
    )
    item_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # Set exactly once, on the open → closed transition
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("idx_lots_status", "status"),
        Index("idx_lots_created_at", created_at.desc()),
        Index("idx_lots_created_by", "created_by"),
    )

    @property
    def is_open(self) -> bool:
        return self.status == LOT_STATUS_OPEN

    def __repr__(self) -> str:
        return (
            f"<Lot(id={self.id}, name='{self.name}', status='{self.status}', "
            f"item_count={self.item_count})>"
        )
