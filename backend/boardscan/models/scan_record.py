"""
BoardScan Backend — ScanRecord SQLAlchemy Model
=================================================

What:  ORM model for the `scan_records` table: one persisted classification.
Why:   Every photographed board becomes one row; lots and dashboards are
       computed from these rows.
Who:   Written by ScanService, re-parented by LotService, read by StatsService.

Pricing invariant:
    total_price = weight_kg × price_per_kg   when both inputs are present
    total_price = NULL                       when either input is absent

    total_price is never accepted from a client. ScanService derives it on
    create and on every update that touches weight_kg or price_per_kg.

Index rationale:
    - user_id: non-admin listings always filter by owner
    - lot_id: lot rollups aggregate over members
    - created_at DESC: listings and dashboards read newest first
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
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from boardscan.database import Base


class ScanRecord(Base):
    __tablename__ = "scan_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Creator of the record; ownership drives authorization
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
    )

    # ── Classification ────────────────────────────────────────────────────
    board_type: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="Unknown",
        server_default=text("'Unknown'"),
        comment="Source device family: TV, notebook, radio, ...",
    )
    device_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="Unknown",
        server_default=text("'Unknown'"),
        comment="Board role inside the device: main board, power board, ...",
    )
    manufacturer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    confidence: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment="Classifier confidence, clamped to [0, 1]",
    )

    # Relative to STORAGE_ROOT; NULL for records entered without a photo
    image_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Geolocation ───────────────────────────────────────────────────────
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # ── Weight & Pricing ──────────────────────────────────────────────────
    weight_kg: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    price_per_kg: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    total_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Derived: weight_kg * price_per_kg",
    )

    # ── Lot membership ────────────────────────────────────────────────────
    lot_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("lots.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Free-text notes from the classifier (not used for aggregation)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_scan_records_user_id", "user_id"),
        Index("idx_scan_records_lot_id", "lot_id"),
        Index("idx_scan_records_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<ScanRecord(id={self.id}, board_type='{self.board_type}', "
            f"lot_id={self.lot_id})>"
        )
