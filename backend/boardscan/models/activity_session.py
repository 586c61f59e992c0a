"""
BoardScan Backend — ActivitySession SQLAlchemy Model
======================================================

What:  ORM model for the `activity_sessions` table: one continuous period of
       a user's engagement with the app, used for time-spent analytics.

Lifecycle:
    start() → open   (ended_at NULL, duration_seconds NULL)
    ping()  → open   (last_active_at moves forward)
    end()   → closed (ended_at and duration_seconds set once)

duration_seconds is computed once, at close, from ended_at - started_at.
Heartbeats never contribute to it; they only show when the client was last
seen.

The partial unique index allows at most one open session per user. The
service already returns the existing open session on start(); the index
catches two concurrent start() calls that both saw no open session.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from boardscan.database import Base


class ActivitySession(Base):
    __tablename__ = "activity_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_active_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Whole seconds, floor of (ended_at - started_at)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Calendar day (application timezone) the session started on
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_activity_sessions_user_activity", "user_id", "activity_date"),
        Index("idx_activity_sessions_started_at", "started_at"),
        Index(
            "uq_activity_sessions_one_open_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("ended_at IS NULL"),
            sqlite_where=text("ended_at IS NULL"),
        ),
    )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def __repr__(self) -> str:
        return (
            f"<ActivitySession(id={self.id}, user_id={self.user_id}, "
            f"open={self.is_open})>"
        )
