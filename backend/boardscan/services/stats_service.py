"""
BoardScan Backend — Dashboard Statistics Service
==================================================

What:  Assembles the dashboard numbers on demand from scan_records and users.
Who:   GET /api/dashboard/stats.

"Today" and "this month" are local calendar periods in APP_TIMEZONE,
translated into UTC bounds before querying. The top-N breakdowns group
over the whole table; ties are broken alphabetically so the order is
stable between calls.
"""

import logging
from decimal import Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.config import settings
from boardscan.exceptions import DatabaseError
from boardscan.models import ROLE_USER, ScanRecord, User
from boardscan.schemas.stats import DashboardStatsResponse, NameCount
from boardscan.services import clock

logger = logging.getLogger(__name__)


class StatsService:

    async def _top(self, db: AsyncSession, column, limit: int) -> List[NameCount]:
        occurrences = func.count(ScanRecord.id).label("occurrences")
        result = await db.execute(
            select(column, occurrences)
            .group_by(column)
            .order_by(occurrences.desc(), column.asc())
            .limit(limit)
        )
        return [NameCount(name=name, count=count) for name, count in result.all()]

    async def _count_since(self, db: AsyncSession, since) -> int:
        result = await db.execute(
            select(func.count(ScanRecord.id)).where(ScanRecord.created_at >= since)
        )
        return result.scalar() or 0

    async def dashboard_stats(self, db: AsyncSession) -> DashboardStatsResponse:
        """
        Counts, sums and top-N lists for the dashboard.

        With no records every count is 0, sums are 0 and the lists are empty.
        """
        today = clock.local_today()
        top_n = settings.dashboard_top_n

        try:
            totals = await db.execute(
                select(
                    func.count(ScanRecord.id),
                    func.coalesce(func.sum(ScanRecord.weight_kg), 0),
                    func.coalesce(func.sum(ScanRecord.total_price), 0),
                )
            )
            total_scans, total_weight, total_value = totals.one()

            scans_today = await self._count_since(db, clock.local_day_start(today))
            scans_this_month = await self._count_since(db, clock.local_month_start(today))

            top_board_types = await self._top(db, ScanRecord.board_type, top_n)
            top_categories = await self._top(db, ScanRecord.category, top_n)

            users = await db.execute(
                select(func.count(User.id)).where(
                    User.role == ROLE_USER,
                    User.is_active.is_(True),
                )
            )
            active_users = users.scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error assembling dashboard stats: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load dashboard statistics. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return DashboardStatsResponse(
            scans_today=scans_today,
            scans_this_month=scans_this_month,
            total_scans=total_scans,
            total_weight=float(total_weight),
            total_value=Decimal(str(total_value)).quantize(Decimal("0.01")),
            top_board_types=top_board_types,
            top_categories=top_categories,
            active_users=active_users,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
stats_service = StatsService()
