"""
BoardScan Backend — Activity Session Service
==============================================

What:  Tracks how long users spend in the app: open a session, heartbeat it,
       close it, and summarize completed sessions.
Who:   routes/activity.py.

Session rules:
    - At most one open session per user. start() returns the open one if it
      exists; a concurrent start() that loses the race on the partial unique
      index gets the winner's session back.
    - ping() only moves last_active_at. A closed session is never reopened.
    - end() is a conditional UPDATE ... WHERE ended_at IS NULL, so the
      duration is written exactly once even if two end() calls race.

Abandoned sessions (client vanished without end()) stay open; there is no
automatic timeout.
"""

import logging
import math
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import distinct, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.exceptions import NotFoundError, ValidationError
from boardscan.models import ActivitySession, User
from boardscan.schemas.activity import (
    ActivitySessionListResponse,
    ActivitySessionResponse,
    ActivityStatsResponse,
)
from boardscan.services import clock

logger = logging.getLogger(__name__)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ActivityService:

    async def _open_session_for(self, db: AsyncSession, user_id: UUID) -> Optional[ActivitySession]:
        result = await db.execute(
            select(ActivitySession).where(
                ActivitySession.user_id == user_id,
                ActivitySession.ended_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def start_session(self, db: AsyncSession, actor: User) -> ActivitySessionResponse:
        # Captured up front: the rollback below expires `actor`
        user_id = actor.id
        existing = await self._open_session_for(db, user_id)
        if existing is not None:
            logger.debug("Reusing open activity session %s for user %s", existing.id, user_id)
            return ActivitySessionResponse.model_validate(existing)

        now = clock.utcnow()
        session = ActivitySession(
            user_id=user_id,
            started_at=now,
            last_active_at=now,
            activity_date=clock.local_today(),
        )
        db.add(session)
        try:
            await db.flush()
        except IntegrityError:
            # Lost the race: another request opened a session in between.
            # start is the only write in its request, so a full rollback is safe.
            await db.rollback()
            winner = await self._open_session_for(db, user_id)
            if winner is None:
                raise
            logger.info("Concurrent session start for user %s resolved to %s", user_id, winner.id)
            return ActivitySessionResponse.model_validate(winner)

        logger.info("Activity session %s started for user %s", session.id, user_id)
        return ActivitySessionResponse.model_validate(session)

    async def ping_session(
        self,
        db: AsyncSession,
        actor: User,
        session_id: UUID,
    ) -> ActivitySessionResponse:
        result = await db.execute(
            select(ActivitySession).where(
                ActivitySession.id == session_id,
                ActivitySession.user_id == actor.id,
            )
        )
        session = result.scalar_one_or_none()
        if session is None or session.ended_at is not None:
            raise NotFoundError(resource="activity session", resource_id=str(session_id))

        session.last_active_at = clock.utcnow()
        await db.flush()
        return ActivitySessionResponse.model_validate(session)

    async def end_session(
        self,
        db: AsyncSession,
        actor: User,
        session_id: UUID,
    ) -> ActivitySessionResponse:
        """
        Close the caller's open session and record its duration.

        duration_seconds = floor(ended_at - started_at), never negative.

        Raises:
            NotFoundError: no such open session for this user (including a
                second end() on the same session)
        """
        result = await db.execute(
            select(ActivitySession).where(
                ActivitySession.id == session_id,
                ActivitySession.user_id == actor.id,
                ActivitySession.ended_at.is_(None),
            )
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFoundError(resource="activity session", resource_id=str(session_id))

        ended_at = clock.utcnow()
        elapsed = (ended_at - clock.as_utc(session.started_at)).total_seconds()
        duration = max(0, math.floor(elapsed))

        outcome = await db.execute(
            update(ActivitySession)
            .where(
                ActivitySession.id == session_id,
                ActivitySession.ended_at.is_(None),
            )
            .values(
                ended_at=ended_at,
                last_active_at=ended_at,
                duration_seconds=duration,
            )
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount == 0:
            raise NotFoundError(resource="activity session", resource_id=str(session_id))

        await db.refresh(session)
        logger.info(
            "Activity session %s ended for user %s after %ds",
            session_id,
            actor.id,
            duration,
        )
        return ActivitySessionResponse.model_validate(session)

    async def list_sessions(
        self,
        db: AsyncSession,
        actor: User,
        user_id: Optional[UUID] = None,
        limit: int = 20,
    ) -> ActivitySessionListResponse:
        target = user_id if actor.is_admin else actor.id
        query = select(ActivitySession).order_by(ActivitySession.started_at.desc()).limit(limit)
        if target is not None:
            query = query.where(ActivitySession.user_id == target)

        result = await db.execute(query)
        return ActivitySessionListResponse(
            sessions=[ActivitySessionResponse.model_validate(s) for s in result.scalars().all()]
        )

    async def activity_stats(
        self,
        db: AsyncSession,
        actor: User,
        user_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ActivityStatsResponse:
        """
        Summarize sessions whose activity_date falls in [start_date, end_date].

        Non-admins always get their own figures, whatever user_id they pass.
        Admins may omit user_id to aggregate over everyone.
        """
        if start_date and end_date and start_date > end_date:
            raise ValidationError(message="start_date must not be after end_date", field="start_date")

        target = user_id if actor.is_admin else actor.id

        filters = []
        if target is not None:
            filters.append(ActivitySession.user_id == target)
        if start_date is not None:
            filters.append(ActivitySession.activity_date >= start_date)
        if end_date is not None:
            filters.append(ActivitySession.activity_date <= end_date)

        completed = await db.execute(
            select(
                func.count(ActivitySession.id),
                func.coalesce(func.sum(ActivitySession.duration_seconds), 0),
            ).where(*filters, ActivitySession.ended_at.is_not(None))
        )
        total_sessions, total_seconds = completed.one()

        days = await db.execute(
            select(func.count(distinct(ActivitySession.activity_date))).where(*filters)
        )
        active_days = days.scalar() or 0

        total_minutes = _round_half_up(Decimal(int(total_seconds)) / 60)
        average = _round_half_up(Decimal(total_minutes) / total_sessions) if total_sessions else 0

        return ActivityStatsResponse(
            total_sessions=total_sessions,
            total_minutes=total_minutes,
            average_session_minutes=average,
            active_days=active_days,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
activity_service = ActivityService()
