"""
BoardScan Backend — Clock & Calendar Helpers
==============================================

What:  One place that answers "what time is it" and "which local day/month
       is it" for the service layer.
Why:   Timestamps are stored in UTC, but dashboards, activity_date buckets
       and listing date filters are calendar days in APP_TIMEZONE. Keeping
       the conversion here lets tests patch `utcnow` once.

SQLite returns naive datetimes even for DateTime(timezone=True) columns,
so values read back from the database go through `as_utc` before any
arithmetic.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from boardscan.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes; convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def app_tz() -> tzinfo:
    if settings.app_timezone.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(settings.app_timezone)


def local_today() -> date:
    return utcnow().astimezone(app_tz()).date()


def local_day_start(day: date) -> datetime:
    """UTC instant at which the given local calendar day begins."""
    return datetime.combine(day, time.min, tzinfo=app_tz()).astimezone(timezone.utc)


def local_day_end(day: date) -> datetime:
    """UTC instant at which the given local calendar day ends (exclusive)."""
    return local_day_start(day + timedelta(days=1))


def local_month_start(day: date) -> datetime:
    return local_day_start(day.replace(day=1))
