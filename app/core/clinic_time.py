"""Calendar-day helpers in the clinic's timezone."""

from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo

from app.config import settings


@lru_cache
def clinic_tz(name: str | None = None) -> ZoneInfo:
    """Timezone the clinic's calendar days are defined in."""
    return ZoneInfo(name or settings.clinic_timezone)


def utcnow() -> datetime:
    """Current aware UTC timestamp."""
    return datetime.now(UTC)


def today() -> date:
    """Current calendar day at the clinic."""
    return datetime.now(clinic_tz()).date()


def day_start(day: date) -> datetime:
    """Aware datetime at local midnight of ``day``; this is how dates are stored."""
    return datetime.combine(day, time.min, tzinfo=clinic_tz())


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` range covering ``day``."""
    return day_start(day), day_start(day + timedelta(days=1))


def calendar_day(value: Any) -> date | None:
    """
    Calendar day of a stored date value.

    Accepts aware or naive datetimes (naive ones are taken as clinic-local),
    plain dates and ISO strings. Anything else yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(clinic_tz()).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None
