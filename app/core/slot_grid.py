"""Daily appointment slot grid.

Every clinic day has the same grid. Labels use one canonical format,
zero-padded 12-hour time (``08:00 AM``, ``12:30 PM``); older records written
as ``8:00 AM`` are normalized on read.
"""

import re
from collections.abc import Iterable
from datetime import date
from functools import lru_cache

from app.config import settings

_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?\s*$")


def format_slot_label(minute_of_day: int) -> str:
    """Format minutes since midnight as a canonical slot label."""
    hour, minute = divmod(minute_of_day, 60)
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour:02d}:{minute:02d} {period}"


def slot_minutes(label: str) -> int:
    """
    Minutes since midnight for a slot label.

    Accepts ``HH:MM AM/PM`` with or without a leading zero, and 24-hour
    ``HH:MM``.

    Raises:
        ValueError: If the label cannot be parsed
    """
    match = _LABEL_RE.match(label or "")
    if not match:
        raise ValueError(f"Invalid time slot label: {label!r}")

    hour, minute, period = int(match.group(1)), int(match.group(2)), match.group(3)
    if minute > 59:
        raise ValueError(f"Invalid time slot label: {label!r}")

    if period:
        if not 1 <= hour <= 12:
            raise ValueError(f"Invalid time slot label: {label!r}")
        hour = hour % 12
        if period.upper() == "PM":
            hour += 12
    elif hour > 23:
        raise ValueError(f"Invalid time slot label: {label!r}")

    return hour * 60 + minute


def normalize_slot_label(label: str) -> str:
    """Return the canonical form of a slot label (``8:00 am`` -> ``08:00 AM``)."""
    return format_slot_label(slot_minutes(label))


def sort_slot_labels(labels: Iterable[str]) -> list[str]:
    """Order labels chronologically by minute of day."""
    return sorted(labels, key=slot_minutes)


@lru_cache
def generate_time_slots(
    start_hour: int = 8,
    end_hour: int = 17,
    interval_minutes: int = 30,
) -> tuple[str, ...]:
    """
    Build the slot grid from ``start_hour`` up to, not including, ``end_hour``.

    The defaults give 18 slots, ``08:00 AM`` through ``04:30 PM``.
    """
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    if not 0 <= start_hour < end_hour <= 24:
        raise ValueError("Slot day must satisfy 0 <= start_hour < end_hour <= 24")

    return tuple(
        format_slot_label(minute)
        for minute in range(start_hour * 60, end_hour * 60, interval_minutes)
    )


def get_slot_grid() -> tuple[str, ...]:
    """Slot grid configured for this deployment."""
    return generate_time_slots(
        settings.slot_day_start_hour,
        settings.slot_day_end_hour,
        settings.slot_interval_minutes,
    )


def slot_claim_id(day: date, label: str) -> str:
    """Document ID that reserves ``label`` on ``day`` (e.g. ``2026-10-16_0900AM``)."""
    return f"{day.isoformat()}_{label.replace(':', '').replace(' ', '')}"
