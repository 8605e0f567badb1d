"""Utility functions for time handling.

Engine timestamps are timezone-aware. Wall-clock decisions (lighting window,
daily watering rollover) use the local time of the injected clock; stored
timestamps can be normalised to UTC with coerce_datetime().
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, leave aware ones untouched."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def hour_of_day(dt: datetime) -> float:
    """Fractional hour of the day, e.g. 06:30 -> 6.5."""
    return dt.hour + dt.minute / 60.0 + dt.second / 3600.0


def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce value to datetime, returning None on failure.

    Args:
        value: String or datetime to coerce

    Returns:
        Datetime in timezone.utc or None if invalid
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    else:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed
