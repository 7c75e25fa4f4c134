"""UTC clock and date-tag helpers used by the mirror resolver and staleness policy."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalise ``value`` to UTC, treating naive datetimes as already UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def release_tag(day: date) -> str:
    """Return the npm release tag for ``day`` (``2024.5.1``, no zero padding)."""

    return f"{day.year}.{day.month}.{day.day}"


def pages_tag(day: date) -> str:
    """Return the pages-mirror subdomain tag for ``day`` (``2024-05-01``)."""

    return day.isoformat()


def tomorrow(day: date) -> date:
    return day + timedelta(days=1)


__all__ = [
    "Clock",
    "utc_now",
    "as_utc",
    "release_tag",
    "pages_tag",
    "tomorrow",
]
