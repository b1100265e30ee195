"""
Clock abstraction and calendar helpers.

Components take a Clock instead of calling datetime.now() so periodic jobs
and time windows can be driven deterministically. All clocks return
timezone-aware UTC datetimes; conversion to the engine's local timezone
happens at the edges via the calendar helpers below.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)


@dataclass
class ManualClock:
    """
    Clock that only moves when told to.

    Naive datetimes are treated as UTC.
    """

    current: datetime

    def __post_init__(self) -> None:
        self.current = ensure_aware(self.current)

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        """
        Move the clock forward.

        Accepts either a timedelta or timedelta keyword arguments
        (e.g. ``clock.advance(hours=2)``).
        """
        step = delta if delta is not None else timedelta(**kwargs)
        self.current = self.current + step
        return self.current

    def set(self, when: datetime) -> None:
        self.current = ensure_aware(when)


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes; leave aware ones alone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_epoch(dt: datetime) -> float:
    """Convert a datetime to Unix epoch seconds."""
    return ensure_aware(dt).timestamp()


def from_epoch(ts: float) -> datetime:
    """Convert Unix epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def local_date(dt: datetime, tz: ZoneInfo) -> date:
    """Calendar day of ``dt`` in ``tz``."""
    return ensure_aware(dt).astimezone(tz).date()


def start_of_day(dt: datetime, tz: ZoneInfo) -> datetime:
    """Local midnight at the start of the calendar day containing ``dt``."""
    day = local_date(dt, tz)
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def next_midnight(dt: datetime, tz: ZoneInfo) -> datetime:
    """Local midnight at the end of the calendar day containing ``dt``."""
    day = local_date(dt, tz) + timedelta(days=1)
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def calendar_days_between(earlier: datetime, later: datetime, tz: ZoneInfo) -> int:
    """
    Number of calendar days from ``earlier`` to ``later`` in ``tz``.

    Midnight-to-midnight, not 24-hour rolling: 23:59 and 00:01 the next day
    are one day apart.
    """
    return (local_date(later, tz) - local_date(earlier, tz)).days


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed hours from ``earlier`` to ``later``."""
    return (ensure_aware(later) - ensure_aware(earlier)).total_seconds() / 3600
