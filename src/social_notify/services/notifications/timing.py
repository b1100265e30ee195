"""
Notification Timing Optimizer.

Learns when each user tends to read notifications and uses those hours to
decide whether now is a good moment for a push, or when the next good
moment is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from ...core.clock import Clock, SystemClock, ensure_aware
from ...core.logging import get_logger
from .state import MemoryStateStore, StateStore

if TYPE_CHECKING:
    from ..store.protocol import NotificationStore

logger = get_logger(__name__)

DEFAULT_OPTIMAL_HOURS: list[int] = [9, 12, 18, 20]

LOOKBACK_DAYS = 30
SAMPLE_LIMIT = 100
PEAK_HOUR_COUNT = 4

# Within this many hours of an optimal hour counts as a good time
GOOD_TIME_TOLERANCE = 2

KEY_PREFIX = "activity:"


@dataclass
class ActivityPattern:
    """Read activity bucketed by local hour of day."""

    user_id: str
    hourly_activity: list[int]
    peak_hours: list[int]
    total_reads: int
    computed_at: datetime

    @property
    def optimal_hours(self) -> list[int]:
        """Peak hours, or the defaults when the user has no read history."""
        if all(self.hourly_activity[h] == 0 for h in self.peak_hours):
            return list(DEFAULT_OPTIMAL_HOURS)
        return list(self.peak_hours)


def compute_peak_hours(hourly_activity: list[int], count: int = PEAK_HOUR_COUNT) -> list[int]:
    """Top hours by activity, ties broken by the earlier hour."""
    ranked = sorted(range(24), key=lambda hour: (-hourly_activity[hour], hour))
    return ranked[:count]


def is_near_hour(current_hour: int, optimal_hour: int) -> bool:
    """True when the hours are within tolerance, wrapping at midnight."""
    diff = abs(current_hour - optimal_hour)
    return diff <= GOOD_TIME_TOLERANCE or diff >= 24 - GOOD_TIME_TOLERANCE


@dataclass
class TimingOptimizer:
    """
    Per-user optimal send hours derived from read history.

    Patterns are cached in the state store for ``pattern_ttl``. Store
    failures fall back to the default hours.
    """

    store: NotificationStore
    state: StateStore | None = None
    clock: Clock = field(default_factory=SystemClock)
    tz: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))
    pattern_ttl: timedelta = field(default_factory=lambda: timedelta(hours=1))

    def __post_init__(self) -> None:
        if self.state is None:
            self.state = MemoryStateStore(clock=self.clock)

    def _key(self, user_id: str) -> str:
        return f"{KEY_PREFIX}{user_id}"

    def _empty_pattern(self, user_id: str) -> ActivityPattern:
        return ActivityPattern(
            user_id=user_id,
            hourly_activity=[0] * 24,
            peak_hours=list(DEFAULT_OPTIMAL_HOURS),
            total_reads=0,
            computed_at=self.clock.now(),
        )

    async def get_activity_pattern(self, user_id: str) -> ActivityPattern:
        """
        Read-activity histogram for a user, cached for ``pattern_ttl``.

        Uses up to the 100 most recent read notifications from the last
        30 days, bucketed by creation hour in the engine timezone.
        """
        cached: ActivityPattern | None = self.state.get(self._key(user_id))
        if cached is not None:
            return cached

        now = self.clock.now()
        since = now - timedelta(days=LOOKBACK_DAYS)

        try:
            reads = await self.store.read_notifications_since(user_id, since, SAMPLE_LIMIT)
        except Exception as e:
            logger.error("Failed to load activity for user %s: %s", user_id, e)
            return self._empty_pattern(user_id)

        hourly = [0] * 24
        for notification in reads:
            hour = ensure_aware(notification.created_at).astimezone(self.tz).hour
            hourly[hour] += 1

        pattern = ActivityPattern(
            user_id=user_id,
            hourly_activity=hourly,
            peak_hours=compute_peak_hours(hourly),
            total_reads=len(reads),
            computed_at=now,
        )
        self.state.set(self._key(user_id), pattern, ttl=self.pattern_ttl)
        return pattern

    async def get_optimal_hours(self, user_id: str) -> list[int]:
        """Up to four local hours (0-23) at which the user is most active."""
        pattern = await self.get_activity_pattern(user_id)
        return pattern.optimal_hours

    async def is_good_time_now(self, user_id: str) -> bool:
        optimal = await self.get_optimal_hours(user_id)
        current_hour = self.clock.now().astimezone(self.tz).hour
        return any(is_near_hour(current_hour, hour) for hour in optimal)

    async def get_next_optimal_time(self, user_id: str) -> datetime:
        """
        Next top-of-hour at an optimal hour.

        The optimal list is scanned in order for the first hour later than
        the current one; failing that, the first optimal hour tomorrow.
        """
        optimal = await self.get_optimal_hours(user_id)
        local_now = self.clock.now().astimezone(self.tz)

        for hour in optimal:
            if hour > local_now.hour:
                return local_now.replace(hour=hour, minute=0, second=0, microsecond=0)

        first = optimal[0] if optimal else DEFAULT_OPTIMAL_HOURS[0]
        tomorrow = local_now.date() + timedelta(days=1)
        return datetime(tomorrow.year, tomorrow.month, tomorrow.day, first, tzinfo=self.tz)

    def invalidate(self, user_id: str) -> bool:
        """Drop a cached pattern so the next lookup recomputes it."""
        return self.state.delete(self._key(user_id))
