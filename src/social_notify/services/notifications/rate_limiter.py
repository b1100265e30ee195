"""
Per-User Notification Rate Limiter.

Two independent ceilings per user:
- daily: every notification the engine persists
- hourly: push deliveries only

Windows reset lazily. The first read after a window expires zeroes the
counter and opens a new window measured from that moment.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from ...core.clock import Clock, SystemClock, from_epoch, to_epoch
from ...core.logging import get_logger
from .state import MemoryStateStore, StateStore

logger = get_logger(__name__)

DAY_SECONDS = 24 * 3600
HOUR_SECONDS = 3600

# Entries whose daily window ended this long ago are evicted by cleanup()
STALE_AFTER_SECONDS = 2 * DAY_SECONDS

KEY_PREFIX = "ratelimit:"


@dataclass
class RateLimitState:
    """Counters and window ends (epoch seconds) for one user."""

    daily_count: int
    hourly_push_count: int
    daily_reset_at: float
    hourly_reset_at: float


@dataclass
class RateLimiter:
    """
    Per-user daily notification and hourly push ceilings.

    check and record are synchronous, so a single call never interleaves
    with another coroutine. Two coroutines can still both pass a check
    before either records.
    """

    state: StateStore | None = None
    clock: Clock = field(default_factory=SystemClock)
    max_per_day: int = 15
    max_push_per_hour: int = 5

    def __post_init__(self) -> None:
        if self.state is None:
            self.state = MemoryStateStore(clock=self.clock)

    def _key(self, user_id: str) -> str:
        return f"{KEY_PREFIX}{user_id}"

    def _load(self, user_id: str) -> RateLimitState:
        """Fetch a user's state, creating or resetting expired windows."""
        now = to_epoch(self.clock.now())
        key = self._key(user_id)
        current: RateLimitState | None = self.state.get(key)

        if current is None:
            current = RateLimitState(
                daily_count=0,
                hourly_push_count=0,
                daily_reset_at=now + DAY_SECONDS,
                hourly_reset_at=now + HOUR_SECONDS,
            )
            self.state.set(key, current)
            return current

        if now >= current.daily_reset_at:
            current.daily_count = 0
            current.daily_reset_at = now + DAY_SECONDS

        if now >= current.hourly_reset_at:
            current.hourly_push_count = 0
            current.hourly_reset_at = now + HOUR_SECONDS

        self.state.set(key, current)
        return current

    def can_send_notification(self, user_id: str) -> bool:
        """True while the user is under the daily ceiling."""
        return self._load(user_id).daily_count < self.max_per_day

    def can_send_push(self, user_id: str) -> bool:
        """True while the user is under the hourly push ceiling."""
        return self._load(user_id).hourly_push_count < self.max_push_per_hour

    def record_sent(self, user_id: str) -> None:
        current = self._load(user_id)
        current.daily_count += 1
        self.state.set(self._key(user_id), current)

    def record_push_sent(self, user_id: str) -> None:
        current = self._load(user_id)
        current.hourly_push_count += 1
        self.state.set(self._key(user_id), current)

    def get_status(self, user_id: str) -> dict[str, Any]:
        """Counters, remaining allowance and window ends for a user."""
        current = self._load(user_id)
        status = asdict(current)
        status.update(
            {
                "user_id": user_id,
                "daily_remaining": max(0, self.max_per_day - current.daily_count),
                "hourly_push_remaining": max(
                    0, self.max_push_per_hour - current.hourly_push_count
                ),
                "daily_reset_at": from_epoch(current.daily_reset_at).isoformat(),
                "hourly_reset_at": from_epoch(current.hourly_reset_at).isoformat(),
            }
        )
        return status

    def cleanup(self) -> int:
        """
        Remove stale rate-limit entries to prevent memory growth.

        Removes entries whose daily window ended more than 2 days ago.

        Returns:
            Number of entries removed
        """
        cutoff = to_epoch(self.clock.now()) - STALE_AFTER_SECONDS
        removed = 0

        for key in self.state.keys(KEY_PREFIX):
            current: RateLimitState | None = self.state.get(key)
            if current is not None and current.daily_reset_at < cutoff:
                self.state.delete(key)
                removed += 1

        if removed:
            logger.info("Cleaned up %d stale rate limit entries", removed)
        return removed

    @property
    def tracked_users(self) -> int:
        return len(self.state.keys(KEY_PREFIX))
