"""
Posting Streak Tracker.

Maintains consecutive-day posting streaks, congratulates users on
milestones, and reminds users whose streak will lapse at midnight.

Days are calendar days in the engine timezone, not rolling 24-hour windows.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from ...core.clock import (
    Clock,
    SystemClock,
    calendar_days_between,
    hours_between,
    next_midnight,
    start_of_day,
)
from ...core.logging import get_logger
from ..store.protocol import StreakFields
from .formatter import STREAK_MILESTONES, format_streak_at_risk, format_streak_milestone
from .types import NotificationType, ScanResult

if TYPE_CHECKING:
    from ..store.protocol import NotificationStore

logger = get_logger(__name__)

# Streaks shorter than this never get at-risk reminders
MIN_REMINDER_STREAK = 2

NotifyFn = Callable[..., Awaitable[Any]]


@dataclass
class StreakStatus:
    """A user's streak as of now."""

    current_streak: int
    longest_streak: int
    last_post_date: datetime | None
    is_at_risk: bool
    hours_until_streak_loss: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_post_date": self.last_post_date.isoformat() if self.last_post_date else None,
            "is_at_risk": self.is_at_risk,
            "hours_until_streak_loss": round(self.hours_until_streak_loss, 2),
        }


@dataclass
class StreakUpdate:
    """Outcome of recording a post."""

    new_streak: int
    milestone_reached: bool


def is_milestone(streak: int) -> bool:
    return streak in STREAK_MILESTONES


@dataclass
class StreakTracker:
    """
    Streak bookkeeping and streak notifications.

    ``notify`` is the dispatcher entry point used for milestone and
    reminder notifications.
    """

    store: NotificationStore
    notify: NotifyFn
    clock: Clock = field(default_factory=SystemClock)
    tz: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))
    reminder_hours: float = 4.0
    scan_limit: int = 100

    async def get_status(self, user_id: str) -> StreakStatus | None:
        """
        Current streak status, or None for an unknown user.

        A streak is at risk when the last post was yesterday and local
        midnight is within ``reminder_hours``.
        """
        user = await self.store.find_user(user_id)
        if user is None:
            return None

        now = self.clock.now()
        hours_left = 0.0
        at_risk = False

        if user.last_post_date is not None:
            days = calendar_days_between(user.last_post_date, now, self.tz)
            if days == 1:
                hours_left = hours_between(now, next_midnight(now, self.tz))
                at_risk = hours_left <= self.reminder_hours

        return StreakStatus(
            current_streak=user.current_streak,
            longest_streak=user.longest_streak,
            last_post_date=user.last_post_date,
            is_at_risk=at_risk,
            hours_until_streak_loss=hours_left,
        )

    async def record_post(self, user_id: str) -> StreakUpdate:
        """
        Update a user's streak for a post made now.

        Same day: unchanged. Next day: +1. Any gap (or first post): reset
        to 1. A milestone notification goes out when the new streak lands
        on a milestone.
        """
        user = await self.store.find_user(user_id)
        if user is None:
            return StreakUpdate(new_streak=0, milestone_reached=False)

        now = self.clock.now()
        new_streak = 1

        if user.last_post_date is not None:
            days = calendar_days_between(user.last_post_date, now, self.tz)
            if days <= 0:
                return StreakUpdate(new_streak=user.current_streak, milestone_reached=False)
            if days == 1:
                new_streak = user.current_streak + 1

        longest = max(new_streak, user.longest_streak)
        await self.store.update_streak_fields(
            user_id,
            StreakFields(current_streak=new_streak, longest_streak=longest, last_post_date=now),
        )

        milestone = is_milestone(new_streak)
        if milestone:
            await self._send_milestone(user_id, new_streak)

        logger.debug("Streak for %s is now %d (longest %d)", user_id, new_streak, longest)
        return StreakUpdate(new_streak=new_streak, milestone_reached=milestone)

    async def _send_milestone(self, user_id: str, streak: int) -> None:
        copy = format_streak_milestone(streak)
        if copy is None:
            return
        await self.notify(
            user_id,
            NotificationType.GENERAL,
            copy.title,
            copy.message,
            {"streakMilestone": True, "streakCount": streak},
        )
        logger.info("Sent %d-day streak milestone to %s", streak, user_id)

    async def send_at_risk_reminder(self, user_id: str, current_streak: int, hours_left: float) -> bool:
        """Send one at-risk reminder. Streaks below 2 are skipped."""
        if current_streak < MIN_REMINDER_STREAK:
            return False

        copy = format_streak_at_risk(current_streak, hours_left)
        notification = await self.notify(
            user_id,
            NotificationType.GENERAL,
            copy.title,
            copy.message,
            {
                "streakReminder": True,
                "currentStreak": current_streak,
                "hoursLeft": int(hours_left),
            },
        )
        return notification is not None

    async def scan_at_risk_users(self) -> ScanResult:
        """
        Remind users who posted yesterday but not yet today.

        Candidates are always counted; reminders only go out when the scan
        runs within ``reminder_hours`` of local midnight.
        """
        now = self.clock.now()
        today = start_of_day(now, self.tz)
        yesterday_date = today.date() - timedelta(days=1)
        yesterday = datetime(
            yesterday_date.year, yesterday_date.month, yesterday_date.day, tzinfo=self.tz
        )

        try:
            candidates = await self.store.list_streak_reminder_candidates(
                min_streak=MIN_REMINDER_STREAK,
                posted_from=yesterday,
                posted_before=today,
                limit=self.scan_limit,
            )
        except Exception as e:
            logger.error("Failed to load streak reminder candidates: %s", e)
            return ScanResult()

        hours_left = hours_between(now, next_midnight(now, self.tz))
        sent = 0

        if hours_left <= self.reminder_hours:
            for user in candidates:
                if await self.send_at_risk_reminder(user.id, user.current_streak, hours_left):
                    sent += 1

        logger.info("Streak reminders: processed %d users, sent %d", len(candidates), sent)
        return ScanResult(processed=len(candidates), sent=sent)
