"""
Re-engagement Scheduler.

Nudges users who have gone quiet. The message depends on how long the
user has been away (24h, 3 days, 7 days) and on what happened in the
meantime. At most one nudge per cooldown period.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from ...core.clock import Clock, SystemClock, hours_between
from ...core.logging import get_logger
from .formatter import (
    FIRST_NUDGE_HOURS,
    SECOND_NUDGE_HOURS,
    THIRD_NUDGE_HOURS,
    build_reengagement_message,
)
from .types import NotificationType, ScanResult

if TYPE_CHECKING:
    from ..store.protocol import NotificationStore

logger = get_logger(__name__)

NotifyFn = Callable[..., Awaitable[Any]]


@dataclass
class ReengagementContext:
    """What happened while the user was away."""

    friend_posts_count: int = 0
    unread_notifications_count: int = 0
    top_friend_name: str | None = None


@dataclass
class ReengagementStats:
    """Inactive-user counts by tier."""

    total_inactive_users: int
    inactive_24h: int
    inactive_3d: int
    inactive_7d: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_inactive_users": self.total_inactive_users,
            "inactive_24h": self.inactive_24h,
            "inactive_3d": self.inactive_3d,
            "inactive_7d": self.inactive_7d,
        }


@dataclass
class ReengagementScheduler:
    """
    Tiered re-engagement nudges with a cooldown.

    ``notify`` is the dispatcher entry point; nudges are GENERAL
    notifications and go through the usual rate limits.
    """

    store: NotificationStore
    notify: NotifyFn
    clock: Clock = field(default_factory=SystemClock)
    min_interval: timedelta = field(default_factory=lambda: timedelta(hours=24))
    scan_limit: int = 100

    async def update_activity(self, user_id: str) -> None:
        """Mark the user active now. Failures are logged, never raised."""
        try:
            await self.store.update_last_active(user_id, self.clock.now())
        except Exception as e:
            logger.warning("Failed to update activity for user %s: %s", user_id, e)

    async def get_context(self, user_id: str, since: datetime) -> ReengagementContext:
        friend_posts = await self.store.count_friend_posts_since(user_id, since)
        unread = await self.store.count_unread_notifications(user_id)
        top_friend = await self.store.latest_friend_poster_name(user_id, since)
        return ReengagementContext(
            friend_posts_count=friend_posts,
            unread_notifications_count=unread,
            top_friend_name=top_friend,
        )

    async def check_and_notify(self, user_id: str) -> bool:
        """
        Send a re-engagement nudge if the user qualifies.

        Returns:
            True if a nudge was sent
        """
        try:
            user = await self.store.find_user(user_id)
            if user is None or user.last_active_at is None:
                return False

            now = self.clock.now()
            hours_inactive = hours_between(user.last_active_at, now)
            if hours_inactive < FIRST_NUDGE_HOURS:
                return False

            if user.reengagement_sent_at is not None:
                if now - user.reengagement_sent_at < self.min_interval:
                    return False

            context = await self.get_context(user_id, user.last_active_at)
            copy = build_reengagement_message(hours_inactive, context)
            if copy is None:
                return False

            notification = await self.notify(
                user_id,
                NotificationType.GENERAL,
                copy.title,
                copy.message,
                {
                    "reengagement": True,
                    "hoursInactive": int(hours_inactive),
                    "friendPostsCount": context.friend_posts_count,
                    "unreadCount": context.unread_notifications_count,
                },
            )
            if notification is None:
                logger.debug("Re-engagement nudge for %s was suppressed", user_id)
                return False

            await self.store.update_reengagement_sent_at(user_id, now)

            logger.info(
                "Sent re-engagement notification to %s (%dh inactive)",
                user_id,
                int(hours_inactive),
            )
            return True

        except Exception as e:
            logger.error("Failed to send re-engagement notification to %s: %s", user_id, e)
            return False

    async def scan_inactive_users(self) -> ScanResult:
        """Check one page of inactive users whose cooldown has elapsed."""
        now = self.clock.now()
        try:
            candidates = await self.store.list_reengagement_candidates(
                inactive_before=now - timedelta(hours=FIRST_NUDGE_HOURS),
                cooldown_before=now - self.min_interval,
                limit=self.scan_limit,
            )
        except Exception as e:
            logger.error("Failed to load re-engagement candidates: %s", e)
            return ScanResult()

        sent = 0
        for user in candidates:
            if await self.check_and_notify(user.id):
                sent += 1

        logger.info("Re-engagement batch: processed %d users, sent %d", len(candidates), sent)
        return ScanResult(processed=len(candidates), sent=sent)

    async def get_stats(self) -> ReengagementStats:
        now = self.clock.now()
        cutoff_24h = now - timedelta(hours=FIRST_NUDGE_HOURS)
        cutoff_3d = now - timedelta(hours=SECOND_NUDGE_HOURS)
        cutoff_7d = now - timedelta(hours=THIRD_NUDGE_HOURS)

        return ReengagementStats(
            total_inactive_users=await self.store.count_inactive_users(cutoff_24h),
            inactive_24h=await self.store.count_inactive_users(cutoff_24h, cutoff_3d),
            inactive_3d=await self.store.count_inactive_users(cutoff_3d, cutoff_7d),
            inactive_7d=await self.store.count_inactive_users(cutoff_7d),
        )
