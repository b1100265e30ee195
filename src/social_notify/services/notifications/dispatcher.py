"""
Notification Dispatcher.

Entry point for everything that can produce a notification. Wires the
rate limiter, timing optimizer, classifier, streak tracker, re-engagement
scheduler and batcher to the store and the outbound delivery channels.

Trigger methods never raise; failures are logged and the caller's own
operation (the like, the comment, the post) carries on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from ...core.clock import Clock, SystemClock
from ...core.config import NotifySettings, get_settings
from ...core.logging import get_logger
from ..store.protocol import NewNotification, Notification
from .batching import NotificationBatcher
from .errors import DeliveryError
from .formatter import (
    PREVIEW_LENGTH,
    format_comment,
    format_friend_accepted,
    format_friend_request,
    format_like,
)
from .outbound import OutboundJob, OutboundQueue
from .priority import ClassificationContext, PrioritizedNotification, classify
from .push_client import PushClient
from .rate_limiter import RateLimiter
from .realtime_client import RealtimeClient
from .reengagement import ReengagementScheduler
from .scheduler import Scheduler
from .state import MemoryStateStore, StateStore
from .streaks import StreakTracker, StreakUpdate
from .timing import TimingOptimizer
from .types import (
    FriendActivity,
    NotificationType,
    Priority,
    PushPolicy,
    ScanResult,
    get_type_policy,
    type_name,
)

if TYPE_CHECKING:
    from ..store.protocol import NotificationStore

logger = get_logger(__name__)

STALE_TOKEN_DAYS = 30
DEVICE_PLATFORMS = ("IOS", "ANDROID", "WEB")


@dataclass
class NotificationDispatcher:
    """
    Orchestrates the notification pipeline.

    Flow for notify():
    1. Drop self-notifications
    2. Check the daily rate limit
    3. Resolve the recipient
    4. Persist and count against the daily limit
    5. Classify (friendship and engagement as context)
    6. Queue a push if eligible and under the hourly limit, deferring
       medium-priority pushes to the recipient's next good hour
    7. Queue the real-time sync
    """

    store: NotificationStore
    settings: NotifySettings | None = None
    clock: Clock = field(default_factory=SystemClock)
    state: StateStore | None = None
    push_client: PushClient | None = None
    realtime_client: RealtimeClient | None = None

    rate_limiter: RateLimiter = field(init=False)
    timing: TimingOptimizer = field(init=False)
    streaks: StreakTracker = field(init=False)
    reengagement: ReengagementScheduler = field(init=False)
    batcher: NotificationBatcher = field(init=False)
    outbound: OutboundQueue = field(init=False)
    scheduler: Scheduler = field(init=False)

    def __post_init__(self) -> None:
        """Build components from settings."""
        if self.settings is None:
            self.settings = get_settings()
        settings = self.settings

        if self.state is None:
            self.state = MemoryStateStore(clock=self.clock)

        if self.push_client is None:
            self.push_client = PushClient(
                store=self.store,
                gateway_url=settings.push_gateway_url,
                api_key=settings.push_api_key,
                clock=self.clock,
                timeout=settings.http_timeout_seconds,
                retry_attempts=settings.http_retry_attempts,
            )
        if self.realtime_client is None:
            self.realtime_client = RealtimeClient(
                base_url=settings.realtime_url,
                clock=self.clock,
                timeout=settings.http_timeout_seconds,
                retry_attempts=settings.http_retry_attempts,
            )

        self.rate_limiter = RateLimiter(
            state=self.state,
            clock=self.clock,
            max_per_day=settings.max_notifications_per_day,
            max_push_per_hour=settings.max_push_per_hour,
        )
        self.timing = TimingOptimizer(
            store=self.store,
            state=self.state,
            clock=self.clock,
            tz=settings.zone,
            pattern_ttl=timedelta(hours=settings.activity_pattern_ttl_hours),
        )
        self.streaks = StreakTracker(
            store=self.store,
            notify=self.notify,
            clock=self.clock,
            tz=settings.zone,
            reminder_hours=settings.streak_reminder_hours,
            scan_limit=settings.scan_batch_size,
        )
        self.reengagement = ReengagementScheduler(
            store=self.store,
            notify=self.notify,
            clock=self.clock,
            min_interval=timedelta(hours=settings.reengagement_min_interval_hours),
            scan_limit=settings.scan_batch_size,
        )
        self.batcher = NotificationBatcher(
            notify=self.notify,
            clock=self.clock,
            window=timedelta(minutes=settings.batch_window_minutes),
        )
        self.outbound = OutboundQueue(
            clock=self.clock,
            max_attempts=settings.outbound_max_attempts,
            backoff_seconds=settings.outbound_backoff_seconds,
        )
        self.scheduler = Scheduler(clock=self.clock)
        self._register_jobs()

    def _register_jobs(self) -> None:
        async def cleanup_rate_limits() -> int:
            return self.rate_limiter.cleanup()

        async def purge_state() -> int:
            return self.state.purge_expired()

        self.scheduler.add_job("rate_limit_cleanup", timedelta(hours=1), cleanup_rate_limits)
        self.scheduler.add_job("batch_flush", timedelta(minutes=1), self.batcher.flush_due)
        self.scheduler.add_job("streak_scan", timedelta(hours=1), self.streaks.scan_at_risk_users)
        self.scheduler.add_job(
            "reengagement_scan", timedelta(hours=1), self.reengagement.scan_inactive_users
        )
        self.scheduler.add_job("stale_token_cleanup", timedelta(hours=24), self.cleanup_stale_tokens)
        self.scheduler.add_job("state_purge", timedelta(hours=1), purge_state)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Initialize the backing store."""
        await self.store.initialize()

    async def start(self, run_scheduler: bool = True) -> None:
        """Start the outbound worker (and the periodic scheduler)."""
        self.outbound.start()
        if run_scheduler:
            self.scheduler.start()
        logger.info("Notification dispatcher started")

    async def stop(self) -> None:
        """Stop background work and close HTTP clients. Queued jobs are dropped."""
        await self.scheduler.stop()
        await self.outbound.stop()
        await self.push_client.close()
        await self.realtime_client.close()
        logger.info("Notification dispatcher stopped")

    async def close(self) -> None:
        """Stop and close the store."""
        await self.stop()
        await self.store.close()

    # -------------------------------------------------------------------------
    # Core pipeline
    # -------------------------------------------------------------------------

    async def _classification_context(
        self, user_id: str, type_: NotificationType | str, data: dict[str, Any]
    ) -> ClassificationContext:
        """Gather social signals, skipping lookups the type's policy ignores."""
        context = ClassificationContext()
        if get_type_policy(type_).push is not PushPolicy.SOCIAL:
            return context

        if "isFriend" in data:
            context.sender_is_friend = bool(data["isFriend"])
        elif data.get("senderId"):
            context.sender_is_friend = await self.store.are_friends(user_id, data["senderId"])

        pattern = await self.timing.get_activity_pattern(user_id)
        context.user_has_high_engagement = (
            pattern.total_reads >= self.settings.high_engagement_threshold
        )
        return context

    async def notify(
        self,
        user_id: str,
        type_: NotificationType | str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        """
        Create a notification and queue its deliveries.

        Returns:
            The persisted notification, or None when it was suppressed or
            failed (never raises)
        """
        data = dict(data or {})
        sender_id = data.get("senderId")

        if sender_id and sender_id == user_id:
            return None

        if not self.rate_limiter.can_send_notification(user_id):
            logger.info("Rate limited: skipping notification for %s (daily limit)", user_id)
            return None

        try:
            user = await self.store.find_user(user_id)
            if user is None:
                logger.warning("User not found for notification: %s", user_id)
                return None

            notification = await self.store.create_notification(
                NewNotification(
                    user_id=user_id,
                    type=type_name(type_),
                    title=title,
                    message=message,
                    data=data,
                ),
                created_at=self.clock.now(),
            )
            self.rate_limiter.record_sent(user_id)
            logger.info("Notification created for %s: %s - %s", user_id, notification.type, title)

            context = await self._classification_context(user_id, type_, data)
            result = classify(type_, context)

            if result.should_send_push and self.rate_limiter.can_send_push(user_id):
                await self._queue_push(notification, result)
                self.rate_limiter.record_push_sent(user_id)

            self._queue_realtime(notification)
            return notification

        except Exception as e:
            logger.error("Failed to create notification for %s: %s", user_id, e, exc_info=True)
            return None

    async def _queue_push(
        self, notification: Notification, result: PrioritizedNotification
    ) -> OutboundJob:
        not_before = None
        if result.priority is Priority.MEDIUM and not await self.timing.is_good_time_now(
            notification.user_id
        ):
            not_before = await self.timing.get_next_optimal_time(notification.user_id)
            logger.debug("Deferring push for %s until %s", notification.user_id, not_before)

        pending_tokens: list[str] | None = None

        async def deliver() -> bool:
            nonlocal pending_tokens
            push = await self.push_client.send(
                notification.user_id,
                notification.type,
                notification.title,
                notification.message,
                notification.data,
                tokens=pending_tokens,
            )
            if push.failed:
                pending_tokens = push.failed_tokens
                return False
            if push.permanently_rejected:
                raise DeliveryError(
                    "push", "every device token was rejected", retryable=False
                )
            return True

        job = OutboundJob(
            kind="push",
            user_id=notification.user_id,
            handler=deliver,
            description=f"{notification.type}: {notification.title}",
            not_before=not_before,
        )
        self.outbound.enqueue(job)
        return job

    def _queue_realtime(self, notification: Notification) -> OutboundJob:
        async def deliver() -> bool:
            return await self.realtime_client.push_notification(
                notification,
                sender_id=notification.data.get("senderId"),
                sender_name=notification.data.get("senderName"),
            )

        job = OutboundJob(
            kind="realtime",
            user_id=notification.user_id,
            handler=deliver,
            description=f"sync {notification.id}",
        )
        self.outbound.enqueue(job)
        return job

    def _queue_activity(self, activity: FriendActivity) -> OutboundJob:
        async def deliver() -> bool:
            return await self.realtime_client.record_activity(activity)

        job = OutboundJob(
            kind="activity",
            user_id=activity.user_id,
            handler=deliver,
            description=activity.activity_type,
        )
        self.outbound.enqueue(job)
        return job

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    async def notify_post_liked(self, post_id: str, liker_id: str) -> None:
        """A user liked a post. Batched per post when batching is enabled."""
        try:
            post = await self.store.find_post(post_id)
            if post is None or post.author_id == liker_id:
                return

            liker = await self.store.find_user(liker_id)
            if liker is None:
                return

            liker_name = liker.display_name
            post_title = post.title or "your post"

            batched = self.settings.batching_enabled and self.batcher.add(
                post.author_id,
                NotificationType.POST_LIKE,
                liker_id,
                liker_name,
                post_id,
                post_title,
            )
            if not batched:
                copy = format_like(liker_name, post_title)
                await self.notify(
                    post.author_id,
                    NotificationType.POST_LIKE,
                    copy.title,
                    copy.message,
                    {
                        "postId": post_id,
                        "senderId": liker_id,
                        "senderName": liker_name,
                        "likerName": liker_name,
                        "postTitle": post_title,
                    },
                )

            self._queue_activity(
                FriendActivity(
                    user_id=liker_id,
                    user_name=liker_name,
                    activity_type="liked_post",
                    target_id=post_id,
                    target_type="post",
                    target_preview=post_title[:PREVIEW_LENGTH],
                )
            )
        except Exception as e:
            logger.error("Failed to create post like notification: %s", e, exc_info=True)

    async def notify_post_commented(self, post_id: str, commenter_id: str, text: str) -> None:
        """A user commented on a post. Batched per post when batching is enabled."""
        try:
            post = await self.store.find_post(post_id)
            if post is None or post.author_id == commenter_id:
                return

            commenter = await self.store.find_user(commenter_id)
            if commenter is None:
                return

            commenter_name = commenter.display_name
            post_title = post.title or "your post"

            batched = self.settings.batching_enabled and self.batcher.add(
                post.author_id,
                NotificationType.COMMENT,
                commenter_id,
                commenter_name,
                post_id,
                post_title,
            )
            if not batched:
                copy = format_comment(commenter_name, text)
                await self.notify(
                    post.author_id,
                    NotificationType.COMMENT,
                    copy.title,
                    copy.message,
                    {
                        "postId": post_id,
                        "senderId": commenter_id,
                        "senderName": commenter_name,
                        "commenterName": commenter_name,
                        "postTitle": post_title,
                        "commentContent": text[:PREVIEW_LENGTH],
                    },
                )

            self._queue_activity(
                FriendActivity(
                    user_id=commenter_id,
                    user_name=commenter_name,
                    activity_type="commented",
                    target_id=post_id,
                    target_type="post",
                    target_preview=text[:PREVIEW_LENGTH],
                )
            )
        except Exception as e:
            logger.error("Failed to create post comment notification: %s", e, exc_info=True)

    async def notify_friend_request_sent(
        self, receiver_id: str, sender_id: str, request_id: str
    ) -> Notification | None:
        try:
            sender = await self.store.find_user(sender_id)
            if sender is None:
                return None

            copy = format_friend_request(sender.display_name)
            return await self.notify(
                receiver_id,
                NotificationType.FRIEND_REQUEST,
                copy.title,
                copy.message,
                {
                    "friendRequestId": request_id,
                    "senderId": sender_id,
                    "senderName": sender.display_name,
                },
            )
        except Exception as e:
            logger.error("Failed to create friend request notification: %s", e, exc_info=True)
            return None

    async def notify_friend_request_accepted(
        self, sender_id: str, accepter_id: str
    ) -> Notification | None:
        """Tell the original requester that ``accepter_id`` accepted."""
        try:
            accepter = await self.store.find_user(accepter_id)
            if accepter is None:
                return None

            copy = format_friend_accepted(accepter.display_name)
            return await self.notify(
                sender_id,
                NotificationType.FRIEND_ACCEPTED,
                copy.title,
                copy.message,
                {
                    "senderId": accepter_id,
                    "senderName": accepter.display_name,
                    "accepterName": accepter.display_name,
                },
            )
        except Exception as e:
            logger.error(
                "Failed to create friend request accepted notification: %s", e, exc_info=True
            )
            return None

    async def record_post(self, user_id: str) -> StreakUpdate:
        """Update the author's streak for a new post."""
        try:
            return await self.streaks.record_post(user_id)
        except Exception as e:
            logger.error("Failed to update streak for %s: %s", user_id, e, exc_info=True)
            return StreakUpdate(new_streak=0, milestone_reached=False)

    async def update_activity(self, user_id: str) -> None:
        await self.reengagement.update_activity(user_id)

    async def run_scans(self) -> dict[str, ScanResult]:
        """Run the streak and re-engagement scans once."""
        return {
            "streaks": await self.streaks.scan_at_risk_users(),
            "reengagement": await self.reengagement.scan_inactive_users(),
        }

    # -------------------------------------------------------------------------
    # Device tokens
    # -------------------------------------------------------------------------

    async def register_device_token(
        self, user_id: str, token: str, platform: str = "IOS"
    ) -> bool:
        """
        Register or refresh a push token for a user.

        Returns:
            True if stored, False for unknown users or platforms
        """
        platform = platform.upper()
        if platform not in DEVICE_PLATFORMS:
            logger.warning("Unsupported device platform: %s", platform)
            return False

        try:
            user = await self.store.find_user(user_id)
            if user is None:
                logger.warning("User not found for device token registration: %s", user_id)
                return False

            await self.store.upsert_device_token(user_id, token, platform, self.clock.now())
        except Exception as e:
            logger.warning("Failed to register device token for %s: %s", user_id, e)
            return False

        logger.info("Device token registered for user %s", user_id)
        return True

    async def unregister_device_token(self, token: str) -> bool:
        try:
            return await self.store.deactivate_device_token(token)
        except Exception as e:
            logger.warning("Failed to unregister device token: %s", e)
            return False

    async def cleanup_stale_tokens(self) -> int:
        """Delete tokens that are inactive or unused for 30 days."""
        cutoff = self.clock.now() - timedelta(days=STALE_TOKEN_DAYS)
        removed = await self.store.delete_stale_device_tokens(cutoff)
        if removed:
            logger.info("Removed %d stale device tokens", removed)
        return removed

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        return {
            "push_configured": self.push_client.is_configured,
            "realtime_configured": self.realtime_client.is_configured,
            "tracked_users": self.rate_limiter.tracked_users,
            "batches": self.batcher.get_status(),
            "outbound": self.outbound.get_health().to_dict(),
            "push": self.push_client.get_metrics(),
            "jobs": self.scheduler.get_status(),
        }


# =============================================================================
# Singleton
# =============================================================================

_dispatcher: NotificationDispatcher | None = None


def get_dispatcher(store: NotificationStore | None = None) -> NotificationDispatcher:
    """
    Get or create the dispatcher singleton.

    Without a store, the SQLite reference store at NOTIFY_DB_PATH is used.
    Call ``await dispatcher.initialize()`` before use.
    """
    global _dispatcher

    if _dispatcher is None:
        if store is None:
            from ..store.sqlite import SQLiteNotificationStore

            store = SQLiteNotificationStore()
        _dispatcher = NotificationDispatcher(store=store)

    return _dispatcher


def reset_dispatcher() -> None:
    """Reset the dispatcher singleton (for testing)."""
    global _dispatcher
    _dispatcher = None
