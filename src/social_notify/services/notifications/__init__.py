"""
Notification Orchestration Module.

Decides whether, when and through which channel a user hears about an
event.

Components:
- NotificationDispatcher: Main orchestration and trigger API
- RateLimiter: Per-user daily notification and hourly push ceilings
- TimingOptimizer: Learns each user's active hours
- classify: Priority, push eligibility and batchability
- StreakTracker: Posting streaks, milestones and at-risk reminders
- ReengagementScheduler: Tiered nudges for inactive users
- NotificationBatcher: Consolidates likes and comments per post
- OutboundQueue: Bounded delivery queue with retry and dead letters
- PushClient: Push gateway client with retry logic
- RealtimeClient: Real-time backend sync
- Scheduler: Periodic maintenance jobs

Usage:
    from social_notify.services.notifications import get_dispatcher

    dispatcher = get_dispatcher()
    await dispatcher.initialize()
    await dispatcher.start()
    await dispatcher.notify_post_liked(post_id, liker_id)
"""

from .errors import DeliveryError, NotificationError, StoreNotInitializedError, UnknownJobError
from .batching import BATCHABLE_TYPES, NotificationBatcher, PendingBatch
from .dispatcher import NotificationDispatcher, get_dispatcher, reset_dispatcher
from .formatter import MessageCopy, build_reengagement_message, format_batch
from .outbound import OutboundHealth, OutboundJob, OutboundQueue
from .priority import ClassificationContext, PrioritizedNotification, classify
from .push_client import PushClient, PushResult, build_push_payload
from .rate_limiter import RateLimiter, RateLimitState
from .realtime_client import RealtimeClient
from .reengagement import ReengagementContext, ReengagementScheduler, ReengagementStats
from .scheduler import ScheduledJob, Scheduler
from .state import MemoryStateStore, StateStore
from .streaks import StreakStatus, StreakTracker, StreakUpdate
from .timing import DEFAULT_OPTIMAL_HOURS, ActivityPattern, TimingOptimizer
from .types import (
    FriendActivity,
    NotificationType,
    Priority,
    PushCategory,
    ScanResult,
    get_push_category,
)

__all__ = [
    # Errors
    "NotificationError",
    "DeliveryError",
    "StoreNotInitializedError",
    "UnknownJobError",
    # Dispatcher
    "NotificationDispatcher",
    "get_dispatcher",
    "reset_dispatcher",
    # Types
    "NotificationType",
    "Priority",
    "PushCategory",
    "ScanResult",
    "FriendActivity",
    "get_push_category",
    # Components
    "RateLimiter",
    "RateLimitState",
    "TimingOptimizer",
    "ActivityPattern",
    "DEFAULT_OPTIMAL_HOURS",
    "classify",
    "ClassificationContext",
    "PrioritizedNotification",
    "StreakTracker",
    "StreakStatus",
    "StreakUpdate",
    "ReengagementScheduler",
    "ReengagementContext",
    "ReengagementStats",
    "NotificationBatcher",
    "PendingBatch",
    "BATCHABLE_TYPES",
    "OutboundQueue",
    "OutboundJob",
    "OutboundHealth",
    "Scheduler",
    "ScheduledJob",
    "StateStore",
    "MemoryStateStore",
    # Delivery
    "PushClient",
    "PushResult",
    "build_push_payload",
    "RealtimeClient",
    # Copy
    "MessageCopy",
    "format_batch",
    "build_reengagement_message",
]
