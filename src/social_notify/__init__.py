"""
Social Notify - Notification Orchestration Engine

Decides whether, when and through which channel a user of a social app is
notified about likes, comments, friend requests, streaks and inactivity.

Usage as library:
    from social_notify.services.notifications import NotificationDispatcher
    from social_notify.services.store import SQLiteNotificationStore

    dispatcher = NotificationDispatcher(store=SQLiteNotificationStore())
    await dispatcher.initialize()
    await dispatcher.start()

    await dispatcher.notify_post_liked(post_id, liker_id)
    await dispatcher.record_post(user_id)

Usage as CLI:
    python -m social_notify scan
    python -m social_notify classify POST_LIKE --friend
    python -m social_notify streak <user_id>

Package structure:
    social_notify/
    ├── core/                   # Settings, logging, clock, retry
    └── services/
        ├── notifications/      # Orchestration components
        └── store/              # Store protocol + SQLite implementation
"""

__version__ = "1.0.0"

from .core import Clock, ManualClock, NotifySettings, SystemClock, get_logger, get_settings

__all__ = [
    "__version__",
    "Clock",
    "ManualClock",
    "SystemClock",
    "NotifySettings",
    "get_settings",
    "get_logger",
]
