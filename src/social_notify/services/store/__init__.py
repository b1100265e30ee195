"""
Notification Store - Row-Oriented Storage for the Notification Engine.

Key Components:
- NotificationStore: Protocol the engine consumes
- SQLiteNotificationStore: SQLite reference implementation with WAL mode
- MigrationRunner: Versioned schema migrations applied on startup

Usage:
    from social_notify.services.store import SQLiteNotificationStore

    store = SQLiteNotificationStore()
    await store.initialize()

    user = await store.find_user("user-1")
"""

from .migrations import MigrationRunner
from .protocol import (
    DeviceToken,
    NewNotification,
    Notification,
    NotificationStore,
    Post,
    StreakFields,
    User,
)
from .sqlite import SQLiteNotificationStore

__all__ = [
    # Store implementation
    "SQLiteNotificationStore",
    "MigrationRunner",
    # Protocol
    "NotificationStore",
    "User",
    "Post",
    "NewNotification",
    "Notification",
    "DeviceToken",
    "StreakFields",
]
