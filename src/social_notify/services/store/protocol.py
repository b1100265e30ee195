"""
Notification Store Protocol Interface.

Defines the storage interface the orchestration engine consumes. Users,
posts, notifications, friendships and device tokens are owned by the store;
the engine only reads them and writes the handful of fields it manages
(streak fields, activity timestamps, device-token usage).

All datetimes crossing this interface are timezone-aware UTC.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class User:
    """A user row, restricted to the fields the engine reads."""

    id: str
    name: str | None = None
    username: str | None = None
    is_active: bool = True
    current_streak: int = 0
    longest_streak: int = 0
    last_post_date: datetime | None = None
    last_active_at: datetime | None = None
    reengagement_sent_at: datetime | None = None

    @property
    def display_name(self) -> str:
        """Name shown in notification copy."""
        return self.name or self.username or "Someone"


@dataclass
class Post:
    """A post row."""

    id: str
    author_id: str
    title: str | None = None
    created_at: datetime | None = None


@dataclass
class NewNotification:
    """Notification row handed to the store for insertion."""

    user_id: str
    type: str
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class Notification:
    """A persisted notification."""

    id: str
    user_id: str
    type: str
    title: str
    message: str
    data: dict[str, Any]
    read: bool
    created_at: datetime


@dataclass
class DeviceToken:
    """A registered push token."""

    token: str
    user_id: str
    platform: str = "IOS"
    is_active: bool = True
    last_used_at: datetime | None = None


@dataclass
class StreakFields:
    """Streak columns written back after a post."""

    current_streak: int
    longest_streak: int
    last_post_date: datetime


# =============================================================================
# Protocol Interface
# =============================================================================


@runtime_checkable
class NotificationStore(Protocol):
    """
    Abstract interface for the row-oriented datastore.

    Implementations must be async-compatible. Lookups return None for
    missing rows rather than raising.
    """

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the store, running migrations if needed."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the store and release resources."""
        ...

    # -------------------------------------------------------------------------
    # Users & Posts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def find_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def create_user(self, user: User) -> None: ...

    @abstractmethod
    async def find_post(self, post_id: str) -> Post | None: ...

    @abstractmethod
    async def create_post(self, post: Post) -> None: ...

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_notification(
        self, row: NewNotification, created_at: datetime | None = None
    ) -> Notification: ...

    @abstractmethod
    async def count_unread_notifications(self, user_id: str) -> int: ...

    @abstractmethod
    async def read_notifications_since(
        self, user_id: str, since: datetime, limit: int
    ) -> list[Notification]:
        """Most recent *read* notifications created at or after ``since``."""
        ...

    @abstractmethod
    async def mark_notification_read(self, notification_id: str) -> bool: ...

    # -------------------------------------------------------------------------
    # Engine-managed user fields
    # -------------------------------------------------------------------------

    @abstractmethod
    async def update_streak_fields(self, user_id: str, fields: StreakFields) -> None: ...

    @abstractmethod
    async def update_last_active(self, user_id: str, ts: datetime) -> None: ...

    @abstractmethod
    async def update_reengagement_sent_at(self, user_id: str, ts: datetime) -> None: ...

    # -------------------------------------------------------------------------
    # Device tokens
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_active_device_tokens(self, user_id: str) -> list[str]: ...

    @abstractmethod
    async def upsert_device_token(
        self, user_id: str, token: str, platform: str, ts: datetime
    ) -> None: ...

    @abstractmethod
    async def deactivate_device_token(self, token: str) -> bool: ...

    @abstractmethod
    async def touch_device_token(self, token: str, ts: datetime) -> None: ...

    @abstractmethod
    async def delete_stale_device_tokens(self, cutoff: datetime) -> int:
        """Delete inactive tokens and tokens unused since ``cutoff``."""
        ...

    # -------------------------------------------------------------------------
    # Social graph
    # -------------------------------------------------------------------------

    @abstractmethod
    async def are_friends(self, user_a: str, user_b: str) -> bool: ...

    @abstractmethod
    async def add_friendship(self, user_a: str, user_b: str) -> None: ...

    @abstractmethod
    async def count_friend_posts_since(self, user_id: str, since: datetime) -> int: ...

    @abstractmethod
    async def latest_friend_poster_name(self, user_id: str, since: datetime) -> str | None: ...

    # -------------------------------------------------------------------------
    # Scan queries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_streak_reminder_candidates(
        self,
        min_streak: int,
        posted_from: datetime,
        posted_before: datetime,
        limit: int,
    ) -> list[User]:
        """Active users with a streak >= min_streak whose last post is in the range."""
        ...

    @abstractmethod
    async def list_reengagement_candidates(
        self,
        inactive_before: datetime,
        cooldown_before: datetime,
        limit: int,
    ) -> list[User]:
        """
        Active users last seen before ``inactive_before`` whose last nudge is
        null or older than ``cooldown_before``.
        """
        ...

    @abstractmethod
    async def count_inactive_users(
        self, inactive_before: datetime, inactive_since: datetime | None = None
    ) -> int: ...
