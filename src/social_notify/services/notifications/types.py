"""
Shared Type Definitions for Notification Orchestration.

Notification types, priorities, push categories and the policy registries
that map one to the other. Kept free of component imports so every module
in the package can depend on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class NotificationType(Enum):
    """Closed set of notification types the engine understands."""

    POST_LIKE = "POST_LIKE"
    COMMENT = "COMMENT"
    COMMENT_LIKE = "COMMENT_LIKE"
    FOLLOW = "FOLLOW"
    FRIEND_REQUEST = "FRIEND_REQUEST"
    FRIEND_ACCEPTED = "FRIEND_ACCEPTED"
    FRIEND_POST = "FRIEND_POST"
    MESSAGE = "MESSAGE"
    POST_MENTION = "POST_MENTION"
    GENERAL = "GENERAL"

    @classmethod
    def parse(cls, value: NotificationType | str) -> NotificationType | None:
        """Resolve a type name, returning None for unknown strings."""
        if isinstance(value, NotificationType):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


class Priority(Enum):
    """Notification priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PushPolicy(Enum):
    """When a priority class earns a push."""

    ALWAYS = "always"
    SOCIAL = "social"  # Sender is a friend or the recipient is highly engaged
    NEVER = "never"


class PushCategory(Enum):
    """Category attached to push payloads for client-side actions."""

    FRIEND_REQUEST = "FRIEND_REQUEST"
    POST_INTERACTION = "POST_INTERACTION"
    MESSAGE = "MESSAGE"
    GENERAL = "GENERAL"


@dataclass(frozen=True)
class TypePolicy:
    """Classification policy for one notification type."""

    priority: Priority
    push: PushPolicy
    can_batch: bool


_HIGH = TypePolicy(Priority.HIGH, PushPolicy.ALWAYS, can_batch=False)
_MEDIUM = TypePolicy(Priority.MEDIUM, PushPolicy.SOCIAL, can_batch=True)
_LOW = TypePolicy(Priority.LOW, PushPolicy.NEVER, can_batch=True)

# Types missing from this table (and unknown type strings) fall back to _LOW
TYPE_POLICIES: dict[NotificationType, TypePolicy] = {
    NotificationType.FRIEND_REQUEST: _HIGH,
    NotificationType.MESSAGE: _HIGH,
    NotificationType.POST_LIKE: _MEDIUM,
    NotificationType.COMMENT: _MEDIUM,
    NotificationType.FOLLOW: _MEDIUM,
}

DEFAULT_POLICY = _LOW

PUSH_CATEGORIES: dict[NotificationType, PushCategory] = {
    NotificationType.FRIEND_REQUEST: PushCategory.FRIEND_REQUEST,
    NotificationType.POST_LIKE: PushCategory.POST_INTERACTION,
    NotificationType.COMMENT: PushCategory.POST_INTERACTION,
    NotificationType.COMMENT_LIKE: PushCategory.POST_INTERACTION,
    NotificationType.MESSAGE: PushCategory.MESSAGE,
}


def get_type_policy(type_: NotificationType | str) -> TypePolicy:
    parsed = NotificationType.parse(type_)
    if parsed is None:
        return DEFAULT_POLICY
    return TYPE_POLICIES.get(parsed, DEFAULT_POLICY)


def get_push_category(type_: NotificationType | str) -> PushCategory:
    """Push category for a notification type (GENERAL when unmapped)."""
    parsed = NotificationType.parse(type_)
    if parsed is None:
        return PushCategory.GENERAL
    return PUSH_CATEGORIES.get(parsed, PushCategory.GENERAL)


def type_name(type_: NotificationType | str) -> str:
    """Wire name of a type; unknown strings pass through unchanged."""
    if isinstance(type_, NotificationType):
        return type_.value
    return str(type_)


@dataclass
class ScanResult:
    """Outcome of a periodic scan."""

    processed: int = 0
    sent: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"processed": self.processed, "sent": self.sent}


@dataclass
class FriendActivity:
    """Ephemeral friend-activity event mirrored to the real-time backend."""

    user_id: str
    user_name: str
    activity_type: str
    target_id: str | None = None
    target_type: str | None = None
    target_preview: str | None = None
