"""
Notification Priority Classifier.

Maps a notification type plus social context to a priority, a push
decision and batchability. Pure; the policy lives in types.TYPE_POLICIES.
"""

from __future__ import annotations

from dataclasses import dataclass

from .types import (
    NotificationType,
    Priority,
    PushCategory,
    PushPolicy,
    get_push_category,
    get_type_policy,
    type_name,
)


@dataclass
class ClassificationContext:
    """Social signals that can upgrade a medium-priority notification to push."""

    sender_is_friend: bool = False
    post_is_recent: bool = False
    user_has_high_engagement: bool = False


@dataclass
class PrioritizedNotification:
    """Classification outcome for one notification."""

    type: str
    priority: Priority
    should_send_push: bool
    can_batch: bool

    @property
    def category(self) -> PushCategory:
        return get_push_category(self.type)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "priority": self.priority.value,
            "should_send_push": self.should_send_push,
            "can_batch": self.can_batch,
            "category": self.category.value,
        }


def classify(
    type_: NotificationType | str,
    context: ClassificationContext | None = None,
) -> PrioritizedNotification:
    """
    Classify a notification.

    Args:
        type_: Notification type (enum member or wire name; unknown names
            classify as low priority)
        context: Social signals for the recipient and sender

    Returns:
        PrioritizedNotification with priority, push decision and batchability
    """
    ctx = context or ClassificationContext()
    policy = get_type_policy(type_)

    if policy.push is PushPolicy.ALWAYS:
        push = True
    elif policy.push is PushPolicy.SOCIAL:
        push = ctx.sender_is_friend or ctx.user_has_high_engagement
    else:
        push = False

    return PrioritizedNotification(
        type=type_name(type_),
        priority=policy.priority,
        should_send_push=push,
        can_batch=policy.can_batch,
    )
