"""
Notification Copy Formatter.

Titles and bodies for every notification the engine generates: direct
triggers, consolidated batches, streak milestones and reminders, and
re-engagement tiers.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .types import NotificationType

if TYPE_CHECKING:
    from .reengagement import ReengagementContext

PREVIEW_LENGTH = 50

# Re-engagement tier boundaries (hours inactive)
FIRST_NUDGE_HOURS = 24
SECOND_NUDGE_HOURS = 72
THIRD_NUDGE_HOURS = 168


@dataclass(frozen=True)
class MessageCopy:
    """A notification title and body."""

    title: str
    message: str


STREAK_MILESTONES: dict[int, MessageCopy] = {
    3: MessageCopy(
        "🔥 3-Day Streak!",
        "You're building a great habit! Keep posting daily to grow your streak.",
    ),
    7: MessageCopy(
        "🔥 One Week Streak!",
        "Amazing! You've posted every day for a week. You're on fire!",
    ),
    14: MessageCopy(
        "🔥 Two Week Streak!",
        "Incredible dedication! 14 days of consistent posting. You're crushing it!",
    ),
    30: MessageCopy(
        "🏆 30-Day Streak!",
        "A whole month of daily posts! You're a legend in the making!",
    ),
    60: MessageCopy(
        "🏆 60-Day Streak!",
        "Two months strong! Your dedication is inspiring the community!",
    ),
    100: MessageCopy(
        "👑 100-Day Streak!",
        "Triple digits! You've reached elite status. Absolutely incredible!",
    ),
    365: MessageCopy(
        "🎉 365-Day Streak!",
        "A FULL YEAR of daily posts! You're a true champion! 🏆",
    ),
}

STREAK_AT_RISK_TITLE = "⏰ Your streak is at risk!"


def truncate(text: str, length: int = PREVIEW_LENGTH) -> str:
    """
    Shorten text for notification copy.

    Returns:
        The text unchanged if it fits, otherwise the first ``length``
        characters followed by "..."
    """
    if len(text) > length:
        return text[:length] + "..."
    return text


def format_streak_milestone(streak: int) -> MessageCopy | None:
    """Milestone copy, or None when ``streak`` is not a milestone."""
    return STREAK_MILESTONES.get(streak)


def format_streak_at_risk(current_streak: int, hours_left: float) -> MessageCopy:
    if current_streak >= 7:
        message = (
            f"Don't lose your {current_streak}-day streak! "
            "Post before midnight to keep it going."
        )
    else:
        message = (
            f"You have {math.floor(hours_left)} hours to post "
            f"and keep your {current_streak}-day streak alive!"
        )
    return MessageCopy(STREAK_AT_RISK_TITLE, message)


def format_like(liker_name: str, post_title: str) -> MessageCopy:
    return MessageCopy(f"❤️ {liker_name} liked your post", f'{liker_name} loved "{post_title}"')


def format_comment(commenter_name: str, comment: str) -> MessageCopy:
    return MessageCopy(
        f"💬 {commenter_name} commented",
        f'{commenter_name}: "{truncate(comment)}"',
    )


def format_friend_request(sender_name: str) -> MessageCopy:
    return MessageCopy("New friend request", f"{sender_name} sent you a friend request")


def format_friend_accepted(accepter_name: str) -> MessageCopy:
    return MessageCopy("Friend request accepted", f"{accepter_name} accepted your friend request")


def format_batch(
    type_: NotificationType,
    sender_names: list[str],
    post_title: str,
) -> MessageCopy:
    """
    Consolidated copy for a batch of likes or comments on one post.

    Examples:
        "❤️ Sarah liked your post"
        "❤️ Sarah and John liked your post"
        "🔥 Sarah and 3 others liked your post"
    """
    count = len(sender_names)
    first = sender_names[0] if sender_names else "Someone"
    second = sender_names[1] if count > 1 else "someone"

    if type_ is NotificationType.POST_LIKE:
        if count <= 1:
            return format_like(first, post_title)
        if count == 2:
            return MessageCopy(
                f"❤️ {first} and {second} liked your post",
                "Your post is getting love! 🔥",
            )
        return MessageCopy(
            f"🔥 {first} and {count - 1} others liked your post",
            f'Your post "{post_title}" is trending!',
        )

    if type_ is NotificationType.COMMENT:
        if count <= 1:
            return MessageCopy(f"💬 {first} commented", f'{first} commented on "{post_title}"')
        if count == 2:
            return MessageCopy(
                f"💬 {first} and {second} commented",
                f'Join the conversation on "{post_title}"',
            )
        return MessageCopy(
            f"🔥 {count} new comments",
            f'{first} and {count - 1} others are discussing "{post_title}"',
        )

    return MessageCopy("✨ New activity", f'You have {count} new interactions on "{post_title}"')


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def build_reengagement_message(
    hours_inactive: float,
    context: ReengagementContext,
) -> MessageCopy | None:
    """
    Copy for a re-engagement nudge, or None when nothing should be sent.

    Tiers:
        [24h, 72h): friend posts, suppressed without any
        [72h, 7d): unread notifications, then friend posts, else suppressed
        7d and beyond: always sent, personalised with a friend's name
    """
    if FIRST_NUDGE_HOURS <= hours_inactive < SECOND_NUDGE_HOURS:
        posts = context.friend_posts_count
        if posts > 0:
            return MessageCopy(
                "Your friends are posting!",
                f"Your friends posted {posts} new {_plural(posts, 'update', 'updates')}. "
                "See what they've been up to!",
            )
        return None

    if SECOND_NUDGE_HOURS <= hours_inactive < THIRD_NUDGE_HOURS:
        unread = context.unread_notifications_count
        if unread > 0:
            return MessageCopy(
                "You have unread notifications",
                f"You have {unread} unread "
                f"{_plural(unread, 'notification', 'notifications')} waiting for you.",
            )
        if context.friend_posts_count > 0:
            return MessageCopy(
                "Catch up with friends",
                f"{context.friend_posts_count} new posts from your friends since your last visit.",
            )
        return None

    if hours_inactive >= THIRD_NUDGE_HOURS:
        if context.top_friend_name:
            return MessageCopy(
                "We miss you!",
                f"{context.top_friend_name} and your friends have been active. "
                "Come see what's new!",
            )
        return MessageCopy("It's been a while!", "Come back and see what's happening.")

    return None
