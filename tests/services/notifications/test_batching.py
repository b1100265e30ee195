"""
Tests for like/comment batching.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from social_notify.services.notifications import NotificationBatcher, NotificationType


@pytest.fixture
def notify() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def batcher(notify, clock) -> NotificationBatcher:
    return NotificationBatcher(notify=notify, clock=clock, window=timedelta(minutes=15))


def _like(batcher: NotificationBatcher, sender_id: str, sender_name: str, post_id: str = "p1"):
    return batcher.add("alice", NotificationType.POST_LIKE, sender_id, sender_name, post_id, "Hike")


class TestAdd:
    """Collecting senders."""

    def test_batchable_types_only(self, batcher):
        assert _like(batcher, "bob", "Bob") is True
        assert (
            batcher.add("alice", NotificationType.FRIEND_REQUEST, "bob", "Bob", "p1", "Hike")
            is False
        )

    def test_groups_by_post_and_type(self, batcher):
        _like(batcher, "bob", "Bob", "p1")
        _like(batcher, "carol", "Carol", "p1")
        _like(batcher, "bob", "Bob", "p2")
        batcher.add("alice", NotificationType.COMMENT, "bob", "Bob", "p1", "Hike")

        assert batcher.get_status() == {"active_batches": 3, "total_pending": 5}

    def test_duplicate_sender_counted_once(self, batcher):
        _like(batcher, "bob", "Bob")
        _like(batcher, "bob", "Bob")

        assert batcher.get_status()["total_pending"] == 1


@pytest.mark.asyncio
class TestFlush:
    """Flushing consolidated notifications."""

    async def test_not_flushed_before_window(self, batcher, notify, clock):
        _like(batcher, "bob", "Bob")
        clock.advance(minutes=14)

        assert await batcher.flush_due() == 0
        notify.assert_not_awaited()

    async def test_flushed_after_window(self, batcher, notify, clock):
        _like(batcher, "bob", "Bob")
        clock.advance(minutes=5)
        _like(batcher, "carol", "Carol")
        _like(batcher, "dave", "Dave")
        clock.advance(minutes=10)

        assert await batcher.flush_due() == 1

        user_id, type_, title, message, data = notify.await_args.args
        assert user_id == "alice"
        assert type_ is NotificationType.POST_LIKE
        assert title == "🔥 Bob and 2 others liked your post"
        assert message == 'Your post "Hike" is trending!'
        assert data["batchCount"] == 3
        assert data["senderIds"] == ["bob", "carol", "dave"]
        assert data["senderId"] == "bob"
        assert data["postId"] == "p1"
        assert batcher.get_status()["active_batches"] == 0

    async def test_window_measured_from_first_add(self, batcher, clock):
        _like(batcher, "bob", "Bob", "p1")
        clock.advance(minutes=10)
        _like(batcher, "carol", "Carol", "p2")
        clock.advance(minutes=5)

        assert await batcher.flush_due() == 1
        assert batcher.get_status()["active_batches"] == 1

    async def test_flush_all(self, batcher, notify):
        _like(batcher, "bob", "Bob", "p1")
        _like(batcher, "bob", "Bob", "p2")

        assert await batcher.flush_all() == 2
        assert notify.await_count == 2

    async def test_failed_flush_logged(self, notify, clock):
        notify.side_effect = RuntimeError("store down")
        batcher = NotificationBatcher(notify=notify, clock=clock)
        batcher.add("alice", NotificationType.COMMENT, "bob", "Bob", "p1", "Hike")

        assert await batcher.flush_all() == 0
        assert batcher.get_status()["active_batches"] == 0
