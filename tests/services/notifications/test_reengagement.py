"""
Tests for the re-engagement scheduler.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from social_notify.services.notifications import NotificationType, ReengagementScheduler
from social_notify.services.store import Post, User

pytestmark = pytest.mark.asyncio


@pytest.fixture
def notify() -> AsyncMock:
    """Stands in for the dispatcher; returns a persisted notification."""
    return AsyncMock(return_value=MagicMock())


@pytest.fixture
def scheduler(seeded_store, notify, clock) -> ReengagementScheduler:
    return ReengagementScheduler(store=seeded_store, notify=notify, clock=clock)


async def _friend_posts(store, author_id: str, count: int, clock) -> None:
    for i in range(count):
        await store.create_post(
            Post(
                id=f"{author_id}-{i}",
                author_id=author_id,
                title=f"post {i}",
                created_at=clock.now() - timedelta(hours=i + 1),
            )
        )


class TestCheckAndNotify:
    """Single-user checks."""

    async def test_inactive_with_friend_posts_sends(self, seeded_store, scheduler, notify, clock):
        await seeded_store.update_last_active("alice", clock.now() - timedelta(hours=30))
        await _friend_posts(seeded_store, "bob", 3, clock)

        sent = await scheduler.check_and_notify("alice")

        assert sent is True
        user_id, type_, title, message, data = notify.await_args.args
        assert user_id == "alice"
        assert type_ is NotificationType.GENERAL
        assert title == "Your friends are posting!"
        assert "3 new updates" in message
        assert data == {
            "reengagement": True,
            "hoursInactive": 30,
            "friendPostsCount": 3,
            "unreadCount": 0,
        }
        alice = await seeded_store.find_user("alice")
        assert alice.reengagement_sent_at == clock.now()

    async def test_inactive_without_friend_posts_silent(
        self, seeded_store, scheduler, notify, clock
    ):
        await seeded_store.update_last_active("alice", clock.now() - timedelta(hours=30))

        assert await scheduler.check_and_notify("alice") is False
        notify.assert_not_awaited()
        assert (await seeded_store.find_user("alice")).reengagement_sent_at is None

    async def test_recently_active_skipped(self, seeded_store, scheduler, notify, clock):
        await seeded_store.update_last_active("alice", clock.now() - timedelta(hours=5))
        await _friend_posts(seeded_store, "bob", 3, clock)

        assert await scheduler.check_and_notify("alice") is False

    async def test_never_active_skipped(self, scheduler):
        assert await scheduler.check_and_notify("carol") is False

    async def test_cooldown(self, seeded_store, scheduler, notify, clock):
        await seeded_store.update_last_active("alice", clock.now() - timedelta(hours=30))
        await _friend_posts(seeded_store, "bob", 3, clock)

        assert await scheduler.check_and_notify("alice") is True

        clock.advance(hours=23)
        assert await scheduler.check_and_notify("alice") is False

        clock.advance(hours=1)
        assert await scheduler.check_and_notify("alice") is True
        assert notify.await_count == 2

    async def test_suppressed_nudge_keeps_cooldown_clear(
        self, seeded_store, scheduler, notify, clock
    ):
        await seeded_store.update_last_active("alice", clock.now() - timedelta(hours=30))
        await _friend_posts(seeded_store, "bob", 3, clock)
        notify.return_value = None

        assert await scheduler.check_and_notify("alice") is False
        notify.assert_awaited_once()
        assert (await seeded_store.find_user("alice")).reengagement_sent_at is None

        notify.return_value = MagicMock()
        assert await scheduler.check_and_notify("alice") is True

    async def test_week_inactive_always_sends(self, seeded_store, scheduler, notify, clock):
        await seeded_store.update_last_active("carol", clock.now() - timedelta(days=8))

        assert await scheduler.check_and_notify("carol") is True
        assert notify.await_args.args[2] == "It's been a while!"

    async def test_errors_logged_not_raised(self, notify, clock):
        store = MagicMock()
        store.find_user = AsyncMock(side_effect=RuntimeError("db down"))
        scheduler = ReengagementScheduler(store=store, notify=notify, clock=clock)

        assert await scheduler.check_and_notify("alice") is False


class TestActivity:
    """Activity bookkeeping."""

    async def test_update_activity(self, seeded_store, scheduler, clock):
        await scheduler.update_activity("bob")
        assert (await seeded_store.find_user("bob")).last_active_at == clock.now()

    async def test_update_activity_swallows_errors(self, notify, clock):
        store = MagicMock()
        store.update_last_active = AsyncMock(side_effect=RuntimeError("db down"))
        scheduler = ReengagementScheduler(store=store, notify=notify, clock=clock)

        await scheduler.update_activity("bob")


class TestScan:
    """Periodic scan and stats."""

    async def test_scan_inactive_users(self, seeded_store, scheduler, notify, clock):
        await seeded_store.update_last_active("alice", clock.now() - timedelta(hours=30))
        await seeded_store.update_last_active("bob", clock.now() - timedelta(hours=2))
        await seeded_store.update_last_active("carol", clock.now() - timedelta(days=9))
        await _friend_posts(seeded_store, "bob", 2, clock)

        result = await scheduler.scan_inactive_users()

        assert result.processed == 2
        assert result.sent == 2
        assert {call.args[0] for call in notify.await_args_list} == {"alice", "carol"}

    async def test_scan_respects_limit(self, store, notify, clock):
        for i in range(5):
            await store.create_user(
                User(id=f"u{i}", last_active_at=clock.now() - timedelta(days=10))
            )
        scheduler = ReengagementScheduler(store=store, notify=notify, clock=clock, scan_limit=2)

        result = await scheduler.scan_inactive_users()

        assert result.processed == 2

    async def test_get_stats(self, store, notify, clock):
        for user_id, age in [
            ("a", timedelta(hours=30)),
            ("b", timedelta(hours=50)),
            ("c", timedelta(days=4)),
            ("d", timedelta(days=10)),
            ("e", timedelta(hours=1)),
        ]:
            await store.create_user(User(id=user_id, last_active_at=clock.now() - age))
        scheduler = ReengagementScheduler(store=store, notify=notify, clock=clock)

        stats = await scheduler.get_stats()

        assert stats.to_dict() == {
            "total_inactive_users": 4,
            "inactive_24h": 2,
            "inactive_3d": 1,
            "inactive_7d": 1,
        }
