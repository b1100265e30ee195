"""
Tests for posting streaks.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from social_notify.services.notifications import NotificationType, StreakTracker
from social_notify.services.store import StreakFields, User

pytestmark = pytest.mark.asyncio


@pytest.fixture
def notify() -> AsyncMock:
    """Stands in for the dispatcher; returns a persisted notification."""
    return AsyncMock(return_value=MagicMock())


@pytest.fixture
def tracker(store, notify, clock) -> StreakTracker:
    return StreakTracker(store=store, notify=notify, clock=clock)


async def _user(store, user_id: str, streak: int, longest: int, last_post: datetime | None):
    await store.create_user(
        User(
            id=user_id,
            name=user_id.title(),
            current_streak=streak,
            longest_streak=longest,
            last_post_date=last_post,
        )
    )


class TestRecordPost:
    """Streak arithmetic on calendar days."""

    async def test_first_post_starts_streak(self, store, tracker, notify):
        await _user(store, "u", 0, 0, None)

        update = await tracker.record_post("u")

        assert update.new_streak == 1
        assert update.milestone_reached is False
        user = await store.find_user("u")
        assert (user.current_streak, user.longest_streak) == (1, 1)
        notify.assert_not_awaited()

    async def test_same_day_unchanged(self, store, tracker, clock):
        await _user(store, "u", 4, 4, clock.now() - timedelta(hours=3))

        update = await tracker.record_post("u")

        assert update.new_streak == 4
        assert (await store.find_user("u")).last_post_date == clock.now() - timedelta(hours=3)

    async def test_consecutive_day_increments(self, store, tracker, clock):
        await _user(store, "u", 4, 9, clock.now() - timedelta(days=1))

        update = await tracker.record_post("u")

        assert update.new_streak == 5
        user = await store.find_user("u")
        assert user.longest_streak == 9
        assert user.last_post_date == clock.now()

    async def test_late_night_then_early_morning_counts(self, store, tracker, clock):
        """23:59 then 00:01 is the next calendar day."""
        clock.set(datetime(2026, 3, 11, 0, 1, tzinfo=timezone.utc))
        await _user(store, "u", 1, 1, datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc))

        assert (await tracker.record_post("u")).new_streak == 2

    async def test_gap_resets(self, store, tracker, clock):
        await _user(store, "u", 10, 10, clock.now() - timedelta(days=2))

        update = await tracker.record_post("u")

        assert update.new_streak == 1
        user = await store.find_user("u")
        assert user.longest_streak == 10

    async def test_longest_tracks_new_high(self, store, tracker, clock):
        await _user(store, "u", 5, 5, clock.now() - timedelta(days=1))

        await tracker.record_post("u")

        assert (await store.find_user("u")).longest_streak == 6

    async def test_unknown_user(self, tracker):
        update = await tracker.record_post("ghost")
        assert update.new_streak == 0
        assert update.milestone_reached is False


class TestMilestones:
    """Milestone notifications."""

    async def test_day_seven_notifies(self, store, tracker, notify, clock):
        await _user(store, "u", 6, 6, clock.now() - timedelta(days=1))

        update = await tracker.record_post("u")

        assert update.milestone_reached is True
        notify.assert_awaited_once()
        user_id, type_, title, _message, data = notify.await_args.args
        assert user_id == "u"
        assert type_ is NotificationType.GENERAL
        assert title == "🔥 One Week Streak!"
        assert data == {"streakMilestone": True, "streakCount": 7}

    async def test_non_milestone_silent(self, store, tracker, notify, clock):
        await _user(store, "u", 4, 4, clock.now() - timedelta(days=1))

        await tracker.record_post("u")

        notify.assert_not_awaited()


class TestStatus:
    """At-risk status."""

    async def test_at_risk_near_midnight(self, store, tracker, clock):
        clock.set(datetime(2026, 3, 10, 21, 0, tzinfo=timezone.utc))
        await _user(store, "u", 3, 3, datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc))

        status = await tracker.get_status("u")

        assert status.is_at_risk is True
        assert status.hours_until_streak_loss == 3.0

    async def test_not_at_risk_early_in_day(self, store, tracker, clock):
        clock.set(datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc))
        await _user(store, "u", 3, 3, datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc))

        status = await tracker.get_status("u")

        assert status.is_at_risk is False
        assert status.hours_until_streak_loss == 15.0

    async def test_posted_today_not_at_risk(self, store, tracker, clock):
        clock.set(datetime(2026, 3, 10, 22, 0, tzinfo=timezone.utc))
        await _user(store, "u", 3, 3, datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc))

        status = await tracker.get_status("u")

        assert status.is_at_risk is False
        assert status.to_dict()["current_streak"] == 3

    async def test_unknown_user(self, tracker):
        assert await tracker.get_status("ghost") is None

    async def test_local_timezone_days(self, store, notify):
        """Days are counted in the configured timezone, not UTC."""
        from social_notify.core.clock import ManualClock

        tz = ZoneInfo("America/New_York")
        # 01:00 UTC on the 11th is still the evening of the 10th in New York
        clock = ManualClock(datetime(2026, 3, 11, 1, 0, tzinfo=timezone.utc))
        tracker = StreakTracker(store=store, notify=notify, clock=clock, tz=tz)
        await _user(store, "u", 2, 2, datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc))

        assert (await tracker.record_post("u")).new_streak == 2


class TestAtRiskScan:
    """Periodic at-risk reminders."""

    async def test_reminds_inside_window(self, store, tracker, notify, clock):
        clock.set(datetime(2026, 3, 10, 21, 30, tzinfo=timezone.utc))
        yesterday = datetime(2026, 3, 9, 12, 0, tzinfo=timezone.utc)
        await _user(store, "keen", 5, 5, yesterday)
        await _user(store, "newbie", 1, 1, yesterday)
        await _user(store, "done", 5, 5, datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc))

        result = await tracker.scan_at_risk_users()

        assert result.processed == 1
        assert result.sent == 1
        user_id, _type, title, message, data = notify.await_args.args
        assert user_id == "keen"
        assert title == "⏰ Your streak is at risk!"
        assert "2 hours" in message
        assert data == {"streakReminder": True, "currentStreak": 5, "hoursLeft": 2}

    async def test_no_reminders_outside_window(self, store, tracker, notify, clock):
        clock.set(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))
        await _user(store, "keen", 5, 5, datetime(2026, 3, 9, 12, 0, tzinfo=timezone.utc))

        result = await tracker.scan_at_risk_users()

        assert result.processed == 1
        assert result.sent == 0
        notify.assert_not_awaited()

    async def test_suppressed_reminder_not_counted(self, store, tracker, notify, clock):
        clock.set(datetime(2026, 3, 10, 21, 30, tzinfo=timezone.utc))
        await _user(store, "keen", 5, 5, datetime(2026, 3, 9, 12, 0, tzinfo=timezone.utc))
        notify.return_value = None

        result = await tracker.scan_at_risk_users()

        assert result.processed == 1
        assert result.sent == 0
        notify.assert_awaited_once()

    async def test_reminder_skips_short_streaks(self, tracker, notify):
        assert await tracker.send_at_risk_reminder("u", 1, 2.0) is False
        notify.assert_not_awaited()

    async def test_store_failure_returns_empty_result(self, notify, clock):
        store = MagicMock()
        store.list_streak_reminder_candidates = AsyncMock(side_effect=RuntimeError("db down"))
        tracker = StreakTracker(store=store, notify=notify, clock=clock)

        result = await tracker.scan_at_risk_users()

        assert (result.processed, result.sent) == (0, 0)

    async def test_streak_fields_written(self, clock, notify):
        store = MagicMock()
        store.find_user = AsyncMock(
            return_value=User(
                id="u",
                current_streak=2,
                longest_streak=2,
                last_post_date=clock.now() - timedelta(days=1),
            )
        )
        store.update_streak_fields = AsyncMock()
        tracker = StreakTracker(store=store, notify=notify, clock=clock)

        await tracker.record_post("u")

        store.update_streak_fields.assert_awaited_once_with(
            "u", StreakFields(current_streak=3, longest_streak=3, last_post_date=clock.now())
        )
