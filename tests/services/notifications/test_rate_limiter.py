"""
Tests for the per-user rate limiter.
"""

from __future__ import annotations

from social_notify.services.notifications import MemoryStateStore, RateLimiter


class TestDailyLimit:
    """The daily ceiling covers every persisted notification."""

    def test_allows_up_to_limit(self, clock):
        limiter = RateLimiter(clock=clock)

        for _ in range(15):
            assert limiter.can_send_notification("alice") is True
            limiter.record_sent("alice")

        assert limiter.can_send_notification("alice") is False

    def test_users_are_independent(self, clock):
        limiter = RateLimiter(clock=clock, max_per_day=1)
        limiter.record_sent("alice")

        assert limiter.can_send_notification("alice") is False
        assert limiter.can_send_notification("bob") is True

    def test_resets_after_window(self, clock):
        limiter = RateLimiter(clock=clock, max_per_day=2)
        limiter.record_sent("alice")
        limiter.record_sent("alice")

        clock.advance(hours=23, minutes=59)
        assert limiter.can_send_notification("alice") is False

        clock.advance(minutes=1)
        assert limiter.can_send_notification("alice") is True
        assert limiter.get_status("alice")["daily_count"] == 0


class TestHourlyPushLimit:
    """The hourly ceiling covers push deliveries only."""

    def test_sixth_push_refused(self, clock):
        limiter = RateLimiter(clock=clock)

        for _ in range(5):
            assert limiter.can_send_push("alice") is True
            limiter.record_push_sent("alice")

        assert limiter.can_send_push("alice") is False
        # Pushes do not consume the daily allowance
        assert limiter.can_send_notification("alice") is True

    def test_resets_after_hour(self, clock):
        limiter = RateLimiter(clock=clock, max_push_per_hour=1)
        limiter.record_push_sent("alice")

        clock.advance(minutes=59)
        assert limiter.can_send_push("alice") is False

        clock.advance(minutes=1)
        assert limiter.can_send_push("alice") is True

    def test_window_opens_from_first_read_after_expiry(self, clock):
        """Lazy reset: the new window starts when it is next observed."""
        limiter = RateLimiter(clock=clock, max_push_per_hour=1)
        limiter.record_push_sent("alice")

        clock.advance(hours=5)
        limiter.record_push_sent("alice")

        clock.advance(minutes=59)
        assert limiter.can_send_push("alice") is False


class TestStatusAndCleanup:
    """Tests for reporting and eviction."""

    def test_get_status(self, clock):
        limiter = RateLimiter(clock=clock)
        limiter.record_sent("alice")
        limiter.record_push_sent("alice")

        status = limiter.get_status("alice")

        assert status["user_id"] == "alice"
        assert status["daily_count"] == 1
        assert status["daily_remaining"] == 14
        assert status["hourly_push_remaining"] == 4
        assert status["daily_reset_at"] == "2026-03-11T12:00:00+00:00"

    def test_cleanup_evicts_stale_entries(self, clock):
        state = MemoryStateStore(clock=clock)
        limiter = RateLimiter(state=state, clock=clock)
        limiter.record_sent("old")

        # old's daily window ends day 1; it is stale 2 days after that
        clock.advance(days=3, minutes=1)
        limiter.record_sent("fresh")

        assert limiter.cleanup() == 1
        assert state.keys("ratelimit:") == ["ratelimit:fresh"]
        assert limiter.tracked_users == 1

    def test_shared_state_store(self, clock):
        """Two limiters over one state store see the same counters."""
        state = MemoryStateStore(clock=clock)
        first = RateLimiter(state=state, clock=clock, max_per_day=1)
        second = RateLimiter(state=state, clock=clock, max_per_day=1)

        first.record_sent("alice")

        assert second.can_send_notification("alice") is False
