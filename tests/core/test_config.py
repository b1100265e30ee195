"""
Tests for centralized configuration.
"""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from social_notify.core.config import NotifySettings, get_settings, reset_settings


class TestDefaults:
    """Default values match the engine's documented limits."""

    def test_rate_limit_defaults(self, monkeypatch):
        for var in ("NOTIFY_MAX_NOTIFICATIONS_PER_DAY", "NOTIFY_MAX_PUSH_PER_HOUR"):
            monkeypatch.delenv(var, raising=False)

        settings = NotifySettings(_env_file=None)

        assert settings.max_notifications_per_day == 15
        assert settings.max_push_per_hour == 5

    def test_engine_defaults(self):
        settings = NotifySettings(_env_file=None)

        assert settings.high_engagement_threshold == 20
        assert settings.batch_window_minutes == 15
        assert settings.streak_reminder_hours == 4
        assert settings.reengagement_min_interval_hours == 24
        assert settings.scan_batch_size == 100
        assert settings.activity_pattern_ttl_hours == 1

    def test_channels_unconfigured_by_default(self, monkeypatch):
        monkeypatch.delenv("NOTIFY_PUSH_GATEWAY_URL", raising=False)
        monkeypatch.delenv("NOTIFY_REALTIME_URL", raising=False)

        settings = NotifySettings(_env_file=None)

        assert settings.push_configured is False
        assert settings.realtime_configured is False


class TestEnvironment:
    """Environment variables override defaults."""

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_MAX_PUSH_PER_HOUR", "9")
        monkeypatch.setenv("NOTIFY_PUSH_GATEWAY_URL", "https://push.example.com/send")

        settings = NotifySettings(_env_file=None)

        assert settings.max_push_per_hour == 9
        assert settings.push_configured is True

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_LOG_LEVEL", "debug")
        settings = NotifySettings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.log_level_int == logging.DEBUG

    def test_legacy_debug_flag(self, monkeypatch):
        monkeypatch.delenv("NOTIFY_LOG_LEVEL", raising=False)
        monkeypatch.setenv("NOTIFY_DEBUG", "1")

        settings = NotifySettings(_env_file=None)

        assert settings.effective_log_level == "DEBUG"

    def test_explicit_level_beats_debug_flag(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("NOTIFY_DEBUG", "1")

        settings = NotifySettings(_env_file=None)

        assert settings.effective_log_level == "ERROR"


class TestValidation:
    """Invalid values are rejected."""

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            NotifySettings(_env_file=None, timezone="Mars/Olympus_Mons")

    def test_zone_property(self):
        settings = NotifySettings(_env_file=None, timezone="Europe/London")
        assert settings.zone == ZoneInfo("Europe/London")

    def test_rate_limits_must_be_positive(self):
        with pytest.raises(ValidationError):
            NotifySettings(_env_file=None, max_notifications_per_day=0)

    def test_reminder_window_within_day(self):
        with pytest.raises(ValidationError):
            NotifySettings(_env_file=None, streak_reminder_hours=30)


class TestSingleton:
    """get_settings caching."""

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_reset_reloads(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("NOTIFY_SCAN_BATCH_SIZE", "42")
        reset_settings()

        second = get_settings()

        assert second is not first
        assert second.scan_batch_size == 42
