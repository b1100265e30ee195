"""
Social Notify Centralized Configuration

Provides validated, type-safe access to all environment variables using Pydantic Settings.

Usage:
    from social_notify.core.config import get_settings

    settings = get_settings()
    if settings.max_push_per_hour > 5:
        ...

Environment Variables:
    NOTIFY_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    NOTIFY_DEBUG: Legacy debug flag (enables DEBUG level if set)
    NOTIFY_LOG_JSON: Output logs as JSON
    NOTIFY_TIMEZONE: Timezone used for calendar days and hours-of-day
    NOTIFY_DB_PATH: SQLite database path for the reference store
    NOTIFY_PUSH_GATEWAY_URL: Push gateway endpoint (unset = push disabled)
    NOTIFY_PUSH_API_KEY: Bearer token for the push gateway
    NOTIFY_REALTIME_URL: Real-time sync deployment URL (unset = sync disabled)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_project_root() -> Path:
    """
    Find the project root by searching upward for pyproject.toml.

    Falls back to the current working directory.
    """
    current = Path(__file__).resolve().parent
    for _ in range(10):  # Limit search depth
        if (current / "pyproject.toml").exists():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    return Path.cwd()


_PROJECT_ROOT = _find_project_root()
_ENV_FILE = _PROJECT_ROOT / ".env" if (_PROJECT_ROOT / ".env").exists() else None


class NotifySettings(BaseSettings):
    """
    Notification engine settings with validation.

    Environment variables are automatically loaded with the NOTIFY_ prefix.
    All settings have sensible defaults and validation.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Log level for notification engine components",
    )

    debug: bool = Field(
        default=False,
        description="Legacy debug flag (enables DEBUG level if set)",
    )

    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format for machine parsing",
    )

    # =========================================================================
    # Calendar
    # =========================================================================

    timezone: str = Field(
        default="UTC",
        description="zoneinfo timezone for calendar days and hour-of-day buckets",
    )

    # =========================================================================
    # Storage
    # =========================================================================

    db_path: Path = Field(
        default=_PROJECT_ROOT / "cache" / "notifications.db",
        description="SQLite database path for the reference store",
    )

    # =========================================================================
    # Rate Limits
    # =========================================================================

    max_notifications_per_day: int = Field(default=15, ge=1)
    max_push_per_hour: int = Field(default=5, ge=1)

    # =========================================================================
    # Timing & Engagement
    # =========================================================================

    activity_pattern_ttl_hours: float = Field(
        default=1.0,
        gt=0,
        description="How long a computed activity pattern is reused",
    )

    high_engagement_threshold: int = Field(
        default=20,
        ge=1,
        description="Read notifications in 30 days that mark a user as highly engaged",
    )

    # =========================================================================
    # Batching, Streaks, Re-engagement
    # =========================================================================

    batching_enabled: bool = Field(default=True)
    batch_window_minutes: float = Field(default=15.0, gt=0)

    streak_reminder_hours: float = Field(default=4.0, gt=0, le=24)
    reengagement_min_interval_hours: float = Field(default=24.0, gt=0)
    scan_batch_size: int = Field(default=100, ge=1, le=1000)

    # =========================================================================
    # Delivery Channels
    # =========================================================================

    push_gateway_url: Optional[str] = Field(
        default=None,
        description="Push gateway endpoint; push delivery is a no-op when unset",
    )

    push_api_key: Optional[str] = Field(
        default=None,
        description="Bearer token for the push gateway",
    )

    realtime_url: Optional[str] = Field(
        default=None,
        description="Real-time sync deployment URL; sync is a no-op when unset",
    )

    http_timeout_seconds: float = Field(default=10.0, gt=0)
    http_retry_attempts: int = Field(default=3, ge=1, le=10)

    outbound_max_attempts: int = Field(default=3, ge=1)
    outbound_backoff_seconds: float = Field(default=30.0, ge=0)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject timezone names zoneinfo cannot resolve."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def effective_log_level(self) -> str:
        """
        Get effective log level, respecting legacy NOTIFY_DEBUG.

        Priority:
        1. Explicit NOTIFY_LOG_LEVEL
        2. NOTIFY_DEBUG=1 -> DEBUG
        3. Default: WARNING
        """
        if self.debug and self.log_level == "WARNING":
            return "DEBUG"
        return self.log_level

    @property
    def log_level_int(self) -> int:
        """Get effective log level as logging constant."""
        return getattr(logging, self.effective_log_level)

    @property
    def zone(self) -> ZoneInfo:
        """Configured timezone as a ZoneInfo."""
        return ZoneInfo(self.timezone)

    @property
    def push_configured(self) -> bool:
        """Check if the push gateway is configured."""
        return bool(self.push_gateway_url)

    @property
    def realtime_configured(self) -> bool:
        """Check if the real-time sync backend is configured."""
        return bool(self.realtime_url)


# =============================================================================
# Singleton Accessor
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> NotifySettings:
    """
    Get the singleton settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return NotifySettings()


def reset_settings() -> None:
    """
    Reset the settings cache (for testing).

    After calling this, the next get_settings() call will
    reload settings from environment variables.
    """
    get_settings.cache_clear()


def is_json_logging() -> bool:
    """Check if JSON logging is enabled."""
    return get_settings().log_json
