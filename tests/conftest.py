"""
Social Notify Test Suite - Shared Fixtures and Configuration

Provides a deterministic clock, a temporary SQLite store seeded with a
small social graph, and singleton resets between tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from social_notify.core.clock import ManualClock
from social_notify.core.config import NotifySettings
from social_notify.services.store import Post, SQLiteNotificationStore, User

# Tuesday noon UTC
BASE_TIME = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def clock() -> ManualClock:
    """A clock frozen at BASE_TIME until advanced."""
    return ManualClock(BASE_TIME)


@pytest.fixture
def settings(tmp_path: Path) -> NotifySettings:
    """
    Settings with delivery channels disabled and UTC calendar days.

    Individual tests override fields with ``settings.model_copy(update=...)``.
    """
    return NotifySettings(
        _env_file=None,
        timezone="UTC",
        db_path=tmp_path / "settings.db",
        push_gateway_url=None,
        push_api_key=None,
        realtime_url=None,
    )


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test_notifications.db"


@pytest_asyncio.fixture
async def store(temp_db_path: Path) -> AsyncGenerator[SQLiteNotificationStore, None]:
    """Create and initialize an empty test store."""
    store = SQLiteNotificationStore(db_path=temp_db_path)
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def seeded_store(
    store: SQLiteNotificationStore,
) -> AsyncGenerator[SQLiteNotificationStore, None]:
    """
    Store with three users and one post.

    alice and bob are friends; carol knows nobody. alice wrote post-1.
    """
    await store.create_user(User(id="alice", name="Alice", username="alice"))
    await store.create_user(User(id="bob", name="Bob", username="bobby"))
    await store.create_user(User(id="carol", name=None, username="carol_c"))
    await store.add_friendship("alice", "bob")
    await store.create_post(
        Post(id="post-1", author_id="alice", title="Sunset hike", created_at=BASE_TIME)
    )
    yield store


# =============================================================================
# Singleton Reset Fixture
# =============================================================================


@pytest.fixture(autouse=True)
def reset_all_singletons():
    """
    Reset module-level singletons before and after each test.

    Covers the settings cache, logger state (so caplog sees records) and
    the dispatcher singleton.
    """

    def do_reset():
        from social_notify.core.config import reset_settings
        from social_notify.core.logging import reset_logging
        from social_notify.services.notifications import reset_dispatcher

        reset_settings()
        reset_logging()
        reset_dispatcher()

    do_reset()
    yield
    do_reset()
