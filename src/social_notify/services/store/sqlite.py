"""
SQLite Implementation of the Notification Store.

Reference implementation of NotificationStore used by the CLI and the test
suite. Production deployments plug in their own datastore behind the same
protocol.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from pathlib import Path

import aiosqlite

from ...core.clock import from_epoch, to_epoch
from ...core.logging import get_logger
from ..notifications.errors import StoreNotInitializedError
from .migrations import MigrationRunner
from .protocol import NewNotification, Notification, Post, StreakFields, User

logger = get_logger(__name__)

# Friends of ? : rows where ? is either side of the friendship
_FRIEND_IDS_SQL = """
    SELECT user_b FROM friendships WHERE user_a = :uid
    UNION
    SELECT user_a FROM friendships WHERE user_b = :uid
"""


def _ts(value: datetime | None) -> float | None:
    return to_epoch(value) if value is not None else None


def _dt(value: float | None) -> datetime | None:
    return from_epoch(value) if value is not None else None


class SQLiteNotificationStore:
    """
    SQLite implementation of NotificationStore.

    Connection configuration:
        PRAGMA journal_mode=WAL
        PRAGMA busy_timeout=5000
        PRAGMA foreign_keys=ON
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the store.

        Args:
            db_path: Path to database file, or ":memory:".
                Defaults to the NOTIFY_DB_PATH setting.
        """
        if db_path is None:
            from ...core.config import get_settings

            db_path = get_settings().db_path

        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database and run migrations. Must be called first."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA busy_timeout=5000")
        await self._db.execute("PRAGMA foreign_keys=ON")

        runner = MigrationRunner(self._db)
        await runner.run_migrations()

        self._db.row_factory = aiosqlite.Row
        logger.info("Notification store initialized: %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Notification store closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection, raising if not initialized."""
        if self._db is None:
            raise StoreNotInitializedError("Notification store")
        return self._db

    # -------------------------------------------------------------------------
    # Users & Posts
    # -------------------------------------------------------------------------

    async def find_user(self, user_id: str) -> User | None:
        cursor = await self.db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        row = await cursor.fetchone()
        return self._row_to_user(row) if row else None

    async def create_user(self, user: User) -> None:
        await self.db.execute(
            """
            INSERT INTO users (
                id, name, username, is_active, current_streak, longest_streak,
                last_post_date, last_active_at, reengagement_sent_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user.id,
                user.name,
                user.username,
                int(user.is_active),
                user.current_streak,
                user.longest_streak,
                _ts(user.last_post_date),
                _ts(user.last_active_at),
                _ts(user.reengagement_sent_at),
            ),
        )
        await self.db.commit()

    async def find_post(self, post_id: str) -> Post | None:
        cursor = await self.db.execute("SELECT * FROM posts WHERE id = ?", (post_id,))
        row = await cursor.fetchone()
        if not row:
            return None
        return Post(
            id=row["id"],
            author_id=row["author_id"],
            title=row["title"],
            created_at=_dt(row["created_at"]),
        )

    async def create_post(self, post: Post) -> None:
        created_at = post.created_at or datetime.now().astimezone()
        await self.db.execute(
            "INSERT INTO posts (id, author_id, title, created_at) VALUES (?, ?, ?, ?)",
            (post.id, post.author_id, post.title, to_epoch(created_at)),
        )
        await self.db.commit()

    def _row_to_user(self, row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            username=row["username"],
            is_active=bool(row["is_active"]),
            current_streak=row["current_streak"],
            longest_streak=row["longest_streak"],
            last_post_date=_dt(row["last_post_date"]),
            last_active_at=_dt(row["last_active_at"]),
            reengagement_sent_at=_dt(row["reengagement_sent_at"]),
        )

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def create_notification(
        self, row: NewNotification, created_at: datetime | None = None
    ) -> Notification:
        notification = Notification(
            id=uuid.uuid4().hex,
            user_id=row.user_id,
            type=row.type,
            title=row.title,
            message=row.message,
            data=dict(row.data),
            read=False,
            created_at=created_at or datetime.now().astimezone(),
        )
        await self.db.execute(
            """
            INSERT INTO notifications (id, user_id, type, title, message, data_json, read, created_at)
            VALUES (?, ?, ?, ?, ?, ?, 0, ?)
            """,
            (
                notification.id,
                notification.user_id,
                notification.type,
                notification.title,
                notification.message,
                json.dumps(notification.data, default=str),
                to_epoch(notification.created_at),
            ),
        )
        await self.db.commit()
        return notification

    async def count_unread_notifications(self, user_id: str) -> int:
        cursor = await self.db.execute(
            "SELECT COUNT(*) FROM notifications WHERE user_id = ? AND read = 0",
            (user_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def read_notifications_since(
        self, user_id: str, since: datetime, limit: int
    ) -> list[Notification]:
        cursor = await self.db.execute(
            """
            SELECT * FROM notifications
            WHERE user_id = ? AND read = 1 AND created_at >= ?
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (user_id, to_epoch(since), limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_notification(r) for r in rows]

    async def mark_notification_read(self, notification_id: str) -> bool:
        cursor = await self.db.execute(
            "UPDATE notifications SET read = 1 WHERE id = ?", (notification_id,)
        )
        await self.db.commit()
        return cursor.rowcount > 0

    def _row_to_notification(self, row: aiosqlite.Row) -> Notification:
        return Notification(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            title=row["title"],
            message=row["message"],
            data=json.loads(row["data_json"] or "{}"),
            read=bool(row["read"]),
            created_at=from_epoch(row["created_at"]),
        )

    # -------------------------------------------------------------------------
    # Engine-managed user fields
    # -------------------------------------------------------------------------

    async def update_streak_fields(self, user_id: str, fields: StreakFields) -> None:
        await self.db.execute(
            """
            UPDATE users
            SET current_streak = ?, longest_streak = ?, last_post_date = ?
            WHERE id = ?
            """,
            (
                fields.current_streak,
                fields.longest_streak,
                to_epoch(fields.last_post_date),
                user_id,
            ),
        )
        await self.db.commit()

    async def update_last_active(self, user_id: str, ts: datetime) -> None:
        await self.db.execute(
            "UPDATE users SET last_active_at = ? WHERE id = ?", (to_epoch(ts), user_id)
        )
        await self.db.commit()

    async def update_reengagement_sent_at(self, user_id: str, ts: datetime) -> None:
        await self.db.execute(
            "UPDATE users SET reengagement_sent_at = ? WHERE id = ?", (to_epoch(ts), user_id)
        )
        await self.db.commit()

    # -------------------------------------------------------------------------
    # Device tokens
    # -------------------------------------------------------------------------

    async def list_active_device_tokens(self, user_id: str) -> list[str]:
        cursor = await self.db.execute(
            "SELECT token FROM device_tokens WHERE user_id = ? AND is_active = 1",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [r["token"] for r in rows]

    async def upsert_device_token(
        self, user_id: str, token: str, platform: str, ts: datetime
    ) -> None:
        await self.db.execute(
            """
            INSERT INTO device_tokens (token, user_id, platform, is_active, last_used_at)
            VALUES (?, ?, ?, 1, ?)
            ON CONFLICT(token) DO UPDATE SET
                user_id = excluded.user_id,
                platform = excluded.platform,
                is_active = 1,
                last_used_at = excluded.last_used_at
            """,
            (token, user_id, platform, to_epoch(ts)),
        )
        await self.db.commit()

    async def deactivate_device_token(self, token: str) -> bool:
        cursor = await self.db.execute(
            "UPDATE device_tokens SET is_active = 0 WHERE token = ?", (token,)
        )
        await self.db.commit()
        return cursor.rowcount > 0

    async def touch_device_token(self, token: str, ts: datetime) -> None:
        await self.db.execute(
            "UPDATE device_tokens SET last_used_at = ? WHERE token = ?", (to_epoch(ts), token)
        )
        await self.db.commit()

    async def delete_stale_device_tokens(self, cutoff: datetime) -> int:
        cursor = await self.db.execute(
            """
            DELETE FROM device_tokens
            WHERE is_active = 0 OR last_used_at IS NULL OR last_used_at < ?
            """,
            (to_epoch(cutoff),),
        )
        await self.db.commit()
        return cursor.rowcount

    # -------------------------------------------------------------------------
    # Social graph
    # -------------------------------------------------------------------------

    async def are_friends(self, user_a: str, user_b: str) -> bool:
        a, b = sorted((user_a, user_b))
        cursor = await self.db.execute(
            "SELECT 1 FROM friendships WHERE user_a = ? AND user_b = ?", (a, b)
        )
        return await cursor.fetchone() is not None

    async def add_friendship(self, user_a: str, user_b: str) -> None:
        a, b = sorted((user_a, user_b))
        await self.db.execute(
            """
            INSERT OR IGNORE INTO friendships (user_a, user_b, created_at)
            VALUES (?, ?, strftime('%s', 'now'))
            """,
            (a, b),
        )
        await self.db.commit()

    async def count_friend_posts_since(self, user_id: str, since: datetime) -> int:
        cursor = await self.db.execute(
            f"""
            SELECT COUNT(*) FROM posts
            WHERE created_at > :since AND author_id IN ({_FRIEND_IDS_SQL})
            """,
            {"uid": user_id, "since": to_epoch(since)},
        )
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def latest_friend_poster_name(self, user_id: str, since: datetime) -> str | None:
        cursor = await self.db.execute(
            f"""
            SELECT u.name, u.username FROM posts p
            JOIN users u ON u.id = p.author_id
            WHERE p.created_at > :since AND p.author_id IN ({_FRIEND_IDS_SQL})
            ORDER BY p.created_at DESC
            LIMIT 1
            """,
            {"uid": user_id, "since": to_epoch(since)},
        )
        row = await cursor.fetchone()
        if not row:
            return None
        return row["name"] or row["username"] or None

    # -------------------------------------------------------------------------
    # Scan queries
    # -------------------------------------------------------------------------

    async def list_streak_reminder_candidates(
        self,
        min_streak: int,
        posted_from: datetime,
        posted_before: datetime,
        limit: int,
    ) -> list[User]:
        cursor = await self.db.execute(
            """
            SELECT * FROM users
            WHERE is_active = 1
              AND current_streak >= ?
              AND last_post_date >= ?
              AND last_post_date < ?
            LIMIT ?
            """,
            (min_streak, to_epoch(posted_from), to_epoch(posted_before), limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_user(r) for r in rows]

    async def list_reengagement_candidates(
        self,
        inactive_before: datetime,
        cooldown_before: datetime,
        limit: int,
    ) -> list[User]:
        cursor = await self.db.execute(
            """
            SELECT * FROM users
            WHERE is_active = 1
              AND last_active_at < ?
              AND (reengagement_sent_at IS NULL OR reengagement_sent_at < ?)
            ORDER BY last_active_at ASC
            LIMIT ?
            """,
            (to_epoch(inactive_before), to_epoch(cooldown_before), limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_user(r) for r in rows]

    async def count_inactive_users(
        self, inactive_before: datetime, inactive_since: datetime | None = None
    ) -> int:
        sql = "SELECT COUNT(*) FROM users WHERE is_active = 1 AND last_active_at < ?"
        params: list[float] = [to_epoch(inactive_before)]
        if inactive_since is not None:
            sql += " AND last_active_at >= ?"
            params.append(to_epoch(inactive_since))
        cursor = await self.db.execute(sql, params)
        row = await cursor.fetchone()
        return row[0] if row else 0
