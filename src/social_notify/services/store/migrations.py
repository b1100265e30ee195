"""
Schema migrations for the SQLite notification store.

The store calls MigrationRunner from initialize(), so a fresh database file
gets users, posts, friendships, notifications and device tokens before the
first query.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING

from ...core.logging import get_logger

if TYPE_CHECKING:
    import aiosqlite

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class MigrationRunner:
    """
    Bring a store connection up to the newest schema version.

    Each ``NNN_description.sql`` file with a version above the highest row
    in ``schema_migrations`` is executed and recorded.
    """

    def __init__(self, db: aiosqlite.Connection, migrations_dir: Path = MIGRATIONS_DIR):
        self.db = db
        self.migrations_dir = migrations_dir

    async def run_migrations(self) -> int:
        """
        Run every migration newer than the recorded version.

        Returns:
            How many files were executed (0 on an up-to-date store)
        """
        await self._ensure_migrations_table()
        current_version = await self.get_current_version()
        applied = 0

        for migration_file in sorted(self.migrations_dir.glob("*.sql")):
            version = self._parse_version(migration_file.name)
            if version is None:
                logger.warning(
                    "Ignoring migration without a numeric prefix: %s", migration_file.name
                )
                continue

            if version > current_version:
                await self._apply_migration(version, migration_file)
                applied += 1

        if applied > 0:
            logger.info(
                "Notification store schema now at version %d (%d applied)",
                await self.get_current_version(),
                applied,
            )

        return applied

    async def _ensure_migrations_table(self) -> None:
        await self.db.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL,
                description TEXT
            )
            """
        )
        await self.db.commit()

    async def get_current_version(self) -> int:
        """Latest applied migration version, or 0 if none applied."""
        cursor = await self.db.execute("SELECT MAX(version) FROM schema_migrations")
        row = await cursor.fetchone()
        return row[0] if row and row[0] is not None else 0

    async def _apply_migration(self, version: int, path: Path) -> None:
        sql = path.read_text()
        description = self._parse_description(path.name)

        logger.info("Migrating notification store to %03d (%s)", version, description)

        await self.db.executescript(sql)
        await self.db.execute(
            """
            INSERT INTO schema_migrations (version, applied_at, description)
            VALUES (?, ?, ?)
            """,
            (version, int(time.time()), description),
        )
        await self.db.commit()

    @staticmethod
    def _parse_version(filename: str) -> int | None:
        """Parse the numeric prefix of "001_initial_schema.sql"."""
        try:
            return int(filename.split("_", 1)[0])
        except ValueError:
            return None

    @staticmethod
    def _parse_description(filename: str) -> str:
        """Human-readable description from the filename."""
        name = filename.rsplit(".", 1)[0]
        parts = name.split("_", 1)
        if len(parts) > 1:
            return parts[1].replace("_", " ")
        return name
