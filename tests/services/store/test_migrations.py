"""
Tests for the migration runner.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import pytest

from social_notify.services.store import MigrationRunner
from social_notify.services.store.migrations import MIGRATIONS_DIR


async def _tables(db: aiosqlite.Connection) -> set[str]:
    cursor = await db.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    return {row[0] for row in await cursor.fetchall()}


@pytest.mark.asyncio
class TestMigrationRunner:
    """Tests for applying versioned migrations."""

    async def test_applies_initial_schema(self, temp_db_path: Path):
        async with aiosqlite.connect(temp_db_path) as db:
            runner = MigrationRunner(db)

            applied = await runner.run_migrations()

            assert applied >= 1
            assert await runner.get_current_version() >= 1
            assert {
                "users",
                "posts",
                "notifications",
                "friendships",
                "device_tokens",
                "schema_migrations",
            } <= await _tables(db)

    async def test_idempotent(self, temp_db_path: Path):
        async with aiosqlite.connect(temp_db_path) as db:
            runner = MigrationRunner(db)
            await runner.run_migrations()

            assert await runner.run_migrations() == 0

    async def test_only_newer_versions_applied(self, tmp_path: Path, temp_db_path: Path):
        migrations = tmp_path / "migrations"
        migrations.mkdir()
        (migrations / "001_first.sql").write_text("CREATE TABLE one (id INTEGER);")

        async with aiosqlite.connect(temp_db_path) as db:
            runner = MigrationRunner(db, migrations_dir=migrations)
            assert await runner.run_migrations() == 1

            (migrations / "002_second_table.sql").write_text("CREATE TABLE two (id INTEGER);")
            assert await runner.run_migrations() == 1
            assert await runner.get_current_version() == 2

            cursor = await db.execute(
                "SELECT description FROM schema_migrations WHERE version = 2"
            )
            row = await cursor.fetchone()
            assert row[0] == "second table"

    async def test_invalid_filenames_skipped(self, tmp_path: Path, temp_db_path: Path):
        migrations = tmp_path / "migrations"
        migrations.mkdir()
        (migrations / "notes.sql").write_text("CREATE TABLE nope (id INTEGER);")

        async with aiosqlite.connect(temp_db_path) as db:
            runner = MigrationRunner(db, migrations_dir=migrations)

            assert await runner.run_migrations() == 0
            assert "nope" not in await _tables(db)


class TestMigrationFiles:
    """Sanity checks on shipped migration files."""

    def test_migrations_dir_has_sql(self):
        assert sorted(p.name for p in MIGRATIONS_DIR.glob("*.sql"))[0] == "001_initial_schema.sql"

    def test_parse_version(self):
        assert MigrationRunner._parse_version("001_initial_schema.sql") == 1
        assert MigrationRunner._parse_version("initial.sql") is None
