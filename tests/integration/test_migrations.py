"""Integration tests for the migration runner."""

import shutil
from pathlib import Path

import pytest

from tasktracker.core.config import constants
from tasktracker.core.db_client import ConnectionPool, create_pool
from tasktracker.core.errors import DatabaseError
from tasktracker.core.schema import MIGRATIONS_TABLE, discover_migrations, run_migrations


async def _table_names(pool: ConnectionPool) -> set[str]:
    async with pool.acquire() as conn:
        cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        rows = await cursor.fetchall()
    return {row["name"] for row in rows}


async def _applied_versions(pool: ConnectionPool) -> list[int]:
    async with pool.acquire() as conn:
        cursor = await conn.execute(f"SELECT version FROM {MIGRATIONS_TABLE} ORDER BY version")
        rows = await cursor.fetchall()
    return [row["version"] for row in rows]


@pytest.fixture
async def bare_pool(database_url: str):
    """Open pool on a database with no schema yet."""
    pool = await create_pool(database_url)
    yield pool
    await pool.close()


@pytest.fixture
def migrations_copy(tmp_path: Path) -> Path:
    """Writable copy of the packaged migrations."""
    target = tmp_path / "migrations"
    shutil.copytree(constants.MIGRATIONS_DIR, target)
    return target


@pytest.mark.unit
class TestDiscoverMigrations:
    """Tests for discover_migrations."""

    def test_packaged_migrations_in_order(self):
        migrations = discover_migrations()

        assert [m.version for m in migrations] == [1, 2]
        assert migrations[0].description == "create users table"
        assert migrations[1].description == "create tasks table"

    def test_orders_numerically_and_ignores_other_files(self, tmp_path: Path):
        (tmp_path / "10_later.sql").write_text("SELECT 1;")
        (tmp_path / "2_earlier.sql").write_text("SELECT 1;")
        (tmp_path / "README.md").write_text("not a migration")

        assert [m.version for m in discover_migrations(tmp_path)] == [2, 10]

    def test_duplicate_versions_rejected(self, tmp_path: Path):
        (tmp_path / "001_a.sql").write_text("SELECT 1;")
        (tmp_path / "1_b.sql").write_text("SELECT 1;")

        with pytest.raises(DatabaseError, match="Duplicate migration version 1"):
            discover_migrations(tmp_path)

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(DatabaseError, match="Migrations directory not found"):
            discover_migrations(tmp_path / "nope")

    def test_checksum_tracks_content(self, tmp_path: Path):
        path = tmp_path / "001_a.sql"
        path.write_text("SELECT 1;")
        before = discover_migrations(tmp_path)[0].checksum
        path.write_text("SELECT 2;")

        assert discover_migrations(tmp_path)[0].checksum != before


@pytest.mark.integration
class TestRunMigrations:
    """Tests for run_migrations."""

    async def test_creates_schema(self, bare_pool: ConnectionPool):
        applied = await run_migrations(bare_pool)

        assert applied == [1, 2]
        assert {"users", "tasks", MIGRATIONS_TABLE} <= await _table_names(bare_pool)

    async def test_repeated_runs_are_noops(self, bare_pool: ConnectionPool):
        await run_migrations(bare_pool)

        assert await run_migrations(bare_pool) == []
        assert await _applied_versions(bare_pool) == [1, 2]

    async def test_only_pending_migrations_run(self, bare_pool: ConnectionPool, migrations_copy: Path):
        await run_migrations(bare_pool, migrations_dir=migrations_copy)
        (migrations_copy / "003_add_notes_table.sql").write_text("CREATE TABLE notes (body TEXT);")

        assert await run_migrations(bare_pool, migrations_dir=migrations_copy) == [3]
        assert "notes" in await _table_names(bare_pool)

    async def test_modified_migration_detected(self, bare_pool: ConnectionPool, migrations_copy: Path):
        await run_migrations(bare_pool, migrations_dir=migrations_copy)
        path = migrations_copy / "002_create_tasks_table.sql"
        path.write_text(path.read_text() + "\n-- edited\n")

        with pytest.raises(DatabaseError, match="modified after being applied"):
            await run_migrations(bare_pool, migrations_dir=migrations_copy)

    async def test_failed_migration_rolled_back(self, bare_pool: ConnectionPool, tmp_path: Path):
        (tmp_path / "001_good.sql").write_text("CREATE TABLE good (x INTEGER);")
        (tmp_path / "002_bad.sql").write_text("CREATE TABLE half (x INTEGER);\nTHIS IS NOT SQL;")

        with pytest.raises(DatabaseError, match="run_migrations failed"):
            await run_migrations(bare_pool, migrations_dir=tmp_path)

        tables = await _table_names(bare_pool)
        assert "good" in tables
        assert "half" not in tables
        assert await _applied_versions(bare_pool) == [1]
        assert bare_pool.in_use_count == 0

    async def test_foreign_keys_enforced_after_migration(self, bare_pool: ConnectionPool):
        await run_migrations(bare_pool)

        with pytest.raises(DatabaseError, match="FOREIGN KEY"):
            async with bare_pool.acquire() as conn:
                await conn.execute("INSERT INTO tasks (title, description, user_id) VALUES ('t', '', 999)")
                await conn.commit()
