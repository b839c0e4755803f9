"""SQL schema management via ordered, versioned migration files."""

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path

import aiosqlite

from tasktracker.core.config import constants, settings
from tasktracker.core.db_client import SQL_NOW, ConnectionPool
from tasktracker.core.errors import DatabaseError


logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "_migrations"

_MIGRATION_FILENAME = re.compile(r"^(\d+)_(\w+)\.sql$")

_CREATE_MIGRATIONS_TABLE = f"""
CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (
    version INTEGER PRIMARY KEY NOT NULL,
    description TEXT NOT NULL,
    checksum TEXT NOT NULL,
    applied_at TEXT NOT NULL DEFAULT ({SQL_NOW})
)
"""


@dataclass(frozen=True)
class Migration:
    """One migration file."""

    version: int
    description: str
    sql: str

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode("utf-8")).hexdigest()


def resolve_migrations_dir(migrations_dir: Path | str | None = None) -> Path:
    """Pick the explicit directory, then the configured one, then the packaged migrations."""
    if migrations_dir is not None:
        return Path(migrations_dir)
    if settings.migrations_dir is not None:
        return settings.migrations_dir
    return constants.MIGRATIONS_DIR


def discover_migrations(migrations_dir: Path | str | None = None) -> list[Migration]:
    """Load ``NNN_description.sql`` files ordered by version.

    Files not matching the naming pattern are ignored.

    Raises:
        DatabaseError: If the directory is missing or two files share a version
    """
    directory = resolve_migrations_dir(migrations_dir)
    if not directory.is_dir():
        msg = f"Migrations directory not found: {directory}"
        raise DatabaseError(msg)

    migrations: dict[int, Migration] = {}
    for path in sorted(directory.iterdir()):
        match = _MIGRATION_FILENAME.match(path.name)
        if not match:
            continue

        version = int(match.group(1))
        if version in migrations:
            msg = f"Duplicate migration version {version}: {path.name}"
            raise DatabaseError(msg)

        migrations[version] = Migration(
            version=version,
            description=match.group(2).replace("_", " "),
            sql=path.read_text(encoding="utf-8"),
        )

    return [migrations[version] for version in sorted(migrations)]


async def _applied_checksums(conn: aiosqlite.Connection) -> dict[int, str]:
    await conn.execute(_CREATE_MIGRATIONS_TABLE)
    await conn.commit()
    cursor = await conn.execute(f"SELECT version, checksum FROM {MIGRATIONS_TABLE}")  # noqa: S608 - constant table name
    rows = await cursor.fetchall()
    return {row["version"]: row["checksum"] for row in rows}


def _migration_script(migration: Migration) -> str:
    """Wrap a migration and its bookkeeping row in one transaction."""
    description = migration.description.replace("'", "''")
    return (
        "BEGIN;\n"
        f"{migration.sql}\n;\n"
        f"INSERT INTO {MIGRATIONS_TABLE} (version, description, checksum) "
        f"VALUES ({migration.version}, '{description}', '{migration.checksum}');\n"
        "COMMIT;\n"
    )


async def run_migrations(pool: ConnectionPool, *, migrations_dir: Path | str | None = None) -> list[int]:
    """Apply pending migrations in version order.

    Each migration runs atomically together with its ``_migrations`` row, so
    repeated invocations are no-ops. Must complete before any repository call.

    Args:
        pool: Open connection pool
        migrations_dir: Override for the migrations location

    Returns:
        Versions applied by this call, in order

    Raises:
        DatabaseError: If a migration fails, or an applied migration's file has changed
    """
    migrations = discover_migrations(migrations_dir)

    async with pool.acquire(operation="run_migrations") as conn:
        applied = await _applied_checksums(conn)

        for migration in migrations:
            checksum = applied.get(migration.version)
            if checksum is not None and checksum != migration.checksum:
                logger.error(
                    "migration_checksum_mismatch",
                    extra={"version": migration.version, "description": migration.description},
                )
                msg = f"Migration {migration.version} ({migration.description}) was modified after being applied"
                raise DatabaseError(msg)

        newly_applied = []
        for migration in migrations:
            if migration.version in applied:
                continue

            try:
                await conn.executescript(_migration_script(migration))
            except aiosqlite.Error:
                if conn.in_transaction:
                    await conn.rollback()
                logger.error(
                    "migration_failed",
                    extra={"version": migration.version, "description": migration.description},
                )
                raise

            newly_applied.append(migration.version)
            logger.info(
                "Applied migration",
                extra={"version": migration.version, "description": migration.description},
            )

    logger.info("Migrations complete", extra={"applied": newly_applied, "total": len(migrations)})
    return newly_applied
