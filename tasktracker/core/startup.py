"""Database startup: pool creation, migrations and health verification."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from tasktracker.core.config import settings
from tasktracker.core.db_client import ConnectionPool, check_health, create_pool
from tasktracker.core.errors import DatabaseError
from tasktracker.core.logging import log_with_context
from tasktracker.core.schema import run_migrations


logger = logging.getLogger(__name__)


async def init_database(
    database_url: str | None = None,
    *,
    migrations_dir: Path | str | None = None,
) -> ConnectionPool:
    """Create the pool and bring the schema up to date.

    Any failure here is fatal to startup: it is logged, the pool is closed
    and the error is re-raised for the process entry point to act on.

    Args:
        database_url: Connection string; defaults to ``settings.database_url``
        migrations_dir: Override for the migrations location

    Returns:
        An open, migrated ConnectionPool

    Raises:
        DatabaseError: If the pool cannot be created, migrations fail, or the
            health probe fails afterwards
    """
    url = database_url or settings.database_url
    logger.info("startup_validation_begin", extra={"database_url": url})

    try:
        pool = await create_pool(url)
    except DatabaseError as e:
        log_with_context(logger, "error", "startup_validation_failed", stage="pool", error=str(e))
        raise

    try:
        applied = await run_migrations(pool, migrations_dir=migrations_dir)
        log_with_context(logger, "info", "startup_validation", stage="migrations", status="ok", applied=applied)

        if not await check_health(pool):
            msg = "Database health check failed after migrations"
            raise DatabaseError(msg)
    except DatabaseError as e:
        log_with_context(logger, "error", "startup_validation_failed", stage="migrations", error=str(e))
        await pool.close()
        raise

    logger.info("startup_validation_complete", extra={"status": "ok"})
    return pool


@asynccontextmanager
async def database_lifespan(
    database_url: str | None = None,
    *,
    migrations_dir: Path | str | None = None,
) -> AsyncIterator[ConnectionPool]:
    """Open a migrated pool for the lifetime of the ``async with`` block."""
    pool = await init_database(database_url, migrations_dir=migrations_dir)
    try:
        yield pool
    finally:
        await pool.close()
