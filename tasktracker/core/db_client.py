"""SQLite connection pool, database URL parsing and health probe."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from tasktracker.core.config import constants
from tasktracker.core.errors import DatabaseError, PoolTimeoutError


logger = logging.getLogger(__name__)

# Store-native timestamp: UTC, millisecond precision, sorts lexically in chronological order
SQL_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


def sql_bump_timestamp(column: str) -> str:
    """SQL expression refreshing a timestamp column to now, or 1 ms past its stored value if that is later.

    Keeps successive updates strictly increasing even within one millisecond.
    """
    return f"max({SQL_NOW}, strftime('%Y-%m-%dT%H:%M:%fZ', {column}, '+0.001 seconds'))"


SUPPORTED_DRIVERS = frozenset({"sqlite"})


def parse_database_url(database_url: str) -> Path:
    """Resolve a ``<driver>:<path>`` connection string to a database file path.

    Accepts ``sqlite:tasks.db``, ``sqlite://tasks.db`` and ``sqlite:///abs/tasks.db``.
    Query strings are ignored.

    Raises:
        DatabaseError: If the driver is unsupported, the path is empty or in-memory
    """
    driver, sep, rest = database_url.partition(":")
    if not sep or driver.lower() not in SUPPORTED_DRIVERS:
        msg = f"Unsupported database URL: {database_url!r} (expected 'sqlite:<path>')"
        raise DatabaseError(msg)

    path_str = rest.split("?", 1)[0]
    if path_str.startswith("//"):
        path_str = path_str[2:]

    if not path_str:
        msg = f"Database URL has no path: {database_url!r}"
        raise DatabaseError(msg)
    if path_str.startswith(":memory"):
        msg = "In-memory databases cannot be shared across pooled connections"
        raise DatabaseError(msg)

    return Path(path_str).resolve()


def to_db_timestamp(value: datetime | None) -> str | None:
    """Format a datetime the way the store writes timestamps. Naive values are treated as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class _PooledConnection:
    conn: aiosqlite.Connection
    created_at: float = field(default_factory=time.monotonic)

    def expired(self, max_lifetime: float) -> bool:
        return time.monotonic() - self.created_at >= max_lifetime


class ConnectionPool:
    """Bounded pool of aiosqlite connections.

    A semaphore caps concurrent checkouts at ``max_connections``; idle
    connections wait in a freelist. Every connection is configured with
    foreign keys, WAL journaling, NORMAL synchronous mode and a busy timeout.
    Connections older than ``max_lifetime`` are retired, and idle connections
    are liveness-checked before being handed out when ``test_before_acquire``
    is set.

    The defaults come from ``Constants``; overrides exist for tests.
    """

    def __init__(
        self,
        database_path: Path | str,
        *,
        max_connections: int = constants.POOL_MAX_CONNECTIONS,
        min_connections: int = constants.POOL_MIN_CONNECTIONS,
        max_lifetime: float = constants.POOL_MAX_LIFETIME_SECONDS,
        acquire_timeout: float = constants.POOL_ACQUIRE_TIMEOUT_SECONDS,
        busy_timeout: float = constants.SQLITE_BUSY_TIMEOUT_SECONDS,
        test_before_acquire: bool = constants.POOL_TEST_BEFORE_ACQUIRE,
    ) -> None:
        if max_connections < 1:
            msg = "max_connections must be at least 1"
            raise ValueError(msg)
        if not 0 <= min_connections <= max_connections:
            msg = "min_connections must be between 0 and max_connections"
            raise ValueError(msg)

        self._path = Path(database_path)
        self._max_connections = max_connections
        self._min_connections = min_connections
        self._max_lifetime = max_lifetime
        self._acquire_timeout = acquire_timeout
        self._busy_timeout = busy_timeout
        self._test_before_acquire = test_before_acquire

        self._semaphore = asyncio.Semaphore(max_connections)
        self._idle: deque[_PooledConnection] = deque()
        self._size = 0
        self._closed = False
        self._background: set[asyncio.Task[None]] = set()

    @property
    def database_path(self) -> Path:
        return self._path

    @property
    def max_connections(self) -> int:
        return self._max_connections

    @property
    def acquire_timeout(self) -> float:
        return self._acquire_timeout

    @property
    def size(self) -> int:
        """Number of open connections, idle or borrowed."""
        return self._size

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def in_use_count(self) -> int:
        return self._size - len(self._idle)

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        """Create the database file if missing and open ``min_connections`` idle connections.

        Raises:
            DatabaseError: If the file or a connection cannot be opened
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            for _ in range(self._min_connections - len(self._idle)):
                self._idle.append(await self._connect())
        except (aiosqlite.Error, OSError) as e:
            logger.error("pool_open_failed", extra={"db_path": str(self._path), "error": str(e)})
            msg = f"Failed to open connection pool for {self._path}: {e}"
            raise DatabaseError(msg) from e

        logger.info(
            "Opened connection pool",
            extra={"db_path": str(self._path), "max_connections": self._max_connections, "idle": len(self._idle)},
        )

    async def close(self) -> None:
        """Close idle connections. Borrowed connections are closed when returned."""
        if self._closed:
            return
        self._closed = True
        while self._idle:
            await self._discard(self._idle.pop(), reason="pool_closed")
        if self._background:
            await asyncio.gather(*list(self._background))
        logger.info("Closed connection pool", extra={"db_path": str(self._path)})

    @asynccontextmanager
    async def acquire(self, operation: str = "query") -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a connection for the duration of the ``async with`` block.

        The connection goes back to the pool on every exit path, cancellation
        included, with any open transaction rolled back. ``aiosqlite`` errors
        raised inside the block are re-raised as ``DatabaseError``; other
        exceptions propagate as-is.

        Args:
            operation: Name used in log events and error messages

        Raises:
            PoolTimeoutError: If no connection frees up within ``acquire_timeout``
            DatabaseError: If the pool is closed, a connection cannot be opened,
                or a statement fails
        """
        if self._closed:
            msg = "Connection pool is closed"
            raise DatabaseError(msg)

        try:
            async with asyncio.timeout(self._acquire_timeout):
                await self._semaphore.acquire()
        except TimeoutError as e:
            logger.error(
                "pool_acquire_timeout",
                extra={"operation": operation, "timeout": self._acquire_timeout, "in_use": self.in_use_count},
            )
            msg = f"Timed out after {self._acquire_timeout}s waiting for a pooled connection ({operation})"
            raise PoolTimeoutError(msg) from e

        # Checkout and release run as their own tasks so a cancelled caller
        # cannot strand a connection or the permit it holds.
        checkout = asyncio.create_task(self._checkout(operation))
        try:
            pooled = await asyncio.shield(checkout)
        except asyncio.CancelledError:
            checkout.add_done_callback(self._abandon_checkout)
            raise
        except BaseException:
            self._semaphore.release()
            raise

        try:
            yield pooled.conn
        except aiosqlite.Error as e:
            logger.error(f"{operation}_failed", extra={"operation": operation, "error": str(e)})
            msg = f"{operation} failed: {e}"
            raise DatabaseError(msg) from e
        finally:
            await asyncio.shield(self._spawn(self._release(pooled)))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _abandon_checkout(self, checkout: asyncio.Task[_PooledConnection]) -> None:
        """Return whatever a cancelled caller's checkout produced."""
        if checkout.cancelled() or checkout.exception() is not None:
            self._semaphore.release()
            return
        self._spawn(self._release(checkout.result()))

    async def _checkout(self, operation: str) -> _PooledConnection:
        if self._closed:
            msg = "Connection pool is closed"
            raise DatabaseError(msg)

        await self._retire_expired()
        while self._idle:
            pooled = self._idle.pop()
            if self._test_before_acquire and not await self._is_alive(pooled):
                await self._discard(pooled, reason="failed_liveness_check")
                continue
            return pooled

        try:
            return await self._connect()
        except aiosqlite.Error as e:
            logger.error("pool_connect_failed", extra={"operation": operation, "error": str(e)})
            msg = f"Failed to open database connection: {e}"
            raise DatabaseError(msg) from e

    async def _release(self, pooled: _PooledConnection) -> None:
        """Put a connection back (or close it) and free its permit."""
        try:
            if self._closed:
                await self._discard(pooled, reason="pool_closed")
                return
            if pooled.expired(self._max_lifetime):
                await self._discard(pooled, reason="max_lifetime")
                return

            try:
                if pooled.conn.in_transaction:
                    await pooled.conn.rollback()
            except (aiosqlite.Error, ValueError) as e:
                logger.warning("Rollback on release failed", extra={"error": str(e)})
                await self._discard(pooled, reason="rollback_failed")
                return

            self._idle.append(pooled)
        finally:
            self._semaphore.release()

    async def _retire_expired(self) -> None:
        expired = [pooled for pooled in self._idle if pooled.expired(self._max_lifetime)]
        for pooled in expired:
            self._idle.remove(pooled)
            await self._discard(pooled, reason="max_lifetime")

    async def _connect(self) -> _PooledConnection:
        conn = await aiosqlite.connect(str(self._path), timeout=self._busy_timeout)
        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout * 1000)}")
            await conn.execute("PRAGMA foreign_keys = ON")
            await conn.execute(f"PRAGMA journal_mode = {constants.SQLITE_JOURNAL_MODE}")
            await conn.execute(f"PRAGMA synchronous = {constants.SQLITE_SYNCHRONOUS}")
        except aiosqlite.Error:
            await conn.close()
            raise

        self._size += 1
        logger.info("Created new SQLite connection", extra={"db_path": str(self._path), "pool_size": self._size})
        return _PooledConnection(conn)

    @staticmethod
    async def _is_alive(pooled: _PooledConnection) -> bool:
        try:
            cursor = await pooled.conn.execute("SELECT 1")
            await cursor.fetchone()
            await cursor.close()
        except (aiosqlite.Error, ValueError):
            return False
        return True

    async def _discard(self, pooled: _PooledConnection, *, reason: str) -> None:
        self._size -= 1
        try:
            await pooled.conn.close()
        except Exception as e:
            logger.warning("Error closing SQLite connection", extra={"reason": reason, "error": str(e)})
            return
        logger.info("Closed SQLite connection", extra={"reason": reason, "pool_size": self._size})


async def create_pool(database_url: str) -> ConnectionPool:
    """Create and open a connection pool with the fixed pool and durability settings.

    Args:
        database_url: Connection string, e.g. ``sqlite:tasks.db``

    Returns:
        An open ConnectionPool

    Raises:
        DatabaseError: If the URL is invalid or the database cannot be opened
    """
    pool = ConnectionPool(parse_database_url(database_url))
    try:
        await pool.open()
    except DatabaseError:
        await pool.close()
        raise
    return pool


async def check_health(pool: ConnectionPool) -> bool:
    """Run a trivial query against the pool; storage failures report False instead of raising."""
    try:
        async with pool.acquire(operation="health_check") as conn:
            cursor = await conn.execute("SELECT 1")
            row = await cursor.fetchone()
    # aiosqlite raises ValueError for a connection closed underneath the pool
    except (DatabaseError, ValueError) as e:
        logger.warning("health_check_failed", extra={"error": str(e)})
        return False
    return row is not None and row[0] == 1
