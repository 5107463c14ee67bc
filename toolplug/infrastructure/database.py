"""SQLite access for ToolPlug.

Everything persistent (subscribers, pending signups, generated picks and the
send log) lives in ONE database file, located by ``TOOLPLUG_DB_PATH`` or
``toolplug/data/toolplug.db`` by default.  Callers go through
``get_db_connection()`` / ``db_transaction()`` which hand out connections from
a small process-wide pool.

The API handlers, the generation job and the dispatch workers may all hit the
file at once, so writes are wrapped in ``retry_on_db_lock`` which backs off on
SQLITE_BUSY.
"""

from __future__ import annotations

import atexit
import os
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache, wraps
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, TypeVar

from toolplug.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
    DB_TEMP_CONN_MAX,
)
from toolplug.observability.logging import get_logger
from toolplug.observability.telemetry import counter, log_event

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "toolplug.db"

logger = get_logger(__name__)


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Retry a database operation while SQLite reports the file as locked.

    Delay doubles per attempt (capped at ``max_delay``) plus up to
    DB_RETRY_JITTER of random jitter.  Any other OperationalError is raised
    immediately.

    Usage:
        @retry_on_db_lock()
        def save(...):
            with db_transaction() as conn:
                conn.execute("INSERT INTO ...")

    Side Effects:
        - Sleeps between attempts
        - Logs a warning per retry and an error when retries are exhausted
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    if not _is_lock_error(e):
                        raise
                    if attempt >= max_retries:
                        logger.error(
                            "Database still locked after %d retries in %s: %s",
                            max_retries,
                            func.__name__,
                            e,
                        )
                        counter("database.lock_retry_exhausted")
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    delay += random.uniform(0, delay * DB_RETRY_JITTER)
                    attempt += 1
                    logger.warning(
                        "Database locked in %s (retry %d/%d in %.2fs)",
                        func.__name__,
                        attempt,
                        max_retries,
                        delay,
                    )
                    time.sleep(delay)

        return wrapper  # type: ignore[return-value]

    return decorator


class _PooledConnection(sqlite3.Connection):
    """Connection that can be flagged as a temporary overflow connection."""

    is_temporary = False


class DatabaseConnectionPool:
    """
    Thread-safe pool of SQLite connections.

    When every pooled connection is checked out for longer than
    DB_POOL_TIMEOUT, a bounded number of temporary connections are opened
    and closed again on return.
    """

    def __init__(self, db_path: Path, pool_size: int = DB_POOL_SIZE):
        self.db_path = db_path
        self.pool_size = pool_size
        self.pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self.lock = Lock()
        self.closed = False
        self.temp_conn_count = 0
        self.temp_conn_max = DB_TEMP_CONN_MAX

        for _ in range(pool_size):
            try:
                self.pool.put(self._create_connection())
            except (sqlite3.Error, RuntimeError) as e:
                logger.warning("Failed to create pooled connection: %s", e)

        atexit.register(self.close_all)

    def _create_connection(self) -> sqlite3.Connection:
        """
        Open a connection with WAL journaling and foreign keys on.

        Raises:
            RuntimeError: If the integrity check reports corruption
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=DB_CONNECT_TIMEOUT,
            check_same_thread=False,
            factory=_PooledConnection,
        )

        try:
            status = conn.execute("PRAGMA quick_check(1)").fetchone()[0]
        except sqlite3.DatabaseError as e:
            conn.close()
            counter("database.corruption_detected")
            raise RuntimeError(f"Database corruption detected: {e}") from e
        if status != "ok":
            conn.close()
            logger.critical("Database corruption detected: %s", status)
            counter("database.corruption_detected")
            raise RuntimeError(f"Database corruption detected: {status}")

        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        return conn

    def get_connection(self) -> sqlite3.Connection:
        """
        Check a connection out of the pool.

        Raises:
            RuntimeError: If the pool is closed or the temporary connection
                limit is reached (a leak)
        """
        if self.closed:
            raise RuntimeError("Connection pool has been closed")

        try:
            return self.pool.get(block=True, timeout=DB_POOL_TIMEOUT)
        except Empty:
            with self.lock:
                if self.temp_conn_count >= self.temp_conn_max:
                    logger.critical(
                        "Temporary connection limit reached (%d/%d, pool_size=%d)",
                        self.temp_conn_count,
                        self.temp_conn_max,
                        self.pool_size,
                    )
                    raise RuntimeError(
                        "Database connection pool exhausted: "
                        f"pool_size={self.pool_size}, temp_conn_max={self.temp_conn_max}"
                    ) from None
                self.temp_conn_count += 1
                temp_count = self.temp_conn_count

            logger.error(
                "Connection pool exhausted (pool_size=%d), opening temporary connection %d/%d",
                self.pool_size,
                temp_count,
                self.temp_conn_max,
            )
            log_event(
                "database.pool_exhausted",
                pool_size=self.pool_size,
                temp_conn_count=temp_count,
            )
            conn = self._create_connection()
            conn.is_temporary = True
            return conn

    def return_connection(self, conn: sqlite3.Connection) -> None:
        is_temp = getattr(conn, "is_temporary", False)

        if self.closed or is_temp:
            conn.close()
            if is_temp:
                with self.lock:
                    self.temp_conn_count -= 1
            return

        try:
            self.pool.put_nowait(conn)
        except Full:
            logger.warning("Connection pool full on return, closing connection")
            conn.close()

    def close_all(self) -> None:
        self.closed = True
        while True:
            try:
                self.pool.get_nowait().close()
            except Empty:
                break


def get_db_path() -> Path:
    """Database location: TOOLPLUG_DB_PATH if set, else the packaged default."""
    if env_path := os.getenv("TOOLPLUG_DB_PATH"):
        return Path(env_path)
    return DEFAULT_DB_PATH


@lru_cache(maxsize=1)
def get_pool() -> DatabaseConnectionPool:
    """Process-wide pool, created on first use."""
    return DatabaseConnectionPool(get_db_path(), pool_size=DB_POOL_SIZE)


def reset_pool() -> None:
    """
    Close and forget the process-wide pool.

    Tests point TOOLPLUG_DB_PATH at a temp file and call this so the next
    get_pool() opens the new location.
    """
    if get_pool.cache_info().currsize:
        get_pool().close_all()
    get_pool.cache_clear()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Borrow a pooled connection for the duration of the block.

    Raises:
        FileNotFoundError: If the database has not been initialized
    """
    db_path = get_db_path()
    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found: {db_path}\nRun: toolplug init-db (or start the API once)"
        )

    pool = get_pool()
    conn = pool.get_connection()
    try:
        yield conn
    finally:
        pool.return_connection(conn)


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """
    Borrow a connection and commit on success, roll back on any error.

    Usage:
        with db_transaction() as conn:
            conn.execute("DELETE FROM generated_picks WHERE period_key = ?", (key,))
            conn.executemany("INSERT INTO generated_picks ...", rows)
    """
    with get_db_connection() as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


def validate_schema() -> bool:
    """
    Check that every expected table exists.

    Raises:
        ValueError: If tables are missing
    """
    from toolplug.infrastructure.database_schema import validate_schema as _validate_schema

    with get_db_connection() as conn:
        return _validate_schema(conn)


def get_pool_stats() -> dict[str, Any]:
    """Pool size, available and in-use connections (for /health/db)."""
    pool = get_pool()
    available = pool.pool.qsize()
    in_use = pool.pool_size - available
    usage_percent = (in_use / pool.pool_size) * 100 if pool.pool_size > 0 else 0

    return {
        "pool_size": pool.pool_size,
        "available": available,
        "in_use": in_use,
        "usage_percent": round(usage_percent, 1),
        "closed": pool.closed,
    }


def init_database() -> None:
    """
    Create the schema at get_db_path() (idempotent).

    Side Effects:
        - Creates the data directory and database file if needed
        - Creates tables and indexes that do not exist yet
    """
    from toolplug.infrastructure.database_schema import init_database as _init_database

    _init_database(get_db_path())
