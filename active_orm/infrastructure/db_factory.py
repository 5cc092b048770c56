"""
psycopg connection and pool factories used by PsycopgConnection.

The shared ConnectionPool lives in the PoolManager singleton and is closed at
interpreter exit. Acquiring a connection or the pool is retried with tenacity
so a database that is still starting up does not fail the first statement.
"""

from __future__ import annotations

import atexit
import threading
from typing import Optional

import psycopg
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from active_orm.config import get_settings
from active_orm.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


class PoolManager:
    """
    Thread-safe owner of the process-wide connection pool.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pool = None
                atexit.register(cls._instance.close)
            return cls._instance

    def pool(self, min_size: Optional[int] = None, max_size: Optional[int] = None) -> ConnectionPool:
        """
        Open the pool on first use, sized from settings unless overridden.

        Sizes passed after the pool exists are ignored.
        """
        with self._lock:
            if self._pool is None:
                settings = get_settings()
                self._pool = ConnectionPool(
                    conninfo=settings.dsn,
                    min_size=min_size or settings.db_pool_min_size,
                    max_size=max_size or settings.db_pool_max_size,
                    open=True,
                )
                log.debug(
                    "Connection pool opened",
                    extra={"min_size": self._pool.min_size, "max_size": self._pool.max_size},
                )
            return self._pool

    def close(self) -> None:
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.close()
                finally:
                    self._pool = None


def apply_statement_timeout(cursor: psycopg.Cursor, timeout_ms: int) -> None:
    """
    Bound the statements of the current transaction to `timeout_ms`.

    A non-positive value leaves the server default in place.
    """
    if timeout_ms > 0:
        cursor.execute(f"SET LOCAL statement_timeout = {int(timeout_ms)}")  # type: ignore[arg-type]


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> psycopg.Connection:
    """
    Open a dedicated connection, retrying transient failures.

    Meant for one-off work such as running migrations from the CLI; sessions
    serving application traffic should go through the pool.

    Raises
    ------
    psycopg.OperationalError
        If the server is still unreachable after three attempts.
    """
    return psycopg.connect(dsn or get_settings().dsn)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
    reraise=True,
)
def get_sync_pool(min_size: Optional[int] = None, max_size: Optional[int] = None) -> ConnectionPool:
    return PoolManager().pool(min_size=min_size, max_size=max_size)


def close_pool() -> None:
    """Close the shared pool now instead of waiting for interpreter exit."""
    PoolManager().close()


__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "close_pool",
    "get_sync_connection",
    "get_sync_pool",
]
