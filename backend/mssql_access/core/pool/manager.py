"""
Connection pool for one SQL Server database.

Reuses connections instead of logging in on every request.
Includes health-check on checkout, max-age eviction and error observers.
All methods block; the async client calls them through asyncio.to_thread.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, NamedTuple

from mssql_access.core.config import Settings

from .connect import connect

_log = logging.getLogger(__name__)

_PING_IDLE_THRESHOLD = 30.0  # only ping connections idle longer than this (seconds)

ErrorObserver = Callable[[Exception], None]


class PoolClosedError(RuntimeError):
    """Raised when a connection is requested from a disposed pool."""

    pass


class _PoolEntry(NamedTuple):
    conn: Any
    created_at: float  # time.monotonic() when the connection was opened
    last_used: float   # time.monotonic() when last returned to pool


class PoolManager:
    """Connection pool with health-check on checkout and max-age."""

    def __init__(
        self,
        settings: Settings,
        *,
        connector: Callable[[Settings], Any] = connect,
    ) -> None:
        self._settings = settings
        self._connector = connector
        self._idle: list[_PoolEntry] = []
        self._created: dict[int, float] = {}  # id(conn) -> created_at, for checked-out conns
        self._lock = threading.Lock()
        self._pool_size: int = settings.MSSQL_POOL_SIZE
        self._max_age: float = float(settings.MSSQL_POOL_MAX_AGE_SEC)
        self._checked_out = 0
        self._closed = False
        self._observers: list[ErrorObserver] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def on_error(self, observer: ErrorObserver) -> None:
        """Register a callback for errors the pool handles itself (broken or unclosable connections)."""
        self._observers.append(observer)

    def open(self) -> None:
        """
        Log in once and keep the connection idle.

        Raises whatever the driver raises when the server is unreachable; the
        caller decides whether to retry.
        """
        conn = self._connect()
        self.release(conn)

    def get_connection(self) -> Any:
        """Get a healthy connection (from the pool or freshly opened)."""
        if self._closed:
            raise PoolClosedError("Connection pool is closed")
        now = time.monotonic()
        while True:
            entry = self._pop()
            if entry is None:
                break
            if self._is_expired(entry):
                self._close_quiet(entry.conn)
                continue
            idle_sec = now - entry.last_used
            if idle_sec > _PING_IDLE_THRESHOLD and not self._is_alive(entry.conn):
                self._close_quiet(entry.conn)
                continue
            self._check_out(entry.conn, entry.created_at)
            return entry.conn

        conn = self._connect()
        self._check_out(conn, time.monotonic())
        return conn

    def release(self, conn: Any) -> None:
        """Return a connection to the pool (or close it if the pool is full or closed)."""
        created_at = self._check_in(conn)
        try:
            conn.rollback()
        except Exception as e:
            self._notify(e)
            self._close_quiet(conn)
            return

        with self._lock:
            if not self._closed and len(self._idle) < self._pool_size:
                self._idle.append(
                    _PoolEntry(conn=conn, created_at=created_at, last_used=time.monotonic())
                )
                return

        self._close_quiet(conn)

    def discard(self, conn: Any) -> None:
        """Close a checked-out connection instead of returning it."""
        self._check_in(conn)
        self._close_quiet(conn)

    def dispose(self) -> None:
        """Close idle connections and refuse new checkouts.

        Checked-out connections are closed when they are released.
        """
        with self._lock:
            self._closed = True
            entries = list(self._idle)
            self._idle.clear()
        for e in entries:
            self._close_quiet(e.conn)

    def stats(self) -> dict[str, int]:
        """Return pool statistics for monitoring."""
        with self._lock:
            return {
                "pool_size": self._pool_size,
                "idle_connections": len(self._idle),
                "checked_out": self._checked_out,
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _connect(self) -> Any:
        return self._connector(self._settings)

    def _pop(self) -> _PoolEntry | None:
        with self._lock:
            if self._idle:
                return self._idle.pop()
        return None

    def _check_out(self, conn: Any, created_at: float) -> None:
        with self._lock:
            self._created[id(conn)] = created_at
            self._checked_out += 1

    def _check_in(self, conn: Any) -> float:
        with self._lock:
            created_at = self._created.pop(id(conn), None)
            if created_at is None:
                # never checked out (open() probe connection)
                return time.monotonic()
            self._checked_out -= 1
            return created_at

    def _is_expired(self, entry: _PoolEntry) -> bool:
        return (time.monotonic() - entry.created_at) > self._max_age

    @staticmethod
    def _is_alive(conn: Any) -> bool:
        """Lightweight ping: attempt a no-op query to detect broken connections."""
        try:
            cur = conn.cursor()
            cur.execute("SELECT 1")
            cur.fetchone()
            cur.close()
            return True
        except Exception:
            return False

    def _close_quiet(self, conn: Any) -> None:
        try:
            conn.close()
        except Exception as e:
            self._notify(e)

    def _notify(self, error: Exception) -> None:
        for observer in list(self._observers):
            try:
                observer(error)
            except Exception:
                _log.exception("Pool error observer failed")
