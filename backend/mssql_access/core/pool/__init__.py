"""
SQL Server connection and connection pool.

No driver layer: pymssql is installed via pip; Settings is enough to connect.
"""

from .connect import (
    connect,
    cursor_first_value,
    cursor_rowcount,
    cursor_to_arrays,
    cursor_to_dicts,
    execute,
)
from .health import health_check
from .manager import PoolClosedError, PoolManager
from .ready import open_with_retry

__all__ = [
    "connect",
    "execute",
    "cursor_to_dicts",
    "cursor_to_arrays",
    "cursor_rowcount",
    "cursor_first_value",
    "health_check",
    "PoolManager",
    "PoolClosedError",
    "open_with_retry",
]
