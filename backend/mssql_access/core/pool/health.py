"""
Connection health check for SQL Server.
"""

import logging
from typing import Any

from .connect import execute

_log = logging.getLogger(__name__)

HEALTH_CHECK_SQL = "SELECT getdate();"


def health_check(conn: Any) -> bool:
    """
    Ask the server for its current time and return True if that works.
    Driver errors are logged and reported as False.
    """
    cur = None
    try:
        cur = execute(conn, HEALTH_CHECK_SQL)
        cur.fetchone()
        return True
    except Exception as e:
        _log.error("Health check query failed: %s", e)
        return False
    finally:
        if cur is not None:
            cur.close()
