"""
DB connection helpers for SQL Server.

Uses pymssql. Statements bind values as pyformat named parameters
(``%(name)s``); nothing caller-supplied is formatted into SQL text here.
"""

from typing import Any

import pymssql

from mssql_access.core.config import Settings


def connect(settings: Settings) -> Any:
    """
    Open a connection using *settings*.

    Autocommit is off: callers commit (pool context) or hand the connection
    to a Transaction.
    """
    return pymssql.connect(
        server=settings.MSSQL_SERVER,
        port=str(settings.MSSQL_PORT),
        user=settings.MSSQL_USER,
        password=settings.MSSQL_PASSWORD.get_secret_value(),
        database=settings.MSSQL_DB,
        appname=settings.MSSQL_APP_NAME,
        login_timeout=settings.MSSQL_LOGIN_TIMEOUT,
        timeout=settings.MSSQL_QUERY_TIMEOUT,
        autocommit=False,
    )


def execute(
    conn: Any,
    sql: str,
    params: dict[str, Any] | None = None,
) -> Any:
    """
    Execute SQL and return the cursor. Caller uses cursor_to_dicts(cursor),
    cursor_to_arrays(cursor) or cursor.rowcount, then closes it.

    With no params the SQL is sent as-is, so literal ``%`` needs no escaping.
    """
    cur = conn.cursor()
    try:
        if params:
            cur.execute(sql, params)
        else:
            cur.execute(sql)
    except Exception:
        cur.close()
        raise
    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts (column name -> value)."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [dict(zip(names, row, strict=True)) for row in cursor.fetchall()]


def cursor_to_arrays(cursor: Any) -> list[list[Any]]:
    """Convert cursor result to ``[header, *rows]``; each row is positional."""
    desc = cursor.description
    if not desc:
        return []
    header = [d[0] for d in desc]
    return [header, *(list(row) for row in cursor.fetchall())]


def cursor_rowcount(cursor: Any) -> int:
    """Rows affected by the last statement (0 when the driver reports none)."""
    n = cursor.rowcount
    return n if n is not None and n >= 0 else 0


def cursor_first_value(cursor: Any) -> Any:
    """First column of the first row, or None when there is no row."""
    if not cursor.description:
        return None
    row = cursor.fetchone()
    return row[0] if row else None
