"""
Run a built or raw Statement in an execution context.

Driver errors are logged together with the SQL text (parameter values are
never logged) and re-raised as a single ExecutionError, so callers do not
depend on driver-specific exception types or messages.
"""

import logging
from collections.abc import Callable
from typing import Any

from mssql_access.core.errors import ExecutionError, TransactionError
from mssql_access.core.pool import cursor_to_arrays, cursor_to_dicts
from mssql_access.models import ResultFormat

from .builder import Statement
from .context import ExecutionContext

_log = logging.getLogger(__name__)

EXECUTION_FAILED_MESSAGE = "Something wrong with your request!"


def rows_handler(fmt: ResultFormat = ResultFormat.ROW_OBJECTS) -> Callable[[Any], Any]:
    """Cursor handler producing row dicts or ``[header, *rows]``."""
    if fmt == ResultFormat.ARRAY_WITH_HEADER:
        return cursor_to_arrays
    return cursor_to_dicts


def run_statement(
    context: ExecutionContext,
    statement: Statement,
    handler: Callable[[Any], Any],
) -> Any:
    """Run *statement* and return ``handler(cursor)``."""
    _log.debug("Executing SQL: %s", statement.sql)
    try:
        return context.run(statement, handler)
    except TransactionError:
        raise
    except Exception as e:
        _log.error("'%s' happened for query (%s)", e, statement.sql)
        raise ExecutionError(EXECUTION_FAILED_MESSAGE) from e
