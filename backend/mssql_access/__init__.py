"""
mssql_access: async data-access layer for Microsoft SQL Server.

Builds parameterized T-SQL from collection / fields / criteria requests,
runs it on a pymssql connection pool (or a caller's transaction) and
optionally coerces write values to the destination column types.
"""

from mssql_access.client import MSSqlClient
from mssql_access.core.config import Settings, get_settings, load_settings
from mssql_access.core.errors import (
    ConfigError,
    DatabaseUnavailableError,
    ExecutionError,
    MSSqlAccessError,
    TransactionError,
)
from mssql_access.engines.sql import Equality, Operator, Transaction
from mssql_access.models import (
    ColumnMeta,
    ConnectionState,
    ReadOptions,
    ResultFormat,
    WriteOptions,
)

__all__ = [
    "MSSqlClient",
    "Settings",
    "get_settings",
    "load_settings",
    "ReadOptions",
    "WriteOptions",
    "ResultFormat",
    "ColumnMeta",
    "ConnectionState",
    "Equality",
    "Operator",
    "Transaction",
    "MSSqlAccessError",
    "ConfigError",
    "DatabaseUnavailableError",
    "ExecutionError",
    "TransactionError",
]
