"""
Exceptions raised by the data-access layer.

Connectivity and shutdown problems are handled inside the client and never
reach callers as exceptions (see MSSqlClient.start / stop). Everything a caller
can see derives from MSSqlAccessError.
"""


class MSSqlAccessError(Exception):
    """Base class for data-access errors."""

    pass


class ConfigError(MSSqlAccessError, ValueError):
    """Raised when a required setting is missing or invalid."""

    pass


class DatabaseUnavailableError(MSSqlAccessError):
    """Raised by start() when MSSQL_CONNECT_MAX_RETRIES is set and exhausted."""

    pass


class ExecutionError(MSSqlAccessError):
    """Raised when a statement fails. The driver error is chained, not exposed."""

    pass


class TransactionError(ExecutionError):
    """Raised when a transaction is used after commit or rollback."""

    pass
