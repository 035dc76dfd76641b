"""
Engines: SQL statement building and execution.
"""

from mssql_access.engines.sql import (
    Statement,
    Transaction,
    TransactionRouter,
    run_statement,
)

__all__ = [
    "Statement",
    "Transaction",
    "TransactionRouter",
    "run_statement",
]
