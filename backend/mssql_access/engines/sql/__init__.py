"""
SQL engine: criteria, statement builders, execution contexts.

Exports: build_* statement builders, criteria types, TransactionRouter,
run_statement.
"""

from mssql_access.engines.sql.builder import (
    ParamBinder,
    Statement,
    build_delete,
    build_describe,
    build_insert,
    build_select,
    build_update,
)
from mssql_access.engines.sql.columns import columns_from_describe
from mssql_access.engines.sql.context import (
    ExecutionContext,
    PoolContext,
    Transaction,
    TransactionContext,
    TransactionRouter,
    TransactionState,
)
from mssql_access.engines.sql.criteria import (
    Criterion,
    Equality,
    Operator,
    normalize_criteria,
    to_criterion,
)
from mssql_access.engines.sql.executor import rows_handler, run_statement

__all__ = [
    "Statement",
    "ParamBinder",
    "build_insert",
    "build_select",
    "build_update",
    "build_delete",
    "build_describe",
    "columns_from_describe",
    "Criterion",
    "Equality",
    "Operator",
    "to_criterion",
    "normalize_criteria",
    "ExecutionContext",
    "PoolContext",
    "TransactionContext",
    "Transaction",
    "TransactionState",
    "TransactionRouter",
    "rows_handler",
    "run_statement",
]
