"""
Where a statement runs: the shared pool, or a caller's transaction.

Every operation takes an optional Transaction. TransactionRouter.context()
turns that into an ExecutionContext so operations never branch on it:

- PoolContext: check out a connection, run, commit, give it back.
- TransactionContext: run on the transaction's connection; the caller commits
  or rolls back later through the router.

Everything here blocks; the async client calls it via asyncio.to_thread.
"""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

from mssql_access.core.errors import TransactionError
from mssql_access.core.pool import PoolManager, execute

from .builder import Statement

CursorHandler = Callable[[Any], Any]


def _run_on(conn: Any, statement: Statement, handler: CursorHandler) -> Any:
    cur = execute(conn, statement.sql, statement.params)
    try:
        return handler(cur)
    finally:
        cur.close()


class ExecutionContext(ABC):
    """Runs a Statement and hands the open cursor to *handler* for shaping."""

    @abstractmethod
    def run(self, statement: Statement, handler: CursorHandler) -> Any:
        ...


class PoolContext(ExecutionContext):
    def __init__(self, pool: PoolManager) -> None:
        self._pool = pool

    def run(self, statement: Statement, handler: CursorHandler) -> Any:
        conn = self._pool.get_connection()
        try:
            result = _run_on(conn, statement, handler)
        except Exception:
            # release() rolls back whatever was not committed
            self._pool.release(conn)
            raise
        try:
            conn.commit()
        except Exception:
            # connection state is unknown after a failed commit
            self._pool.discard(conn)
            raise
        self._pool.release(conn)
        return result


class TransactionState(str, Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """
    Caller-owned unit of work bound to one pooled connection.

    Not safe for concurrent use: issue statements on one transaction one
    after another. Ends once, by commit or rollback. A failed commit ends it
    as rolled back, so the caller's follow-up rollback() is a no-op.
    """

    def __init__(self, connection: Any) -> None:
        self.id = uuid.uuid4()
        self._connection = connection
        self._state = TransactionState.ACTIVE

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def connection(self) -> Any:
        if not self.is_active:
            raise TransactionError(f"Transaction {self.id} is already {self._state.value}")
        return self._connection

    def _end(self, state: TransactionState) -> Any:
        conn = self.connection
        self._state = state
        return conn

    def __repr__(self) -> str:
        return f"Transaction(id={self.id}, state={self._state.value})"


class TransactionContext(ExecutionContext):
    def __init__(self, transaction: Transaction) -> None:
        self._transaction = transaction

    def run(self, statement: Statement, handler: CursorHandler) -> Any:
        return _run_on(self._transaction.connection, statement, handler)


class TransactionRouter:
    """Begins/ends transactions and picks the execution context for a request."""

    def __init__(self, pool: PoolManager) -> None:
        self._pool = pool
        self._pool_context = PoolContext(pool)

    def context(self, transaction: Transaction | None = None) -> ExecutionContext:
        if transaction is None:
            return self._pool_context
        return TransactionContext(transaction)

    def begin(self) -> Transaction:
        """Check out a dedicated connection; the transaction starts with it."""
        return Transaction(self._pool.get_connection())

    def commit(self, transaction: Transaction) -> None:
        """Commit and give the connection back.

        If the commit fails the server has discarded the work: the transaction
        ends as ROLLED_BACK, its connection is dropped and the error propagates.
        """
        conn = transaction.connection
        try:
            conn.commit()
        except Exception:
            transaction._end(TransactionState.ROLLED_BACK)
            self._pool.discard(conn)
            raise
        transaction._end(TransactionState.COMMITTED)
        self._pool.release(conn)

    def rollback(self, transaction: Transaction) -> None:
        """Roll back and give the connection back. No-op if already rolled back."""
        if transaction.state is TransactionState.ROLLED_BACK:
            return
        conn = transaction._end(TransactionState.ROLLED_BACK)
        try:
            conn.rollback()
        finally:
            self._pool.release(conn)
