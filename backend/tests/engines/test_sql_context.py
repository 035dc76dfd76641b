"""Unit tests for engines.sql.context: pool vs. transaction execution."""

from unittest.mock import MagicMock

import pytest

from mssql_access.core.errors import TransactionError
from mssql_access.core.pool import cursor_rowcount
from mssql_access.engines.sql import (
    PoolContext,
    Statement,
    TransactionContext,
    TransactionRouter,
    TransactionState,
)
from tests.utils.fakes import FakeConnection, FakeCursor


def _pool_with(conn: FakeConnection) -> MagicMock:
    pool = MagicMock()
    pool.get_connection.return_value = conn
    return pool


def test_pool_context_commits_and_releases() -> None:
    conn = FakeConnection([FakeCursor(rowcount=2)])
    pool = _pool_with(conn)

    out = PoolContext(pool).run(Statement("DELETE FROM t"), cursor_rowcount)

    assert out == 2
    assert conn.commits == 1
    assert conn.opened[0].closed
    pool.release.assert_called_once_with(conn)


def test_pool_context_releases_without_commit_on_error() -> None:
    conn = FakeConnection([FakeCursor(error=RuntimeError("bad column"))])
    pool = _pool_with(conn)

    with pytest.raises(RuntimeError):
        PoolContext(pool).run(Statement("SELECT nope FROM t"), cursor_rowcount)

    assert conn.commits == 0
    pool.release.assert_called_once_with(conn)


def test_router_picks_context() -> None:
    conn = FakeConnection()
    router = TransactionRouter(_pool_with(conn))

    assert isinstance(router.context(), PoolContext)
    tx = router.begin()
    assert isinstance(router.context(tx), TransactionContext)


def test_transaction_runs_on_its_connection_without_commit() -> None:
    conn = FakeConnection([FakeCursor(rowcount=1), FakeCursor(rowcount=1)])
    pool = _pool_with(conn)
    router = TransactionRouter(pool)

    tx = router.begin()
    router.context(tx).run(Statement("INSERT INTO t (a) VALUES (1)"), cursor_rowcount)
    router.context(tx).run(Statement("INSERT INTO t (a) VALUES (2)"), cursor_rowcount)

    assert pool.get_connection.call_count == 1
    assert conn.commits == 0
    pool.release.assert_not_called()


def test_commit_ends_transaction_once() -> None:
    conn = FakeConnection()
    pool = _pool_with(conn)
    router = TransactionRouter(pool)
    tx = router.begin()

    router.commit(tx)

    assert tx.state is TransactionState.COMMITTED
    assert conn.commits == 1
    pool.release.assert_called_once_with(conn)
    with pytest.raises(TransactionError):
        router.commit(tx)
    with pytest.raises(TransactionError):
        router.rollback(tx)
    with pytest.raises(TransactionError):
        router.context(tx).run(Statement("SELECT 1"), cursor_rowcount)


def test_rollback_releases_connection() -> None:
    conn = FakeConnection()
    pool = _pool_with(conn)
    router = TransactionRouter(pool)
    tx = router.begin()

    router.rollback(tx)

    assert tx.state is TransactionState.ROLLED_BACK
    assert not tx.is_active
    assert conn.rollbacks == 1
    pool.release.assert_called_once_with(conn)


def test_failed_commit_ends_rolled_back_and_drops_connection() -> None:
    conn = FakeConnection()
    conn.commit = MagicMock(side_effect=OSError("connection lost"))
    pool = _pool_with(conn)
    router = TransactionRouter(pool)
    tx = router.begin()

    with pytest.raises(OSError):
        router.commit(tx)

    assert tx.state is TransactionState.ROLLED_BACK
    pool.discard.assert_called_once_with(conn)
    pool.release.assert_not_called()

    # the usual except-branch rollback must not mask the commit error
    router.rollback(tx)
    assert conn.rollbacks == 0
    pool.release.assert_not_called()


def test_pool_context_drops_connection_when_commit_fails() -> None:
    conn = FakeConnection([FakeCursor(rowcount=1)])
    conn.commit = MagicMock(side_effect=OSError("connection lost"))
    pool = _pool_with(conn)

    with pytest.raises(OSError):
        PoolContext(pool).run(Statement("DELETE FROM t"), cursor_rowcount)

    pool.discard.assert_called_once_with(conn)
    pool.release.assert_not_called()


def test_rollback_twice_is_a_no_op() -> None:
    conn = FakeConnection()
    pool = _pool_with(conn)
    router = TransactionRouter(pool)
    tx = router.begin()

    router.rollback(tx)
    router.rollback(tx)

    assert conn.rollbacks == 1
    pool.release.assert_called_once_with(conn)


def test_transactions_have_distinct_ids() -> None:
    router = TransactionRouter(_pool_with(FakeConnection()))
    assert router.begin().id != router.begin().id
