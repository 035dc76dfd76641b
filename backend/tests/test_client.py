"""
Unit tests for MSSqlClient.

The client runs on a real PoolManager whose connector hands out one
FakeConnection, so SQL text, bound params, commits and releases can be
checked without a server.
"""

import asyncio
from collections.abc import Callable
from decimal import Decimal

import pytest
import pytest_asyncio

from mssql_access.client import MSSqlClient
from mssql_access.core.config import Settings
from mssql_access.core.errors import (
    DatabaseUnavailableError,
    ExecutionError,
    TransactionError,
)
from mssql_access.core.pool import PoolManager
from mssql_access.engines.sql import TransactionState
from mssql_access.models import ConnectionState, ReadOptions, ResultFormat, WriteOptions
from tests.utils.fakes import DESCRIBE_COLUMNS, FakeConnection, FakeCursor, describe_row

MakeClient = Callable[..., MSSqlClient]


def _person_describe() -> FakeCursor:
    return FakeCursor(
        description=DESCRIBE_COLUMNS,
        rows=[
            describe_row("id", "int", nullable=False, identity=True),
            describe_row("first", "nvarchar(50)"),
            describe_row("age", "int"),
            describe_row("active", "bit"),
            describe_row("salary", "money"),
        ],
    )


@pytest_asyncio.fixture
async def client(make_client: MakeClient):
    c = make_client()
    await c.start()
    yield c
    await c.stop()


def _refusing_client(settings: Settings, **overrides) -> MSSqlClient:
    def refuse(_):
        raise ConnectionRefusedError("Login failed")

    s = settings.model_copy(update=overrides)
    return MSSqlClient("test", s, pool_factory=lambda cfg: PoolManager(cfg, connector=refuse))


# --- lifecycle ---


@pytest.mark.asyncio
async def test_start_opens_pool(make_client: MakeClient, conn: FakeConnection) -> None:
    c = make_client()
    assert c.state is ConnectionState.UNINITIALIZED

    assert await c.start() is True

    assert c.state is ConnectionState.READY
    assert c.stats()["idle_connections"] == 1
    assert await c.start() is True
    await c.stop()


@pytest.mark.asyncio
async def test_start_gives_up_after_max_retries(settings: Settings) -> None:
    c = _refusing_client(settings, MSSQL_CONNECT_MAX_RETRIES=1)

    with pytest.raises(DatabaseUnavailableError):
        await c.start()

    assert c.state is ConnectionState.UNINITIALIZED


@pytest.mark.asyncio
async def test_stop_during_start_cancels_retry(settings: Settings) -> None:
    c = _refusing_client(settings, MSSQL_CONNECT_RETRY_INTERVAL_SEC=0.01)

    task = asyncio.create_task(c.start())
    await asyncio.sleep(0.05)
    assert c.state is ConnectionState.CONNECTING
    await c.stop()

    assert await asyncio.wait_for(task, timeout=5) is False
    assert c.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_stop_closes_pool(make_client: MakeClient, conn: FakeConnection) -> None:
    c = make_client()
    await c.start()

    await c.stop()

    assert c.state is ConnectionState.CLOSED
    assert conn.closed
    assert await c.health_check() is False
    with pytest.raises(ExecutionError):
        await c.read("person")


@pytest.mark.asyncio
async def test_stop_is_safe_without_start(make_client: MakeClient) -> None:
    c = make_client()
    await c.stop()
    await c.stop()
    assert c.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_stop_logs_close_errors(make_client: MakeClient, conn: FakeConnection) -> None:
    c = make_client()
    await c.start()
    conn.close_error = OSError("socket already gone")

    await c.stop()

    assert c.state is ConnectionState.CLOSED


# --- health ---


@pytest.mark.asyncio
async def test_health_check(client: MSSqlClient, conn: FakeConnection) -> None:
    assert await client.health_check() is True
    assert conn.statements[-1] == ("SELECT getdate();", None)


@pytest.mark.asyncio
async def test_health_check_false_on_driver_error(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(error=OSError("connection reset")))
    assert await client.health_check() is False


@pytest.mark.asyncio
async def test_operations_require_start(make_client: MakeClient) -> None:
    c = make_client()
    with pytest.raises(ExecutionError, match="not started"):
        await c.create("person", {"first": "James"})
    with pytest.raises(ExecutionError):
        await c.begin()


# --- CRUD ---


@pytest.mark.asyncio
async def test_create_returns_identity(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(description=[("id",)], rows=[(17,)]))

    new_id = await client.create("person", {"first": "James", "last": "Bond"}, identity="id")

    assert new_id == 17
    assert conn.statements[-1] == (
        "INSERT INTO person (first,last) OUTPUT INSERTED.id VALUES (%(first)s,%(last)s)",
        {"first": "James", "last": "Bond"},
    )
    assert conn.commits == 1
    assert client.stats()["checked_out"] == 0


@pytest.mark.asyncio
async def test_create_without_identity_returns_none(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(rowcount=1))
    assert await client.create("person", {"first": "James"}) is None


@pytest.mark.asyncio
async def test_read_row_objects(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(
        FakeCursor(description=[("id",), ("first",)], rows=[(1, "James"), (2, "Fred")])
    )

    rows = await client.read(
        "person",
        ["id", "first"],
        {"id": {"value": 0, "operator": ">"}},
        {"orderByDesc": ["id"]},
    )

    assert rows == [{"id": 1, "first": "James"}, {"id": 2, "first": "Fred"}]
    assert conn.statements[-1] == (
        "SELECT id,first FROM person WHERE id>%(id)s ORDER BY id DESC",
        {"id": 0},
    )


@pytest.mark.asyncio
async def test_read_array_with_header(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(description=[("id",), ("first",)], rows=[(1, "James")]))

    rows = await client.read("person", options=ReadOptions(format=ResultFormat.ARRAY_WITH_HEADER))

    assert rows == [["id", "first"], [1, "James"]]


@pytest.mark.asyncio
async def test_read_rejects_unknown_option(client: MSSqlClient) -> None:
    with pytest.raises(ValueError):
        await client.read("person", options={"limit": 5})


@pytest.mark.asyncio
async def test_update_returns_rowcount(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(rowcount=2))

    n = await client.update("person", {"first": "Fred"}, {"first": "James"})

    assert n == 2
    assert conn.statements[-1] == (
        "UPDATE person SET first=%(first__set)s WHERE first=%(first)s",
        {"first__set": "Fred", "first": "James"},
    )


@pytest.mark.asyncio
async def test_delete_returns_rowcount(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(rowcount=3))
    assert await client.delete("person", {"id": {"val": 3, "op": ">"}}) == 3
    assert conn.statements[-1] == ("DELETE FROM person WHERE id>%(id)s", {"id": 3})


@pytest.mark.asyncio
async def test_driver_error_becomes_execution_error(
    client: MSSqlClient, conn: FakeConnection
) -> None:
    conn.cursors.append(FakeCursor(error=RuntimeError("Invalid object name 'persn'")))

    with pytest.raises(ExecutionError) as exc_info:
        await client.read("persn")

    assert "persn" not in str(exc_info.value)
    assert client.stats()["checked_out"] == 0
    assert conn.commits == 0


# --- coercion ---


@pytest.mark.asyncio
async def test_create_with_coerce(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors += [_person_describe(), FakeCursor(description=[("id",)], rows=[(1,)])]

    await client.create(
        "person",
        {"first": "James", "age": "41", "active": "Y", "salary": ""},
        identity="id",
        options=WriteOptions(coerce=True, null_currency_value=Decimal("0.00")),
    )

    describe_sql, describe_params = conn.statements[-2]
    assert "sp_describe_first_result_set" in describe_sql
    assert describe_params == {"tsql": "SELECT * FROM person"}
    assert conn.statements[-1][1] == {
        "first": "James",
        "age": 41,
        "active": True,
        "salary": Decimal("0.00"),
    }


@pytest.mark.asyncio
async def test_update_coerce_uses_settings_null_currency(
    make_client: MakeClient, conn: FakeConnection
) -> None:
    c = make_client(MSSQL_NULL_CURRENCY_VALUE=Decimal("0"))
    await c.start()
    conn.cursors += [_person_describe(), FakeCursor(rowcount=1)]

    await c.update("person", {"salary": " ", "age": ""}, {"id": 1}, {"coerce": True})

    assert conn.statements[-1][1] == {"salary__set": Decimal("0"), "age__set": None, "id": 1}
    await c.stop()


@pytest.mark.asyncio
async def test_create_without_coerce_sends_raw_values(
    client: MSSqlClient, conn: FakeConnection
) -> None:
    await client.create("person", {"age": "41"})
    assert conn.statements[-1][1] == {"age": "41"}
    assert all("sp_describe" not in sql for sql, _ in conn.statements)


@pytest.mark.asyncio
async def test_get_table_columns(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(_person_describe())

    columns = await client.get_table_columns("person")

    assert list(columns) == ["id", "first", "age", "active", "salary"]
    assert columns["id"].identity is True
    assert columns["first"].type_name == "nvarchar"


@pytest.mark.asyncio
async def test_table_columns_cache(make_client: MakeClient, conn: FakeConnection) -> None:
    c = make_client(MSSQL_CACHE_TABLE_COLUMNS=True)
    await c.start()
    conn.cursors += [_person_describe(), _person_describe()]

    await c.get_table_columns("person")
    await c.get_table_columns("person")
    assert sum("sp_describe" in sql for sql, _ in conn.statements) == 1

    c.invalidate_table_columns("person")
    await c.get_table_columns("person")
    assert sum("sp_describe" in sql for sql, _ in conn.statements) == 2
    await c.stop()


@pytest.mark.asyncio
async def test_table_columns_not_cached_by_default(
    client: MSSqlClient, conn: FakeConnection
) -> None:
    conn.cursors += [_person_describe(), _person_describe()]
    await client.get_table_columns("person")
    await client.get_table_columns("person")
    assert sum("sp_describe" in sql for sql, _ in conn.statements) == 2


# --- raw SQL ---


@pytest.mark.asyncio
async def test_query_returns_rows(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(description=[("n",)], rows=[(1,)]))
    assert await client.query("SELECT 1 AS n") == [{"n": 1}]
    assert conn.statements[-1] == ("SELECT 1 AS n", None)


@pytest.mark.asyncio
async def test_query_without_result_set(client: MSSqlClient, conn: FakeConnection) -> None:
    assert await client.query("SET NOCOUNT ON") == []


@pytest.mark.asyncio
async def test_exec_returns_rowcount(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors.append(FakeCursor(rowcount=5))
    assert await client.exec("UPDATE person SET last = 'x' WHERE last LIKE '%y'") == 5


# --- transactions ---


@pytest.mark.asyncio
async def test_transaction_commit(client: MSSqlClient, conn: FakeConnection) -> None:
    tx = await client.begin()
    conn.cursors += [FakeCursor(description=[("id",)], rows=[(9,)]), FakeCursor(rowcount=1)]

    await client.create("person", {"first": "James"}, identity="id", transaction=tx)
    await client.update("person", {"last": "Bond"}, {"id": 9}, transaction=tx)
    assert conn.commits == 0
    assert client.stats()["checked_out"] == 1

    await client.commit(tx)

    assert conn.commits == 1
    assert client.stats()["checked_out"] == 0


@pytest.mark.asyncio
async def test_transaction_rollback(client: MSSqlClient, conn: FakeConnection) -> None:
    rollbacks_before = conn.rollbacks
    tx = await client.begin()
    await client.delete("person", {"id": 1}, transaction=tx)

    await client.rollback(tx)

    assert conn.commits == 0
    assert conn.rollbacks > rollbacks_before
    assert client.stats()["checked_out"] == 0


@pytest.mark.asyncio
async def test_transaction_cannot_be_reused(client: MSSqlClient) -> None:
    tx = await client.begin()
    await client.commit(tx)

    with pytest.raises(TransactionError):
        await client.commit(tx)
    with pytest.raises(TransactionError):
        await client.rollback(tx)
    with pytest.raises(TransactionError):
        await client.read("person", transaction=tx)


@pytest.mark.asyncio
async def test_failed_commit_then_rollback_surfaces_commit_error(
    client: MSSqlClient, conn: FakeConnection
) -> None:
    def lost_connection() -> None:
        raise OSError("connection lost during commit")

    tx = await client.begin()
    await client.create("person", {"first": "James"}, transaction=tx)
    conn.commit = lost_connection

    with pytest.raises(ExecutionError, match="commit failed") as exc_info:
        try:
            await client.commit(tx)
        except Exception:
            await client.rollback(tx)
            raise

    assert isinstance(exc_info.value.__cause__, OSError)
    assert tx.state is TransactionState.ROLLED_BACK
    assert conn.closed
    assert client.stats()["checked_out"] == 0


@pytest.mark.asyncio
async def test_create_with_date_format_option(client: MSSqlClient, conn: FakeConnection) -> None:
    conn.cursors += [
        FakeCursor(description=DESCRIBE_COLUMNS, rows=[describe_row("born", "date")]),
        FakeCursor(rowcount=1),
    ]

    await client.create(
        "person",
        {"born": "2024-01-31"},
        options={"coerce": True, "dateFormat": "%Y-%m-%d"},
    )

    assert conn.statements[-1][1] == {"born": "2024-01-31"}
