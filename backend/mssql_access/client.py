"""
MSSqlClient: async CRUD, raw SQL and transactions on one SQL Server pool.

Usage::

    client = MSSqlClient()              # reads MSSQL_* settings, fails fast
    await client.start()                # waits until the server is reachable
    person_id = await client.create("person", {"first": "James"}, identity="id")
    rows = await client.read("person", criteria={"id": person_id})
    await client.update("person", {"first": "Fred"}, criteria={"id": person_id})
    await client.delete("person", criteria={"id": {"value": 3, "operator": ">"}})

    tx = await client.begin()
    try:
        await client.create("audit", {"msg": "x"}, transaction=tx)
        await client.commit(tx)
    except Exception:
        await client.rollback(tx)
        raise

    await client.stop()

The driver (pymssql) blocks, so each round trip runs in a worker thread via
asyncio.to_thread; the event loop is never blocked.
"""

import asyncio
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from mssql_access.core.coercion import coerce_fields
from mssql_access.core.config import Settings, get_settings
from mssql_access.core.errors import ExecutionError, TransactionError
from mssql_access.core.pool import (
    PoolManager,
    cursor_first_value,
    cursor_rowcount,
    cursor_to_dicts,
    health_check,
    open_with_retry,
)
from mssql_access.engines.sql import (
    ExecutionContext,
    Statement,
    Transaction,
    TransactionRouter,
    build_delete,
    build_describe,
    build_insert,
    build_select,
    build_update,
    columns_from_describe,
    rows_handler,
    run_statement,
)
from mssql_access.models import ColumnMeta, ConnectionState, ReadOptions, WriteOptions

_log = logging.getLogger(__name__)


class MSSqlClient:
    """Data-access component for one SQL Server database."""

    def __init__(
        self,
        name: str = "mssql",
        settings: Settings | None = None,
        *,
        pool_factory: Callable[[Settings], PoolManager] = PoolManager,
    ) -> None:
        self.name = name
        self._settings = settings if settings is not None else get_settings()
        self._pool_factory = pool_factory
        self._pool: PoolManager | None = None
        self._router: TransactionRouter | None = None
        self._state = ConnectionState.UNINITIALIZED
        self._stopping = threading.Event()
        self._columns_cache: dict[str, dict[str, ColumnMeta]] = {}

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def state(self) -> ConnectionState:
        return self._state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """
        Open the pool, retrying every MSSQL_CONNECT_RETRY_INTERVAL_SEC until it works.

        Returns True when ready, False if stop() was called first. Raises
        DatabaseUnavailableError only when MSSQL_CONNECT_MAX_RETRIES is set
        and used up.
        """
        if self._state is ConnectionState.READY:
            return True
        _log.info("Starting %s ...", self.name)
        _log.info(
            "Opening the pool to %s:%s/%s ...",
            self._settings.MSSQL_SERVER,
            self._settings.MSSQL_PORT,
            self._settings.MSSQL_DB,
        )
        self._stopping.clear()
        self._state = ConnectionState.CONNECTING
        pool = self._pool_factory(self._settings)
        pool.on_error(self._on_pool_error)

        try:
            ready = await open_with_retry(
                lambda: asyncio.to_thread(pool.open),
                interval=self._settings.MSSQL_CONNECT_RETRY_INTERVAL_SEC,
                max_retries=self._settings.MSSQL_CONNECT_MAX_RETRIES,
                cancel=self._stopping,
            )
        except Exception:
            self._state = ConnectionState.UNINITIALIZED
            raise
        if not ready or self._stopping.is_set():
            _log.info("Start of %s cancelled by stop()", self.name)
            await asyncio.to_thread(pool.dispose)
            return False

        self._pool = pool
        self._router = TransactionRouter(pool)
        self._state = ConnectionState.READY
        _log.info("MS-SQL DB ready")
        _log.info("Started!")
        return True

    async def stop(self) -> None:
        """Close the pool. Close errors are logged; stop always completes."""
        _log.info("Stopping %s ...", self.name)
        self._stopping.set()
        self._state = ConnectionState.CLOSING
        pool = self._pool
        self._pool = None
        self._router = None
        if pool is not None:
            _log.info("Closing the pool ...")
            try:
                await asyncio.to_thread(pool.dispose)
                _log.info("Pool closed!")
            except Exception as e:
                _log.error("Error while closing the pool: %s", e)
        self._columns_cache.clear()
        self._state = ConnectionState.CLOSED
        _log.info("Stopped!")

    async def health_check(self) -> bool:
        """True if the server answers ``SELECT getdate()``. Never raises."""
        pool = self._pool
        if pool is None:
            return False

        def _probe() -> bool:
            conn = pool.get_connection()
            try:
                return health_check(conn)
            finally:
                pool.release(conn)

        try:
            return await asyncio.to_thread(_probe)
        except Exception as e:
            _log.error("Health check failed: %s", e)
            return False

    def stats(self) -> dict[str, Any]:
        """Pool statistics plus lifecycle state."""
        out: dict[str, Any] = {"state": self._state.value}
        if self._pool is not None:
            out.update(self._pool.stats())
        return out

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(
        self,
        collection: str,
        fields: Mapping[str, Any],
        identity: str | None = None,
        options: WriteOptions | Mapping[str, Any] | None = None,
        transaction: Transaction | None = None,
    ) -> Any:
        """
        Insert one row. Returns the server-generated value of *identity*
        when given, else None.
        """
        opts = WriteOptions.from_value(options)
        if opts.coerce:
            fields = await self._coerce(collection, fields, opts, transaction)
        statement = build_insert(collection, fields, identity)
        handler = cursor_first_value if identity else _no_result
        return await self._run(statement, handler, transaction)

    async def read(
        self,
        collection: str,
        fields: Sequence[str] | None = None,
        criteria: Mapping[str, Any] | None = None,
        options: ReadOptions | Mapping[str, Any] | None = None,
        transaction: Transaction | None = None,
    ) -> list[Any]:
        """
        Select rows. Returns row dicts, or ``[header, *rows]`` when
        ``options.format`` is ``array-with-header``.
        """
        opts = ReadOptions.from_value(options)
        statement = build_select(collection, fields, criteria, opts)
        return await self._run(statement, rows_handler(opts.format), transaction)

    async def update(
        self,
        collection: str,
        fields: Mapping[str, Any],
        criteria: Mapping[str, Any] | None = None,
        options: WriteOptions | Mapping[str, Any] | None = None,
        transaction: Transaction | None = None,
    ) -> int:
        """Update matching rows (all rows for empty criteria). Returns rows affected."""
        opts = WriteOptions.from_value(options)
        if opts.coerce:
            fields = await self._coerce(collection, fields, opts, transaction)
        statement = build_update(collection, fields, criteria)
        return await self._run(statement, cursor_rowcount, transaction)

    async def delete(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None = None,
        transaction: Transaction | None = None,
    ) -> int:
        """Delete matching rows (all rows for empty criteria). Returns rows affected."""
        statement = build_delete(collection, criteria)
        return await self._run(statement, cursor_rowcount, transaction)

    # ------------------------------------------------------------------
    # Raw SQL
    # ------------------------------------------------------------------

    async def query(self, sql: str, transaction: Transaction | None = None) -> list[dict[str, Any]]:
        """Run caller-written SQL and return its rows (empty list if it returns none)."""
        return await self._run(Statement(sql), cursor_to_dicts, transaction)

    async def exec(self, sql: str, transaction: Transaction | None = None) -> int:
        """Run caller-written SQL and return the number of rows affected."""
        return await self._run(Statement(sql), cursor_rowcount, transaction)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def begin(self) -> Transaction:
        router = self._require_router()
        try:
            transaction = await asyncio.to_thread(router.begin)
        except Exception as e:
            _log.error("Could not begin transaction: %s", e)
            raise ExecutionError("Could not begin transaction") from e
        _log.debug("Began transaction %s", transaction.id)
        return transaction

    async def commit(self, transaction: Transaction) -> None:
        await self._end(transaction, commit=True)

    async def rollback(self, transaction: Transaction) -> None:
        await self._end(transaction, commit=False)

    # ------------------------------------------------------------------
    # Column metadata
    # ------------------------------------------------------------------

    async def get_table_columns(self, collection: str) -> dict[str, ColumnMeta]:
        """Column name -> ColumnMeta for *collection*, in table order."""
        return await self._table_columns(collection)

    def invalidate_table_columns(self, collection: str | None = None) -> None:
        """Drop cached metadata (one collection, or all). No-op without caching."""
        if collection is None:
            self._columns_cache.clear()
        else:
            self._columns_cache.pop(collection, None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _table_columns(
        self, collection: str, transaction: Transaction | None = None
    ) -> dict[str, ColumnMeta]:
        use_cache = self._settings.MSSQL_CACHE_TABLE_COLUMNS
        if use_cache and collection in self._columns_cache:
            return self._columns_cache[collection]
        rows = await self._run(build_describe(collection), cursor_to_dicts, transaction)
        columns = columns_from_describe(rows)
        if use_cache:
            self._columns_cache[collection] = columns
        return columns

    async def _coerce(
        self,
        collection: str,
        fields: Mapping[str, Any],
        opts: WriteOptions,
        transaction: Transaction | None,
    ) -> dict[str, Any]:
        columns = await self._table_columns(collection, transaction)
        null_currency = opts.null_currency_value
        if null_currency is None:
            null_currency = self._settings.MSSQL_NULL_CURRENCY_VALUE
        return coerce_fields(
            fields,
            columns,
            null_currency_value=null_currency,
            date_format=opts.date_format or self._settings.MSSQL_DATE_FORMAT,
        )

    def _require_router(self) -> TransactionRouter:
        router = self._router
        if router is None:
            raise ExecutionError(f"{self.name} is not started (state: {self._state.value})")
        return router

    def _context(self, transaction: Transaction | None) -> ExecutionContext:
        return self._require_router().context(transaction)

    async def _run(
        self,
        statement: Statement,
        handler: Callable[[Any], Any],
        transaction: Transaction | None,
    ) -> Any:
        context = self._context(transaction)
        return await asyncio.to_thread(run_statement, context, statement, handler)

    async def _end(self, transaction: Transaction, *, commit: bool) -> None:
        router = self._require_router()
        action = "commit" if commit else "rollback"
        end = router.commit if commit else router.rollback
        try:
            await asyncio.to_thread(end, transaction)
        except TransactionError:
            raise
        except Exception as e:
            _log.error("Transaction %s %s failed: %s", transaction.id, action, e)
            raise ExecutionError(f"Transaction {action} failed") from e
        _log.debug("Transaction %s %s", transaction.id, "committed" if commit else "rolled back")

    def _on_pool_error(self, error: Exception) -> None:
        _log.error("sql errors: %s", error)


def _no_result(cursor: Any) -> None:
    return None
