"""
Build parameterized T-SQL for create / read / update / delete.

Builders are pure: they return a Statement (SQL text + named parameters) and
never touch a connection. Values are always bound as ``%(name)s`` parameters.
Collection, column and operator text is joined in verbatim: identifiers are
trusted input and are neither quoted nor escaped.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from mssql_access.models import ReadOptions

from .criteria import normalize_criteria

_UNSAFE_PARAM_CHARS = re.compile(r"\W")

# Suffix for UPDATE ... SET parameters, so `SET a=...` and `WHERE a=...` read apart.
_SET_PARAM_SUFFIX = "__set"


@dataclass(frozen=True)
class Statement:
    sql: str
    params: dict[str, Any] = field(default_factory=dict)


class ParamBinder:
    """
    Allocates parameter names for one statement.

    Names derive from the column name so the SQL stays readable. A name that
    is already taken gets a numeric suffix (``id``, ``id_2``, ...), so every
    placeholder in a statement is unique.
    """

    def __init__(self) -> None:
        self._params: dict[str, Any] = {}

    def bind(self, hint: str, value: Any) -> str:
        """Bind *value* and return its placeholder text."""
        base = _UNSAFE_PARAM_CHARS.sub("_", hint) or "p"
        name = base
        n = 2
        while name in self._params:
            name = f"{base}_{n}"
            n += 1
        self._params[name] = value
        return f"%({name})s"

    @property
    def params(self) -> dict[str, Any]:
        return dict(self._params)


def _join(names: Sequence[str] | str) -> str:
    if isinstance(names, str):
        return names
    return ",".join(names)


def _comparison(column: str, op: str, placeholder: str) -> str:
    # Symbolic operators sit flush (id>%(id)s); word operators need spaces (name LIKE ...).
    if op[:1].isalpha() or op[-1:].isalpha():
        return f"{column} {op.strip()} {placeholder}"
    return f"{column}{op}{placeholder}"


def where_clause(criteria: Mapping[str, Any] | None, binder: ParamBinder) -> str:
    """Render `` WHERE a=... AND b>...`` (empty string for no criteria)."""
    items = normalize_criteria(criteria)
    if not items:
        return ""
    conditions = [
        _comparison(column, criterion.op, binder.bind(column, criterion.value))
        for column, criterion in items
    ]
    return " WHERE " + " AND ".join(conditions)


def build_insert(
    collection: str,
    fields: Mapping[str, Any],
    identity: str | None = None,
) -> Statement:
    """
    INSERT INTO <collection> (<cols>) [OUTPUT INSERTED.<identity>] VALUES (...)

    Column order follows *fields*. With *identity*, the statement returns the
    value the server generated for that column.
    """
    if not fields:
        raise ValueError("create needs at least one field")
    binder = ParamBinder()
    columns = list(fields)
    placeholders = [binder.bind(column, fields[column]) for column in columns]
    output = f" OUTPUT INSERTED.{identity}" if identity else ""
    sql = (
        f"INSERT INTO {collection} ({_join(columns)}){output} "
        f"VALUES ({_join(placeholders)})"
    )
    return Statement(sql, binder.params)


def build_select(
    collection: str,
    fields: Sequence[str] | str | None = None,
    criteria: Mapping[str, Any] | None = None,
    options: ReadOptions | None = None,
) -> Statement:
    """
    SELECT [DISTINCT] <fields> FROM <collection> [WHERE ...] [GROUP BY ...]
    [ORDER BY <asc cols> ASC[, <desc cols> DESC]]
    """
    opts = options or ReadOptions()
    binder = ParamBinder()
    distinct = "DISTINCT " if opts.distinct else ""
    sql = f"SELECT {distinct}{_join(fields) if fields else '*'} FROM {collection}"
    sql += where_clause(criteria, binder)

    if opts.group_by:
        sql += f" GROUP BY {_join(opts.group_by)}"
    if opts.order_by:
        sql += f" ORDER BY {_join(opts.order_by)} ASC"
    if opts.order_by_desc:
        sql += ", " if opts.order_by else " ORDER BY "
        sql += f"{_join(opts.order_by_desc)} DESC"
    return Statement(sql, binder.params)


def build_update(
    collection: str,
    fields: Mapping[str, Any],
    criteria: Mapping[str, Any] | None = None,
) -> Statement:
    """UPDATE <collection> SET a=%(a__set)s, ... [WHERE ...]"""
    if not fields:
        raise ValueError("update needs at least one field")
    binder = ParamBinder()
    assignments = [
        f"{column}={binder.bind(column + _SET_PARAM_SUFFIX, value)}"
        for column, value in fields.items()
    ]
    sql = f"UPDATE {collection} SET {_join(assignments)}"
    sql += where_clause(criteria, binder)
    return Statement(sql, binder.params)


def build_delete(
    collection: str,
    criteria: Mapping[str, Any] | None = None,
) -> Statement:
    """DELETE FROM <collection> [WHERE ...]"""
    binder = ParamBinder()
    sql = f"DELETE FROM {collection}" + where_clause(criteria, binder)
    return Statement(sql, binder.params)


def build_describe(collection: str) -> Statement:
    """
    Describe the columns of ``SELECT * FROM <collection>`` without running it.

    The probe query travels as a bound NVARCHAR value; sp_describe_first_result_set
    reports name, type, nullability, identity, precision and scale per column.
    """
    sql = (
        "DECLARE @tsql NVARCHAR(MAX) = %(tsql)s; "
        "EXEC sp_describe_first_result_set @tsql = @tsql;"
    )
    return Statement(sql, {"tsql": f"SELECT * FROM {collection}"})
