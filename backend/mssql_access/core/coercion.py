"""
Column type coercion for create/update values.

Values usually arrive as strings (form posts, CSV, query params). Each value
is converted to what its destination column expects, using the native type
from the table's column metadata. A value that cannot be converted is passed
through unchanged so the driver rejects it and the statement fails.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from mssql_access.models import ColumnMeta


class ColumnKind(str, Enum):
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    CURRENCY = "currency"
    TEXT = "text"
    DATE = "date"
    OTHER = "other"


_KIND_BY_TYPE: dict[str, ColumnKind] = {
    "bit": ColumnKind.BOOLEAN,
    "tinyint": ColumnKind.INTEGER,
    "smallint": ColumnKind.INTEGER,
    "int": ColumnKind.INTEGER,
    "bigint": ColumnKind.INTEGER,
    "float": ColumnKind.FLOAT,
    "real": ColumnKind.FLOAT,
    "decimal": ColumnKind.DECIMAL,
    "numeric": ColumnKind.DECIMAL,
    "money": ColumnKind.CURRENCY,
    "smallmoney": ColumnKind.CURRENCY,
    "char": ColumnKind.TEXT,
    "varchar": ColumnKind.TEXT,
    "text": ColumnKind.TEXT,
    "nchar": ColumnKind.TEXT,
    "nvarchar": ColumnKind.TEXT,
    "ntext": ColumnKind.TEXT,
    "date": ColumnKind.DATE,
    "datetime": ColumnKind.DATE,
    "datetime2": ColumnKind.DATE,
    "smalldatetime": ColumnKind.DATE,
    "datetimeoffset": ColumnKind.DATE,
    "time": ColumnKind.DATE,
}

_TRUE_STRINGS = frozenset({"Y", "YES", "TRUE", "T", "1"})
_FALSE_STRINGS = frozenset({"N", "NO", "FALSE", "F", "0"})


def column_kind(type_name: str) -> ColumnKind:
    """Map a native type name (``int``, ``nvarchar(50)``, ``MONEY``) to its kind."""
    base = type_name.split("(")[0].strip().lower()
    return _KIND_BY_TYPE.get(base, ColumnKind.OTHER)


def _is_blank(value: Any) -> bool:
    return isinstance(value, str) and value.strip() == ""


def _coerce_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        s = value.strip().upper()
        if s in _TRUE_STRINGS:
            return True
        if s in _FALSE_STRINGS:
            return False
    return value


def _coerce_integer(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if _is_blank(value):
        return None
    try:
        return int(value.strip(), 10)
    except ValueError:
        return value


def _coerce_float(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if _is_blank(value):
        return None
    try:
        return float(value)
    except ValueError:
        return value


def _coerce_decimal(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if _is_blank(value):
        return None
    try:
        return Decimal(value.strip())
    except InvalidOperation:
        return value


def _coerce_date(value: Any) -> Any:
    # Non-empty values are assumed to be literals the server accepts.
    if _is_blank(value):
        return None
    return value


_COERCERS = {
    ColumnKind.BOOLEAN: _coerce_boolean,
    ColumnKind.INTEGER: _coerce_integer,
    ColumnKind.FLOAT: _coerce_float,
    ColumnKind.DECIMAL: _coerce_decimal,
    ColumnKind.DATE: _coerce_date,
}


def coerce_value(
    value: Any,
    column: ColumnMeta,
    *,
    null_currency_value: Decimal | None = None,
) -> Any:
    """Convert one value for *column*. Text and unknown types pass through."""
    kind = column_kind(column.type_name)
    if kind == ColumnKind.CURRENCY:
        if _is_blank(value):
            return null_currency_value
        return _coerce_decimal(value)
    coerce_fn = _COERCERS.get(kind)
    if coerce_fn is None:
        return value
    return coerce_fn(value)


def coerce_fields(
    fields: Mapping[str, Any],
    columns: Mapping[str, ColumnMeta],
    *,
    null_currency_value: Decimal | None = None,
    date_format: str | None = None,
) -> dict[str, Any]:
    """
    Return a copy of *fields* with every value coerced to its column type.

    *date_format* is accepted for callers that configure one; date values are
    passed to the server as given and are not reformatted.

    Column names are matched exactly first, then case-insensitively (SQL
    Server's default collation). Fields with no matching column are left as
    they are; the statement will fail on them anyway.
    """
    by_lower = {name.lower(): col for name, col in columns.items()}
    out: dict[str, Any] = {}
    for name, value in fields.items():
        column = columns.get(name) or by_lower.get(name.lower())
        if column is None:
            out[name] = value
            continue
        out[name] = coerce_value(value, column, null_currency_value=null_currency_value)
    return out
