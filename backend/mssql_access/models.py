"""
Request options, column metadata and lifecycle enums.

Options accept either snake_case or camelCase keys so callers can pass plain
mappings straight from JSON (``{"orderByDesc": ["id"], "format": "array"}``).
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ConnectionState(str, Enum):
    """Client lifecycle. CONNECTING loops until the pool opens."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


class ResultFormat(str, Enum):
    """Shape of read results: row dicts, or a header row followed by positional rows."""

    ROW_OBJECTS = "row-objects"
    ARRAY_WITH_HEADER = "array-with-header"

    @classmethod
    def _missing_(cls, value: object) -> "ResultFormat | None":
        if isinstance(value, str):
            return _FORMAT_ALIASES.get(value.strip().lower())
        return None


_FORMAT_ALIASES = {
    "json": ResultFormat.ROW_OBJECTS,
    "array": ResultFormat.ARRAY_WITH_HEADER,
}


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class _Options(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @classmethod
    def from_value(cls, value: Any) -> Any:
        """Accept None, an instance, or a mapping."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls.model_validate(value)


class ReadOptions(_Options):
    order_by: list[str] = Field(default_factory=list)
    order_by_desc: list[str] = Field(default_factory=list)
    group_by: list[str] = Field(default_factory=list)
    format: ResultFormat = ResultFormat.ROW_OBJECTS
    distinct: bool = False

    @field_validator("format", mode="before")
    @classmethod
    def _resolve_format(cls, v: Any) -> Any:
        if isinstance(v, str):
            return ResultFormat(v)
        return v


class WriteOptions(_Options):
    """
    Options for create/update.

    - coerce: convert values to the destination column types before binding.
    - null_currency_value: substitute for an empty string written to a money column.
    - date_format: accepted for compatibility; date values are not reformatted.
    """

    coerce: bool = False
    null_currency_value: Decimal | None = None
    date_format: str | None = None


# ---------------------------------------------------------------------------
# Column metadata
# ---------------------------------------------------------------------------


class ColumnMeta(BaseModel):
    """Describes one column of a table, as reported by SQL Server."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_name: str  # lower-case base type, e.g. "int", "nvarchar", "money"
    nullable: bool = True
    identity: bool = False
    precision: int | None = None
    scale: int | None = None
    max_length: int | None = None
