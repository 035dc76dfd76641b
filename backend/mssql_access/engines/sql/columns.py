"""
Turn sp_describe_first_result_set rows into ColumnMeta, keyed by column name.
"""

from typing import Any

from mssql_access.models import ColumnMeta


def _base_type(system_type_name: str | None) -> str:
    # "nvarchar(50)" -> "nvarchar", "decimal(18,4)" -> "decimal"
    return (system_type_name or "").split("(")[0].strip().lower()


def columns_from_describe(rows: list[dict[str, Any]]) -> dict[str, ColumnMeta]:
    """Build an ordered column map; hidden columns are skipped."""
    columns: dict[str, ColumnMeta] = {}
    for row in rows:
        if row.get("is_hidden"):
            continue
        name = row["name"]
        columns[name] = ColumnMeta(
            name=name,
            type_name=_base_type(row.get("system_type_name")),
            nullable=bool(row.get("is_nullable", True)),
            identity=bool(row.get("is_identity_column", False)),
            precision=row.get("precision"),
            scale=row.get("scale"),
            max_length=row.get("max_length"),
        )
    return columns
