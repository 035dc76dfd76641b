"""
Row-selection criteria.

A criteria mapping goes from column name to either a bare value (equality) or
an operator entry. Raw input is resolved into Equality / Operator once, when
the statement is built:

    {"id": 5}                                  -> id = 5
    {"id": {"value": 3, "operator": ">"}}      -> id > 3
    {"id": {"val": 3, "op": ">"}}              -> id > 3 (short form)
    {"id": Operator(">", 3)}                   -> id > 3
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Equality:
    value: Any

    @property
    def op(self) -> str:
        return "="


@dataclass(frozen=True)
class Operator:
    """Comparison with an explicit operator, used verbatim in the SQL text."""

    op: str
    value: Any

    def __post_init__(self) -> None:
        if not isinstance(self.op, str) or not self.op.strip():
            raise ValueError("Operator criterion needs a non-empty operator string")


Criterion = Union[Equality, Operator]


def to_criterion(raw: Any) -> Criterion:
    """Resolve one raw criteria value. Operator entries win over equality."""
    if isinstance(raw, (Equality, Operator)):
        return raw
    if isinstance(raw, Mapping):
        if "operator" in raw and "value" in raw:
            return Operator(raw["operator"], raw["value"])
        if "op" in raw and "val" in raw:
            return Operator(raw["op"], raw["val"])
    return Equality(raw)


def normalize_criteria(criteria: Mapping[str, Any] | None) -> list[tuple[str, Criterion]]:
    """Resolve a criteria mapping, keeping its iteration order."""
    if not criteria:
        return []
    return [(column, to_criterion(raw)) for column, raw in criteria.items()]
