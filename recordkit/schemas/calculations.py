from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class AggregateKind(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVERAGE = "average"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"

    @property
    def alias(self) -> str:
        return AGGREGATE_ALIASES[self]


# Column labels of the aggregate value in grouped results.
AGGREGATE_ALIASES: Dict[AggregateKind, str] = {
    AggregateKind.COUNT: "rowcount",
    AggregateKind.SUM: "sumatory",
    AggregateKind.AVERAGE: "average",
    AggregateKind.MINIMUM: "minimum",
    AggregateKind.MAXIMUM: "maximum",
}


class OrderTerm(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    direction: SortDirection = SortDirection.ASC


def parse_order(value: Any) -> Tuple[OrderTerm, ...]:
    """Normalise ``"name"``, ``"name DESC"`` or ``"a, b DESC"`` into order terms."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: list[Any] = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, OrderTerm):
        items = [value]
    else:
        items = list(value)

    terms: list[OrderTerm] = []
    for item in items:
        if isinstance(item, OrderTerm):
            terms.append(item)
            continue
        if isinstance(item, Mapping):
            terms.append(OrderTerm(**item))
            continue
        tokens = str(item).split()
        if len(tokens) == 1:
            terms.append(OrderTerm(name=tokens[0]))
        elif len(tokens) == 2 and tokens[1].upper() in SortDirection.__members__:
            terms.append(OrderTerm(name=tokens[0], direction=SortDirection(tokens[1].upper())))
        else:
            raise ValueError(f"Invalid order clause {item!r}; expected '<name> [ASC|DESC]'.")
    return tuple(terms)


def parse_group(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(part) for part in value)


class AggregateSpec(BaseModel):
    """Parameters of a single calculation.

    ``conditions`` is either a SQL boolean expression over physical column
    names (with ``bind`` parameters), a mapping of attribute name to value, a
    SQLAlchemy clause, or a :class:`recordkit.services.criteria.Criteria`.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    column: Optional[str] = None
    conditions: Any = None
    bind: Dict[str, Any] = Field(default_factory=dict)
    distinct: Optional[str] = None
    group: Tuple[str, ...] = ()
    order: Tuple[OrderTerm, ...] = ()

    @field_validator("group", mode="before")
    @classmethod
    def _split_group(cls, value: Any) -> Tuple[str, ...]:
        return parse_group(value)

    @field_validator("order", mode="before")
    @classmethod
    def _parse_order(cls, value: Any) -> Tuple[OrderTerm, ...]:
        return parse_order(value)

    @property
    def grouped(self) -> bool:
        return bool(self.group)


@dataclass(frozen=True)
class AggregateRow:
    """One partition of a grouped calculation.

    Values are readable by key or attribute: ``row["estado"]``,
    ``row.rowcount``.
    """

    group: Mapping[str, Any]
    alias: str
    value: Any

    def __getitem__(self, key: str) -> Any:
        if key == self.alias:
            return self.value
        return self.group[key]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") or name in ("group", "alias", "value"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def as_dict(self) -> dict[str, Any]:
        return {**self.group, self.alias: self.value}
