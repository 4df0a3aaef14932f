from recordkit.schemas.calculations import (
    AGGREGATE_ALIASES,
    AggregateKind,
    AggregateRow,
    AggregateSpec,
    OrderTerm,
    SortDirection,
    parse_group,
    parse_order,
)

__all__ = [
    "AGGREGATE_ALIASES",
    "AggregateKind",
    "AggregateRow",
    "AggregateSpec",
    "OrderTerm",
    "SortDirection",
    "parse_group",
    "parse_order",
]
