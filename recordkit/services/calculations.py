"""
Calculations over the rows of a model.

Supports five aggregates, each labelled in grouped results:
- count: number of rows (``rowcount``), or distinct values when ``distinct`` is set
- sum: total of a column (``sumatory``)
- average: mean of the non-null values of a column (``average``)
- minimum / maximum: extremes of a column (``minimum`` / ``maximum``)

Without ``group`` a scalar is returned; with ``group`` one
:class:`AggregateRow` per distinct group value among the matching rows.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Union

import sqlalchemy as sa
from sqlalchemy import func
from sqlalchemy.orm import InstrumentedAttribute, Session

from recordkit.models.base import column_attribute
from recordkit.schemas.calculations import AggregateKind, AggregateRow, AggregateSpec, SortDirection
from recordkit.services.conditions import resolve_conditions

logger = logging.getLogger(__name__)

SpecInput = Union[AggregateSpec, Mapping[str, Any], str, None, Any]

_COLUMN_FUNCTIONS: Dict[AggregateKind, Callable[..., Any]] = {
    AggregateKind.SUM: func.sum,
    AggregateKind.AVERAGE: func.avg,
    AggregateKind.MINIMUM: func.min,
    AggregateKind.MAXIMUM: func.max,
}


class CalculationError(ValueError):
    """Raised when a calculation request does not match the model."""


def build_spec(parameters: SpecInput = None, **options: Any) -> AggregateSpec:
    if isinstance(parameters, AggregateSpec):
        if not options:
            return parameters
        return AggregateSpec(**{**dict(parameters), **options})
    if isinstance(parameters, str):
        return AggregateSpec(conditions=parameters, **options)
    if isinstance(parameters, Mapping):
        return AggregateSpec(**{**parameters, **options})
    if parameters is None:
        return AggregateSpec(**options)
    return AggregateSpec(conditions=parameters, **options)


class AggregateEvaluator:
    """Compute count, sum, average, minimum and maximum over a model's rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def evaluate(self, model: type, spec: SpecInput, kind: Union[AggregateKind, str]) -> Any:
        kind = AggregateKind(kind)
        spec = build_spec(spec)
        aggregate = self._aggregate_expression(model, spec, kind).label(kind.alias)
        where, params = resolve_conditions(model, spec.conditions, spec.bind)

        if not spec.grouped:
            stmt = sa.select(aggregate).select_from(model)
            if where is not None:
                stmt = stmt.where(where)
            logger.debug("Calculating %s of %s", kind.value, model.__name__)
            value = self.session.execute(stmt, params).scalar()
            return self._coerce(kind, value)

        group_columns = {name: self._require_column(model, name, "group") for name in spec.group}
        stmt = (
            sa.select(*[column.label(name) for name, column in group_columns.items()], aggregate)
            .select_from(model)
            .group_by(*group_columns.values())
            .order_by(*self._order_clauses(spec, kind, aggregate, group_columns))
        )
        if where is not None:
            stmt = stmt.where(where)

        logger.debug(
            "Calculating %s of %s grouped by %s", kind.value, model.__name__, ", ".join(spec.group)
        )
        rows: List[AggregateRow] = []
        for row in self.session.execute(stmt, params):
            mapping = row._mapping
            rows.append(
                AggregateRow(
                    group={name: mapping[name] for name in spec.group},
                    alias=kind.alias,
                    value=self._coerce(kind, mapping[kind.alias]),
                )
            )
        return rows

    def count(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.evaluate(model, build_spec(parameters, **options), AggregateKind.COUNT)

    def sum(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.evaluate(model, build_spec(parameters, **options), AggregateKind.SUM)

    def average(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.evaluate(model, build_spec(parameters, **options), AggregateKind.AVERAGE)

    def minimum(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.evaluate(model, build_spec(parameters, **options), AggregateKind.MINIMUM)

    def maximum(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.evaluate(model, build_spec(parameters, **options), AggregateKind.MAXIMUM)

    def _aggregate_expression(self, model: type, spec: AggregateSpec, kind: AggregateKind):
        if kind == AggregateKind.COUNT:
            if spec.distinct:
                column = self._require_column(model, spec.distinct, "distinct")
                return func.count(sa.distinct(column))
            return func.count()

        if not spec.column:
            raise CalculationError(
                f"A column is required to calculate the {kind.value} of {model.__name__}."
            )
        column = self._require_column(model, spec.column, "column")
        return _COLUMN_FUNCTIONS[kind](column)

    def _order_clauses(
        self,
        spec: AggregateSpec,
        kind: AggregateKind,
        aggregate: Any,
        group_columns: Dict[str, InstrumentedAttribute],
    ) -> list[Any]:
        clauses: list[Any] = []
        ordered: set[str] = set()
        for term in spec.order:
            if term.name == kind.alias:
                target = aggregate
            elif term.name in group_columns:
                target = group_columns[term.name]
            else:
                raise CalculationError(
                    f"Cannot order a grouped {kind.value} by {term.name!r}; "
                    f"use a group column or {kind.alias!r}."
                )
            clauses.append(target.desc() if term.direction == SortDirection.DESC else target.asc())
            ordered.add(term.name)

        # Group columns break ties so the output order is stable.
        for name, column in group_columns.items():
            if name not in ordered:
                clauses.append(column.asc())
        return clauses

    def _require_column(self, model: type, name: str, role: str) -> InstrumentedAttribute:
        attribute = column_attribute(model, name)
        if attribute is None:
            raise CalculationError(f"{model.__name__} has no column {name!r} to use as {role}.")
        return attribute

    @staticmethod
    def _coerce(kind: AggregateKind, value: Any) -> Any:
        if kind == AggregateKind.COUNT:
            return int(value or 0)
        if kind == AggregateKind.AVERAGE and value is not None:
            return float(value)
        return value
