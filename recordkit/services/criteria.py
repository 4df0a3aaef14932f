from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.orm import InstrumentedAttribute, Session
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import ColumnElement

from recordkit.models.base import column_attribute
from recordkit.schemas.calculations import SortDirection, parse_group, parse_order
from recordkit.services.conditions import resolve_conditions


class CriteriaError(ValueError):
    """Raised when a criteria cannot be built for its model."""


class Criteria:
    """Fluent query builder bound to a single model.

    The where clause it builds can also be passed as ``conditions`` to the
    calculation and finder methods.
    """

    def __init__(self, model: type) -> None:
        self.model = model
        self.bind_params: Dict[str, Any] = {}
        self._where: Optional[ColumnElement] = None
        self._order = parse_order(None)
        self._group = parse_group(None)
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._distinct = False

    def where(self, conditions: Any, bind: Optional[Mapping[str, Any]] = None) -> "Criteria":
        clause, params = resolve_conditions(self.model, conditions, bind)
        self._where = clause
        self.bind_params.update(params)
        return self

    def conditions(self, conditions: Any) -> "Criteria":
        return self.where(conditions)

    def and_where(self, conditions: Any, bind: Optional[Mapping[str, Any]] = None) -> "Criteria":
        clause, params = resolve_conditions(self.model, conditions, bind)
        self._combine(clause, sa.and_)
        self.bind_params.update(params)
        return self

    def or_where(self, conditions: Any, bind: Optional[Mapping[str, Any]] = None) -> "Criteria":
        clause, params = resolve_conditions(self.model, conditions, bind)
        self._combine(clause, sa.or_)
        self.bind_params.update(params)
        return self

    def in_where(self, name: str, values: Iterable[Any]) -> "Criteria":
        values = list(values)
        clause = self._column(name).in_(values) if values else sa.false()
        self._combine(clause, sa.and_)
        return self

    def not_in_where(self, name: str, values: Iterable[Any]) -> "Criteria":
        values = list(values)
        clause = self._column(name).not_in(values) if values else sa.true()
        self._combine(clause, sa.and_)
        return self

    def between_where(self, name: str, minimum: Any, maximum: Any) -> "Criteria":
        self._combine(self._column(name).between(minimum, maximum), sa.and_)
        return self

    def not_between_where(self, name: str, minimum: Any, maximum: Any) -> "Criteria":
        self._combine(sa.not_(self._column(name).between(minimum, maximum)), sa.and_)
        return self

    def bind(self, params: Mapping[str, Any], merge: bool = False) -> "Criteria":
        if merge:
            self.bind_params.update(params)
        else:
            self.bind_params = dict(params)
        return self

    def order_by(self, order: Any) -> "Criteria":
        terms = parse_order(order)
        for term in terms:
            self._column(term.name)
        self._order = terms
        return self

    def group_by(self, group: Any) -> "Criteria":
        names = parse_group(group)
        for name in names:
            self._column(name)
        self._group = names
        return self

    def limit(self, limit: int, offset: Optional[int] = None) -> "Criteria":
        if limit < 0 or (offset is not None and offset < 0):
            raise CriteriaError("Limit and offset must not be negative.")
        self._limit = limit
        self._offset = offset
        return self

    def distinct(self, distinct: bool = True) -> "Criteria":
        self._distinct = distinct
        return self

    def get_where(self) -> Optional[ColumnElement]:
        return self._where

    def get_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"conditions": self._where, "bind": dict(self.bind_params)}
        if self._order:
            params["order"] = ", ".join(f"{term.name} {term.direction.value}" for term in self._order)
        if self._group:
            params["group"] = ", ".join(self._group)
        if self._limit is not None:
            params["limit"] = self._limit
        if self._offset is not None:
            params["offset"] = self._offset
        if self._distinct:
            params["distinct"] = True
        return params

    def statement(self) -> Select:
        stmt = sa.select(self.model)
        if self._where is not None:
            stmt = stmt.where(self._where)
        if self._group:
            stmt = stmt.group_by(*[self._column(name) for name in self._group])
        if self._order:
            stmt = stmt.order_by(
                *[
                    self._column(term.name).desc()
                    if term.direction == SortDirection.DESC
                    else self._column(term.name).asc()
                    for term in self._order
                ]
            )
        if self._distinct:
            stmt = stmt.distinct()
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        if self._offset is not None:
            stmt = stmt.offset(self._offset)
        return stmt

    def execute(self, session: Session) -> List[Any]:
        return list(session.scalars(self.statement(), self.bind_params).all())

    def _combine(self, clause: Optional[ColumnElement], operator: Any) -> None:
        if clause is None:
            return
        self._where = clause if self._where is None else operator(self._where, clause)

    def _column(self, name: str) -> InstrumentedAttribute:
        attribute = column_attribute(self.model, name)
        if attribute is None:
            raise CriteriaError(f"{self.model.__name__} has no column named {name!r}.")
        return attribute
