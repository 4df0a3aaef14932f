from __future__ import annotations

from typing import Any, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.sql.elements import ClauseElement, ColumnElement

from recordkit.models.base import column_attribute


class ConditionError(ValueError):
    """Raised when a condition cannot be applied to a model."""


def resolve_conditions(
    model: type,
    conditions: Any,
    bind: Optional[Mapping[str, Any]] = None,
) -> tuple[Optional[ColumnElement], dict[str, Any]]:
    """Translate the accepted condition forms into a where clause and its parameters."""
    from recordkit.services.criteria import Criteria

    params: dict[str, Any] = dict(bind or {})
    if conditions is None:
        return None, params

    if isinstance(conditions, Criteria):
        if conditions.model is not model:
            raise ConditionError(
                f"Criteria built for {conditions.model.__name__} cannot filter {model.__name__}."
            )
        return conditions.get_where(), {**conditions.bind_params, **params}

    if isinstance(conditions, str):
        if not conditions.strip():
            return None, params
        return sa.text(conditions), params

    if isinstance(conditions, Mapping):
        clauses = []
        for name, value in conditions.items():
            attribute = column_attribute(model, name)
            if attribute is None:
                raise ConditionError(f"{model.__name__} has no column named {name!r}.")
            clauses.append(attribute.is_(None) if value is None else attribute == value)
        if not clauses:
            return None, params
        return sa.and_(*clauses), params

    if isinstance(conditions, ClauseElement):
        return conditions, params

    raise ConditionError(f"Unsupported conditions of type {type(conditions).__name__}.")
