from __future__ import annotations

import logging
from typing import Any, List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Session, registry as Registry

from recordkit.models.base import column_attribute, record_values, resolve_model
from recordkit.models.messages import Message, constraint_violation
from recordkit.models.relations import ForeignKeyAction, Relation, RelationKind

logger = logging.getLogger(__name__)

_DEPENDENT_KINDS = (RelationKind.HAS_MANY, RelationKind.HAS_ONE)


def missing_reference_message(field_label: str) -> str:
    return f'Value of field "{field_label}" does not exist on referenced table'


def referenced_record_message(model_name: str) -> str:
    return f"Record is referenced by model {model_name}"


class ReferentialIntegrityEnforcer:
    """Check the virtual foreign keys declared on a model.

    Each check returns the first violation found as a ``ConstraintViolation``
    message, or ``None`` when the record may be written.
    """

    def __init__(self, session: Session, registry: Optional[Registry] = None) -> None:
        self.session = session
        self._registry = registry

    @property
    def registry(self) -> Registry:
        if self._registry is None:
            from recordkit.database import Base

            self._registry = Base.registry
        return self._registry

    def before_save(self, record: Any) -> Optional[Message]:
        for relation in type(record).get_relations(RelationKind.BELONGS_TO):
            if not relation.enforced:
                continue
            violation = self._check_reference(record, relation)
            if violation is not None:
                logger.debug(
                    "Save of %s rejected by relation to %s", type(record).__name__, relation.reference_model
                )
                return violation
        return None

    def before_delete(self, record: Any) -> Optional[Message]:
        for relation in type(record).get_relations(*_DEPENDENT_KINDS):
            if not relation.enforced or relation.foreign_key.action != ForeignKeyAction.RESTRICT:
                continue
            dependent = self._resolve(relation)
            if dependent is None:
                continue
            values = record_values(record, relation.fields)
            if any(value is None for value in values):
                continue
            if self._exists(dependent, relation.referenced_fields, values):
                text = relation.foreign_key.message or referenced_record_message(dependent.__name__)
                logger.debug(
                    "Delete of %s rejected: referenced by %s", type(record).__name__, dependent.__name__
                )
                return constraint_violation(text, relation.field_label)
        return None

    def cascade_dependents(self, record: Any) -> List[Any]:
        dependents: List[Any] = []
        for relation in type(record).get_relations(*_DEPENDENT_KINDS):
            if not relation.enforced or relation.foreign_key.action != ForeignKeyAction.CASCADE:
                continue
            dependent = self._resolve(relation)
            if dependent is None:
                continue
            values = record_values(record, relation.fields)
            if any(value is None for value in values):
                continue
            stmt = sa.select(dependent).where(
                *self._match(dependent, relation.referenced_fields, values)
            )
            dependents.extend(self.session.scalars(stmt).all())
        return dependents

    def _check_reference(self, record: Any, relation: Relation) -> Optional[Message]:
        values = record_values(record, relation.fields)
        if any(value is None for value in values):
            if relation.foreign_key.allow_nulls:
                return None
            return constraint_violation(missing_reference_message(relation.field_label), relation.field_label)

        referenced = self._resolve(relation)
        if referenced is None:
            logger.warning(
                "Relation %s.%s references unknown model or fields %s.%s",
                type(record).__name__,
                relation.field_label,
                relation.reference_model,
                ",".join(relation.referenced_fields),
            )
            return constraint_violation(missing_reference_message(relation.field_label), relation.field_label)

        if self._exists(referenced, relation.referenced_fields, values):
            return None

        text = relation.foreign_key.message or missing_reference_message(relation.field_label)
        return constraint_violation(text, relation.field_label)

    def _resolve(self, relation: Relation) -> Optional[type]:
        model = resolve_model(relation.reference_model, self.registry)
        if model is None:
            return None
        if any(column_attribute(model, name) is None for name in relation.referenced_fields):
            return None
        return model

    def _exists(self, model: type, fields: tuple[str, ...], values: tuple[Any, ...]) -> bool:
        stmt = sa.select(sa.literal(1)).select_from(model).where(*self._match(model, fields, values)).limit(1)
        return self.session.execute(stmt).first() is not None

    @staticmethod
    def _match(model: type, fields: tuple[str, ...], values: tuple[Any, ...]) -> list[Any]:
        return [column_attribute(model, name) == value for name, value in zip(fields, values)]
