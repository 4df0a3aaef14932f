from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Set

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recordkit.config import Settings, get_settings
from recordkit.models.base import column_attribute, is_persisted
from recordkit.models.messages import Message, MessageType
from recordkit.schemas.calculations import SortDirection, parse_order
from recordkit.services.calculations import AggregateEvaluator, SpecInput
from recordkit.services.conditions import ConditionError, resolve_conditions
from recordkit.services.events import EventsManager
from recordkit.services.integrity import ReferentialIntegrityEnforcer

logger = logging.getLogger(__name__)

MODEL_COMPONENT = "model"


class RecordManager:
    """Save, delete and query records through one session.

    The manager carries every collaborator explicitly: the session, an
    optional events manager and the integrity enforcer.
    """

    def __init__(
        self,
        session: Session,
        *,
        events: Optional[EventsManager] = None,
        enforcer: Optional[ReferentialIntegrityEnforcer] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.events = events
        self.enforcer = enforcer or ReferentialIntegrityEnforcer(session)
        self.settings = settings or get_settings()
        self.calculations = AggregateEvaluator(session)

    def save(self, record: Any) -> bool:
        record.reset_messages()
        return self._write(record, is_persisted(record))

    def create(self, record: Any) -> bool:
        record.reset_messages()
        if is_persisted(record):
            return self._reject(
                record,
                Message(
                    type=MessageType.INVALID_CREATE_ATTEMPT,
                    text="Record cannot be created because it already exists",
                ),
            )
        return self._write(record, False)

    def update(self, record: Any) -> bool:
        record.reset_messages()
        if not is_persisted(record):
            return self._reject(
                record,
                Message(
                    type=MessageType.INVALID_UPDATE_ATTEMPT,
                    text="Record cannot be updated because it does not exist",
                ),
            )
        return self._write(record, True)

    def delete(self, record: Any) -> bool:
        record.reset_messages()
        if not self._fire("beforeDelete", record):
            return self._cancel(record, "beforeDelete", "notDeleted")

        plan: List[Any] = []
        if self.settings.virtual_foreign_keys:
            violation = self._plan_delete(record, plan, set())
            if violation is not None:
                record.append_message(violation)
                logger.info(
                    "Delete of %s aborted: %s", type(record).__name__, violation.text
                )
                self._fire("notDeleted", record)
                return False
        else:
            plan.append(record)

        try:
            # Dependents were planned after their parent; remove them first.
            for item in reversed(plan):
                self.session.delete(item)
                self.session.flush()
            self.session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to delete %s", type(record).__name__)
            self.session.rollback()
            raise

        if len(plan) > 1:
            logger.debug("Deleted %s with %d cascaded dependents", type(record).__name__, len(plan) - 1)
        self._fire("afterDelete", record)
        return True

    def find(
        self,
        model: type,
        conditions: Any = None,
        *,
        bind: Optional[Mapping[str, Any]] = None,
        order: Any = None,
        limit: Optional[int] = None,
    ) -> List[Any]:
        where, params = resolve_conditions(model, conditions, bind)
        stmt = sa.select(model)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(*self._order_clauses(model, order))
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt, params).all())

    def find_first(
        self,
        model: type,
        conditions: Any = None,
        *,
        bind: Optional[Mapping[str, Any]] = None,
        order: Any = None,
    ) -> Optional[Any]:
        records = self.find(model, conditions, bind=bind, order=order, limit=1)
        return records[0] if records else None

    def count(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.calculations.count(model, parameters, **options)

    def sum(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.calculations.sum(model, parameters, **options)

    def average(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.calculations.average(model, parameters, **options)

    def minimum(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.calculations.minimum(model, parameters, **options)

    def maximum(self, model: type, parameters: SpecInput = None, **options: Any) -> Any:
        return self.calculations.maximum(model, parameters, **options)

    def _write(self, record: Any, exists: bool) -> bool:
        # Checks read attributes through the session; keep pending changes out of it.
        with self.session.no_autoflush:
            if self.settings.virtual_foreign_keys:
                violation = self.enforcer.before_save(record)
                if violation is not None:
                    logger.info("Save of %s aborted: %s", type(record).__name__, violation.text)
                    return self._reject(record, violation)

            if not self._fire("beforeValidation", record):
                return self._cancel_save(record, "beforeValidation")

            if self.settings.not_null_validations:
                missing = self._presence_messages(record)
                if missing:
                    record.get_messages().extend(missing)
                    self._fire("onValidationFails", record)
                    self._fire("notSaved", record)
                    self._detach_rejected(record)
                    return False

            if not self._fire("beforeSave", record):
                return self._cancel_save(record, "beforeSave")
            stage = "beforeUpdate" if exists else "beforeCreate"
            if not self._fire(stage, record):
                return self._cancel_save(record, stage)

        try:
            self._attach(record)
            self.session.flush()
            self.session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to save %s", type(record).__name__)
            self.session.rollback()
            raise

        self._fire("afterUpdate" if exists else "afterCreate", record)
        self._fire("afterSave", record)
        return True

    def _attach(self, record: Any) -> None:
        state = sa.inspect(record)
        if state.detached and state.key in self.session.identity_map:
            # The row was loaded again after a rejected save; copy the values onto it.
            self.session.merge(record)
        else:
            self.session.add(record)

    def _detach_rejected(self, record: Any) -> None:
        """Take a rejected record out of the session so no later flush writes it.

        The record keeps its values and pending changes and is attached again
        by the next save.
        """
        state = sa.inspect(record)
        if state.session is not self.session:
            return
        if not (state.modified or state.pending):
            return
        unloaded = state.unloaded
        with self.session.no_autoflush:
            for attribute in sa.inspect(type(record)).column_attrs:
                if attribute.key in unloaded:
                    getattr(record, attribute.key)
        self.session.expunge(record)
        logger.debug("Detached rejected %s from the session", type(record).__name__)

    def _plan_delete(self, record: Any, plan: List[Any], seen: Set[Any]) -> Optional[Message]:
        key = (type(record), sa.inspect(record).identity_key or id(record))
        if key in seen:
            return None
        seen.add(key)

        violation = self.enforcer.before_delete(record)
        if violation is not None:
            return violation
        plan.append(record)
        for dependent in self.enforcer.cascade_dependents(record):
            violation = self._plan_delete(dependent, plan, seen)
            if violation is not None:
                return violation
        return None

    def _presence_messages(self, record: Any) -> List[Message]:
        messages: List[Message] = []
        mapper = sa.inspect(type(record))
        for attribute in mapper.column_attrs:
            column = attribute.columns[0]
            if column.primary_key or column.nullable:
                continue
            if column.default is not None or column.server_default is not None:
                continue
            if getattr(record, attribute.key, None) is None:
                messages.append(
                    Message(
                        type=MessageType.PRESENCE_OF,
                        text=f"{attribute.key} is required",
                        field=attribute.key,
                    )
                )
        return messages

    def _reject(self, record: Any, message: Message) -> bool:
        record.append_message(message)
        self._fire("onValidationFails", record)
        self._fire("notSaved", record)
        self._detach_rejected(record)
        return False

    def _cancel_save(self, record: Any, stage: str) -> bool:
        self._cancel(record, stage, "notSaved")
        self._detach_rejected(record)
        return False

    def _cancel(self, record: Any, stage: str, failure_event: str) -> bool:
        record.append_message(
            Message(type=MessageType.CANCELLED, text=f"Operation cancelled by {stage} listener")
        )
        logger.debug("%s of %s cancelled by listener", stage, type(record).__name__)
        self._fire(failure_event, record)
        return False

    def _fire(self, event_name: str, record: Any) -> bool:
        if self.events is None:
            return True
        return self.events.fire(f"{MODEL_COMPONENT}:{event_name}", record)

    @staticmethod
    def _order_clauses(model: type, order: Any) -> List[Any]:
        clauses: List[Any] = []
        for term in parse_order(order):
            column = column_attribute(model, term.name)
            if column is None:
                raise ConditionError(f"{model.__name__} has no column named {term.name!r}.")
            clauses.append(column.desc() if term.direction == SortDirection.DESC else column.asc())
        if not clauses:
            clauses.extend(column.asc() for column in sa.inspect(model).primary_key)
        return clauses
