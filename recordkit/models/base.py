from __future__ import annotations

from typing import Any, Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.orm import InstrumentedAttribute, registry as Registry

from recordkit.models.messages import Message, Messages
from recordkit.models.relations import Relation, RelationKind


class RecordMixin:
    """Behaviour shared by every declarative model.

    Relations are declared on the model class through ``__relations__`` and
    the messages of the last save or delete attempt are kept on the instance.
    """

    __relations__ = ()

    def get_messages(self) -> Messages:
        messages = getattr(self, "_messages", None)
        if messages is None:
            messages = Messages()
            self._messages = messages
        return messages

    def append_message(self, message: Message) -> None:
        self.get_messages().append(message)

    def reset_messages(self) -> None:
        self.get_messages().clear()

    @classmethod
    def get_relations(cls, *kinds: RelationKind) -> list[Relation]:
        relations = list(cls.__relations__)
        if not kinds:
            return relations
        return [relation for relation in relations if relation.kind in kinds]

    def to_dict(self) -> dict[str, Any]:
        mapper = sa.inspect(type(self))
        return {attr.key: getattr(self, attr.key) for attr in mapper.column_attrs}


def column_attribute(model: type, name: str) -> Optional[InstrumentedAttribute]:
    mapper = sa.inspect(model)
    if name not in mapper.column_attrs:
        return None
    return getattr(model, name)


def record_values(record: Any, fields: Iterable[str]) -> tuple[Any, ...]:
    return tuple(getattr(record, field_name, None) for field_name in fields)


def resolve_model(name: str, registry: Registry) -> Optional[type]:
    for mapper in registry.mappers:
        if mapper.class_.__name__ == name:
            return mapper.class_
    return None


def is_persisted(record: Any) -> bool:
    return sa.inspect(record).has_identity
