from recordkit.models.base import RecordMixin, column_attribute, is_persisted, record_values, resolve_model
from recordkit.models.messages import Message, Messages, MessageType, constraint_violation
from recordkit.models.relations import (
    ForeignKey,
    ForeignKeyAction,
    Relation,
    RelationError,
    RelationKind,
    belongs_to,
    has_many,
    has_one,
)

__all__ = [
    "ForeignKey",
    "ForeignKeyAction",
    "Message",
    "MessageType",
    "Messages",
    "RecordMixin",
    "Relation",
    "RelationError",
    "RelationKind",
    "belongs_to",
    "column_attribute",
    "constraint_violation",
    "has_many",
    "has_one",
    "is_persisted",
    "record_values",
    "resolve_model",
]
