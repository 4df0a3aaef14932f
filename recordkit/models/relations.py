from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union


class RelationError(ValueError):
    """Raised when a relation declaration is malformed."""


class RelationKind(str, Enum):
    BELONGS_TO = "belongs_to"
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"


class ForeignKeyAction(str, Enum):
    RESTRICT = "restrict"
    CASCADE = "cascade"
    NONE = "none"


@dataclass(frozen=True)
class ForeignKey:
    message: Optional[str] = None
    action: ForeignKeyAction = ForeignKeyAction.RESTRICT
    allow_nulls: bool = True


@dataclass(frozen=True)
class Relation:
    """A directed edge between two models.

    ``fields`` are attribute names on the declaring model and
    ``referenced_fields`` the matching attribute names on ``reference_model``.
    ``reference_model`` is a class name resolved lazily through the
    declarative registry so models can reference each other in any order.
    """

    kind: RelationKind
    fields: tuple[str, ...]
    reference_model: str
    referenced_fields: tuple[str, ...]
    alias: Optional[str] = None
    foreign_key: Optional[ForeignKey] = None

    def __post_init__(self) -> None:
        if not self.fields or len(self.fields) != len(self.referenced_fields):
            raise RelationError(
                f"Relation to {self.reference_model} must map the same number of fields on both sides."
            )

    @property
    def name(self) -> str:
        return self.alias or self.reference_model

    @property
    def field_label(self) -> str:
        return ",".join(self.fields)

    @property
    def enforced(self) -> bool:
        return self.foreign_key is not None and self.foreign_key.action != ForeignKeyAction.NONE


FieldSpec = Union[str, Sequence[str]]
ForeignKeySpec = Union[ForeignKey, bool, None]


def _as_fields(value: FieldSpec) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _as_foreign_key(value: ForeignKeySpec) -> Optional[ForeignKey]:
    if value is True:
        return ForeignKey()
    if value is False or value is None:
        return None
    return value


def _relation(
    kind: RelationKind,
    fields: FieldSpec,
    reference_model: str,
    referenced_fields: FieldSpec,
    alias: Optional[str],
    foreign_key: ForeignKeySpec,
) -> Relation:
    return Relation(
        kind=kind,
        fields=_as_fields(fields),
        reference_model=reference_model,
        referenced_fields=_as_fields(referenced_fields),
        alias=alias,
        foreign_key=_as_foreign_key(foreign_key),
    )


def belongs_to(
    fields: FieldSpec,
    reference_model: str,
    referenced_fields: FieldSpec,
    *,
    alias: Optional[str] = None,
    foreign_key: ForeignKeySpec = None,
) -> Relation:
    return _relation(RelationKind.BELONGS_TO, fields, reference_model, referenced_fields, alias, foreign_key)


def has_many(
    fields: FieldSpec,
    reference_model: str,
    referenced_fields: FieldSpec,
    *,
    alias: Optional[str] = None,
    foreign_key: ForeignKeySpec = None,
) -> Relation:
    return _relation(RelationKind.HAS_MANY, fields, reference_model, referenced_fields, alias, foreign_key)


def has_one(
    fields: FieldSpec,
    reference_model: str,
    referenced_fields: FieldSpec,
    *,
    alias: Optional[str] = None,
    foreign_key: ForeignKeySpec = None,
) -> Relation:
    return _relation(RelationKind.HAS_ONE, fields, reference_model, referenced_fields, alias, foreign_key)
