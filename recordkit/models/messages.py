from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field, replace
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence, overload


class MessageType(str, Enum):
    CONSTRAINT_VIOLATION = "ConstraintViolation"
    PRESENCE_OF = "PresenceOf"
    INVALID_VALUE = "InvalidValue"
    INVALID_CREATE_ATTEMPT = "InvalidCreateAttempt"
    INVALID_UPDATE_ATTEMPT = "InvalidUpdateAttempt"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class Message:
    """A validation or persistence failure attached to a record.

    Messages compare by value so callers can assert against literal
    reconstructions of the expected failure.
    """

    type: MessageType
    text: str
    field: Optional[str] = None
    code: int = 0
    metadata: Mapping[str, Any] = dataclass_field(default_factory=dict, hash=False)

    def with_metadata(self, metadata: Mapping[str, Any]) -> "Message":
        return replace(self, metadata=dict(metadata))

    def __str__(self) -> str:
        return self.text


def constraint_violation(text: str, field_name: Optional[str]) -> Message:
    return Message(type=MessageType.CONSTRAINT_VIOLATION, text=text, field=field_name)


class Messages(Sequence[Message]):
    """Ordered collection of messages produced by the last save or delete."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        self._messages.extend(messages)

    def clear(self) -> None:
        self._messages.clear()

    def filter(self, field_name: str) -> list[Message]:
        return [message for message in self._messages if message.field == field_name]

    @overload
    def __getitem__(self, index: int) -> Message: ...

    @overload
    def __getitem__(self, index: slice) -> list[Message]: ...

    def __getitem__(self, index):
        return self._messages[index]

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Messages):
            return self._messages == other._messages
        if isinstance(other, (list, tuple)):
            return self._messages == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Messages({self._messages!r})"
