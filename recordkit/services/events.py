from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

EventHandler = Callable[["Event", Any, Any], Any]

DEFAULT_PRIORITY = 100


class EventsError(RuntimeError):
    """Raised on invalid use of an event."""


@dataclass
class Event:
    type: str
    source: Any
    data: Any = None
    cancelable: bool = True
    _stopped: bool = field(default=False, repr=False)

    @property
    def name(self) -> str:
        return self.type.partition(":")[2]

    def stop(self) -> None:
        if not self.cancelable:
            raise EventsError(f"Trying to stop non-cancelable event {self.type!r}")
        self._stopped = True

    def is_stopped(self) -> bool:
        return self._stopped


class EventsManager:
    """Dispatch ``component:event`` notifications to attached listeners.

    A listener is either a callable taking ``(event, source, data)`` or an
    object exposing a method named after the event (``beforeSave``). Listeners
    attached to the bare component name receive every event of that
    component, before the listeners attached to the full event type.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Tuple[int, int, Any]]] = {}
        self._sequence = itertools.count()

    def attach(self, event_type: str, handler: Any, priority: int = DEFAULT_PRIORITY) -> None:
        if handler is None or isinstance(handler, (str, bytes, int, float)):
            raise EventsError("Event handler must be a callable or an object")
        queue = self._listeners.setdefault(event_type, [])
        queue.append((priority, next(self._sequence), handler))
        queue.sort(key=lambda item: (-item[0], item[1]))

    def detach(self, event_type: str, handler: Any) -> None:
        queue = self._listeners.get(event_type)
        if not queue:
            return
        self._listeners[event_type] = [item for item in queue if item[2] is not handler]

    def detach_all(self, event_type: Optional[str] = None) -> None:
        if event_type is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event_type, None)

    def has_listeners(self, event_type: str) -> bool:
        return bool(self._listeners.get(event_type))

    def get_listeners(self, event_type: str) -> List[Any]:
        return [item[2] for item in self._listeners.get(event_type, [])]

    def fire(self, event_type: str, source: Any, data: Any = None, cancelable: bool = True) -> bool:
        """Notify listeners; ``False`` when any listener returned ``False``."""
        component, separator, event_name = event_type.partition(":")
        if not separator or not event_name:
            raise EventsError(f"Invalid event type {event_type!r}")

        event = Event(type=event_type, source=source, data=data, cancelable=cancelable)
        status = True
        for queue_name in (component, event_type):
            for _, _, handler in list(self._listeners.get(queue_name, [])):
                result = self._call(handler, event, event_name)
                if result is False:
                    status = False
                if event.is_stopped():
                    logger.debug("Event %s stopped by %r", event_type, handler)
                    return status
        return status

    @staticmethod
    def _call(handler: Any, event: Event, event_name: str) -> Any:
        method = getattr(handler, event_name, None)
        if method is not None and callable(method):
            return method(event, event.source, event.data)
        if callable(handler) and not isinstance(handler, type):
            return handler(event, event.source, event.data)
        return None
