"""
Typed publish/subscribe hub.

Decouples producers (navigator, store, action registry) from consumers
(renderers, content hooks, logging). Delivery is synchronous and follows
subscription order within one event kind. A failing handler is logged and
never stops delivery to the handlers after it.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Every event kind the engine publishes."""

    # Input
    COMMAND_RESOLVED = "command_resolved"
    COMMAND_EXECUTED = "command_executed"

    # State
    STATE_UPDATED = "state_updated"
    MODE_CHANGED = "mode_changed"
    SCENE_CHANGED = "scene_changed"
    PROGRAM_CHANGED = "program_changed"

    # Output for render sinks
    OUTPUT = "output"
    SELECTION = "selection"
    ERROR = "error"

    # Lifecycle
    ENGINE_STARTED = "engine_started"
    ENGINE_STOPPED = "engine_stopped"


@dataclass(frozen=True)
class BusEvent:
    """
    Immutable event delivered to subscribers.

    Attributes:
        kind: Event kind
        payload: Kind-specific data
        timestamp: Publish time in seconds
        seq: Bus-assigned sequence number (0 until published)
    """
    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    seq: int = 0


Handler = Callable[[BusEvent], None]


class EventBus:
    """
    Synchronous event bus keyed by EventKind.

    Example:
        >>> bus = EventBus()
        >>> unsubscribe = bus.subscribe(EventKind.OUTPUT, print)
        >>> bus.emit(EventKind.OUTPUT, text="hello")
        >>> unsubscribe()
    """

    def __init__(self):
        self._handlers: Dict[EventKind, List[Handler]] = {}
        self._lock = threading.RLock()
        self._seq = itertools.count(1)
        self.published = 0
        self.failed_deliveries = 0

    def subscribe(self, kind: EventKind, handler: Handler) -> Callable[[], None]:
        """
        Register a handler for one event kind.

        Returns:
            Unsubscribe function
        """
        kind = EventKind(kind)
        with self._lock:
            self._handlers.setdefault(kind, []).append(handler)

        def unsubscribe():
            self.unsubscribe(kind, handler)

        return unsubscribe

    def unsubscribe(self, kind: EventKind, handler: Handler) -> None:
        """Remove one registration of a handler; unknown handlers are ignored."""
        with self._lock:
            handlers = self._handlers.get(EventKind(kind))
            if handlers and handler in handlers:
                handlers.remove(handler)

    def publish(self, event: BusEvent) -> BusEvent:
        """
        Deliver an event to the handlers subscribed at publish time.

        Returns:
            The event as delivered, carrying its sequence number
        """
        with self._lock:
            event = BusEvent(
                kind=event.kind,
                payload=event.payload,
                timestamp=event.timestamp,
                seq=next(self._seq),
            )
            handlers = list(self._handlers.get(event.kind, ()))
            self.published += 1

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self.failed_deliveries += 1
                logger.error(
                    f"Handler {getattr(handler, '__name__', handler)!r} failed "
                    f"on {event.kind.value}: {e}",
                    exc_info=True,
                )
        return event

    def emit(self, kind: EventKind, **payload: Any) -> BusEvent:
        """Build and publish an event in one call."""
        return self.publish(BusEvent(kind=EventKind(kind), payload=payload))

    def listener_count(self, kind: EventKind) -> int:
        with self._lock:
            return len(self._handlers.get(EventKind(kind), ()))

    def has_listeners(self, kind: EventKind) -> bool:
        return self.listener_count(kind) > 0

    def event_kinds(self) -> List[EventKind]:
        """Kinds that currently have at least one handler."""
        with self._lock:
            return [k for k, hs in self._handlers.items() if hs]

    def clear(self, kind: Optional[EventKind] = None) -> None:
        """Remove all handlers, or only those of one kind."""
        with self._lock:
            if kind is None:
                self._handlers.clear()
            else:
                self._handlers.pop(EventKind(kind), None)
