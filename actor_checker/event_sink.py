from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from actor_checker.events import Event, EventType


class EventSink(ABC):
    """
    Consumer of structured events.
    The checker must be able to run with event_sink=None (no events).
    Worker threads may call emit() concurrently.
    """

    @abstractmethod
    def emit(self, event_type: EventType, depth: int | None = None, **data: Any) -> None: ...


@dataclass
class InMemoryEventSink(EventSink):
    """
    Simple sink for tests/demos.
    Owns seq numbering so the checker stays free of global state.
    """

    events: list[Event] = field(default_factory=list)
    _seq: int = field(default=0, init=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def emit(self, event_type: EventType, depth: int | None = None, **data: object) -> None:
        with self._lock:
            self._seq += 1
            self.events.append(Event(seq=self._seq, type=event_type, depth=depth, data=dict(data)))

    def of_type(self, event_type: EventType) -> list[Event]:
        with self._lock:
            return [e for e in self.events if e.type == event_type]
