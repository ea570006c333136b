from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """
    Vocabulary of facts the checker can report while it explores.
    Keep this small; add types only when a consumer needs them.
    """

    RUN_STARTED = "RUN_STARTED"
    STATE_DISCOVERED = "STATE_DISCOVERED"
    DEPTH_BOUND_HIT = "DEPTH_BOUND_HIT"
    PROPERTY_DECIDED = "PROPERTY_DECIDED"
    RUN_FINISHED = "RUN_FINISHED"


@dataclass(frozen=True, slots=True)
class Event:
    """
    A structured, orderable fact emitted by the checker (optionally).

    seq is owned by the sink, so the checker keeps no numbering state.
    depth is the BFS depth of the state the event concerns, if any.
    """

    seq: int
    type: EventType
    depth: int | None = None
    data: dict[str, Any] = field(default_factory=dict)
