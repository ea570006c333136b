from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Hashable, Iterator

from actor_checker.network import Address


class EffectKind(str, Enum):
    """
    Side effects an actor handler may request. Nothing is executed directly;
    the model applies them when building the successor state.
    """

    SEND = "SEND"
    SET_TIMER = "SET_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"


@dataclass(frozen=True, slots=True)
class Effect:
    """
    One declarative instruction:
      - SEND: put Envelope(owner, dst, msg) in flight
      - SET_TIMER / CANCEL_TIMER: arm or disarm the owner's timer of this kind
    """

    kind: EffectKind
    dst: Address | None = None
    msg: Any = None
    timer: Hashable | None = None


class Out:
    """Collects the effects requested by one handler invocation, in order."""

    __slots__ = ("_effects",)

    def __init__(self) -> None:
        self._effects: list[Effect] = []

    def send(self, dst: Address, msg: Any) -> None:
        self._effects.append(Effect(EffectKind.SEND, dst=dst, msg=msg))

    def set_timer(self, timer: Hashable) -> None:
        self._effects.append(Effect(EffectKind.SET_TIMER, timer=timer))

    def cancel_timer(self, timer: Hashable) -> None:
        self._effects.append(Effect(EffectKind.CANCEL_TIMER, timer=timer))

    @property
    def effects(self) -> tuple[Effect, ...]:
        return tuple(self._effects)

    def __iter__(self) -> Iterator[Effect]:
        return iter(self._effects)

    def __len__(self) -> int:
        return len(self._effects)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Out):
            return NotImplemented
        return self._effects == other._effects

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Out({self._effects!r})"
