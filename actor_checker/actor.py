from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Hashable, Iterable

from actor_checker.effects import Effect, Out
from actor_checker.network import Address, TimerHandle

Outputs = list[tuple[Address, Any]]


class NondeterminismError(RuntimeError):
    """Raised when a handler returns different results for identical arguments."""


class Machine(ABC):
    """
    Pure transition logic for one actor kind (a Mealy machine).

    respond() maps (self address, state, sender, input) to
    (next state, [(destination, output), ...]). It must be deterministic and
    total: inputs it does not recognise return the state unchanged with no
    outputs.
    """

    # Tag stored in every ActorRecord of this kind.
    kind: str = ""

    @abstractmethod
    def default_state(self) -> Any: ...

    def initialize(self, config: Any | None = None) -> Any:
        """Initial state from the caller's config, or the documented default."""
        return config if config is not None else self.default_state()

    @abstractmethod
    def respond(self, self_addr: Address, state: Any, src: Address, msg: Any) -> tuple[Any, Outputs]: ...

    def initial_timers(self, self_addr: Address, state: Any) -> Iterable[Hashable]:
        return ()

    def on_timeout(self, self_addr: Address, state: Any, timer: Hashable) -> tuple[Any, Out]:
        return state, Out()


@dataclass(frozen=True)
class ActorRuntime:
    """
    Lifts a Machine into the effect model.

    Every hook returns (state, effects); effects are declarative and applied by
    the model. With check_determinism=True each handler runs twice and the two
    results must match.
    """

    machine: Machine
    check_determinism: bool = False

    @property
    def kind(self) -> str:
        return self.machine.kind

    def start(self, address: Address, config: Any | None = None) -> tuple[Any, tuple[Effect, ...]]:
        state = self.machine.initialize(config)
        o = Out()
        for timer in self.machine.initial_timers(address, state):
            o.set_timer(timer)
        return state, o.effects

    def deliver(self, address: Address, state: Any, src: Address, msg: Any) -> tuple[Any, tuple[Effect, ...]]:
        new_state, outputs = self.machine.respond(address, state, src, msg)
        if self.check_determinism:
            again = self.machine.respond(address, state, src, msg)
            if again != (new_state, outputs):
                raise NondeterminismError(
                    f"{self.kind} at {address} answered {msg!r} from {src} inconsistently: "
                    f"{(new_state, outputs)!r} vs {again!r}"
                )
        o = Out()
        for dst, out_msg in outputs:
            o.send(dst, out_msg)
        return new_state, o.effects

    def timeout(self, address: Address, state: Any, timer: TimerHandle) -> tuple[Any, tuple[Effect, ...]]:
        new_state, o = self.machine.on_timeout(address, state, timer.kind)
        if self.check_determinism:
            again_state, again_out = self.machine.on_timeout(address, state, timer.kind)
            if again_state != new_state or again_out != o:
                raise NondeterminismError(
                    f"{self.kind} at {address} handled timer {timer.kind!r} inconsistently"
                )
        return new_state, o.effects
