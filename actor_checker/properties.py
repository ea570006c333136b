from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable, Iterable, Sequence

from actor_checker.models import Action, GlobalState


class Expectation(str, Enum):
    """
    ALWAYS: must hold in every reachable state (an invariant).
    SOMETIMES / EVENTUALLY: must hold in at least one reachable state.
    """

    ALWAYS = "ALWAYS"
    SOMETIMES = "SOMETIMES"
    EVENTUALLY = "EVENTUALLY"


class Verdict(str, Enum):
    HOLDS = "HOLDS"
    VIOLATED = "VIOLATED"
    WITNESSED = "WITNESSED"
    # Full state space explored and never satisfied.
    UNWITNESSED = "UNWITNESSED"
    # Exploration stopped early (depth bound, cancellation, or a violation elsewhere).
    INCONCLUSIVE = "INCONCLUSIVE"


@dataclass(frozen=True)
class Property:
    expectation: Expectation
    name: str
    predicate: Callable[[GlobalState], bool]

    @property
    def is_invariant(self) -> bool:
        return self.expectation == Expectation.ALWAYS


@dataclass(frozen=True, slots=True)
class Discovery:
    """
    Witness for a decided property: the actions leading from an initial state
    to the state that violates an invariant (counterexample) or satisfies a
    sometimes/eventually property (example).
    """

    name: str
    expectation: Expectation
    path: tuple[Action, ...]
    state: GlobalState

    @property
    def classification(self) -> str:
        return "counterexample" if self.expectation == Expectation.ALWAYS else "example"


class PropertyEvaluationError(RuntimeError):
    """A property predicate raised instead of returning a bool."""

    def __init__(self, name: str, state: GlobalState, action: Action | None) -> None:
        super().__init__(f"property {name!r} raised while evaluating state reached by {action!r}: {state!r}")
        self.property_name = name
        self.state = state
        self.action = action


class PropertyEvaluator:
    """
    Checks undecided properties against newly discovered states.

    Safe to share between worker threads: the first Discovery recorded for a
    property wins and later ones are discarded.
    """

    def __init__(self, properties: Iterable[Property]) -> None:
        self._properties: tuple[Property, ...] = tuple(properties)
        self._discoveries: dict[str, Discovery] = {}
        self._lock = Lock()

    @property
    def properties(self) -> tuple[Property, ...]:
        return self._properties

    def undecided(self) -> list[Property]:
        with self._lock:
            return [p for p in self._properties if p.name not in self._discoveries]

    def evaluate(
            self,
            state: GlobalState,
            path: Callable[[], Sequence[Action]],
            *,
            action: Action | None = None,
    ) -> list[Discovery]:
        """
        Evaluate every undecided property on state.

        path is only called when a discovery is recorded. Returns the
        discoveries this call recorded.
        """
        recorded: list[Discovery] = []
        for prop in self.undecided():
            try:
                result = bool(prop.predicate(state))
            except Exception as e:
                raise PropertyEvaluationError(prop.name, state, action) from e

            decided = (not result) if prop.is_invariant else result
            if not decided:
                continue

            discovery = Discovery(prop.name, prop.expectation, tuple(path()), state)
            with self._lock:
                if prop.name in self._discoveries:
                    continue
                self._discoveries[prop.name] = discovery
            recorded.append(discovery)
        return recorded

    def discoveries(self) -> dict[str, Discovery]:
        with self._lock:
            return dict(self._discoveries)

    def invariant_violated(self) -> bool:
        with self._lock:
            return any(p.is_invariant and p.name in self._discoveries for p in self._properties)

    def all_decided(self) -> bool:
        with self._lock:
            return bool(self._properties) and all(p.name in self._discoveries for p in self._properties)

    def verdicts(self, *, complete: bool) -> dict[str, Verdict]:
        """
        Disposition of every property. complete means the whole reachable
        state space was explored.
        """
        found = self.discoveries()
        out: dict[str, Verdict] = {}
        for p in self._properties:
            if p.name in found:
                out[p.name] = Verdict.VIOLATED if p.is_invariant else Verdict.WITNESSED
            elif not complete:
                out[p.name] = Verdict.INCONCLUSIVE
            else:
                out[p.name] = Verdict.HOLDS if p.is_invariant else Verdict.UNWITNESSED
        return out

    def failures(self) -> list[Property]:
        """Properties that did not reach their expected disposition."""
        found = self.discoveries()
        return [p for p in self._properties if (p.name in found) == p.is_invariant]
