from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from actor_checker.model import ActorModel
from actor_checker.models import Action, GlobalState


@dataclass(frozen=True)
class StepTrace:
    step: int
    # None for the initial state (step 0).
    action: Action | None
    state: GlobalState


def replay(model: ActorModel, path: Sequence[Action], *, init: GlobalState | None = None) -> list[StepTrace]:
    """
    Re-apply path from an initial state, returning one StepTrace per state
    visited (the initial state included).

    Notes:
    - With several initial states, the first one from which every step is
      enabled is used, unless init is given.
    - Raises ValueError if no initial state admits the whole path.
    """
    candidates = [init] if init is not None else model.init_states()
    for start in candidates:
        log = _replay_from(model, start, path)
        if log is not None:
            return log
    raise ValueError(f"path is not executable from any initial state ({len(path)} steps)")


def _replay_from(model: ActorModel, start: GlobalState, path: Sequence[Action]) -> list[StepTrace] | None:
    log = [StepTrace(step=0, action=None, state=start)]
    state = start
    for i, action in enumerate(path, start=1):
        nxt = model.next_state(state, action)
        if nxt is None:
            return None
        state = nxt
        log.append(StepTrace(step=i, action=action, state=state))
    return log


def final_state(model: ActorModel, path: Sequence[Action]) -> GlobalState:
    return replay(model, path)[-1].state
