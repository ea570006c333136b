from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Sequence

from actor_checker.models import Action, GlobalState, describe_action
from actor_checker.properties import Discovery, Property
from actor_checker.trace import StepTrace

if TYPE_CHECKING:
    from actor_checker.engine import Checker


def render_path(path: Sequence[Action]) -> str:
    """One numbered line per action; "(empty path)" for an initial state."""
    if not path:
        return "  (empty path)"
    return "\n".join(f"  {i}: {describe_action(a)}" for i, a in enumerate(path, start=1))


def render_state(state: GlobalState) -> str:
    out: list[str] = []
    for a in state.actors:
        out.append(f"    actor {a.address} [{a.kind}] {a.state!r}")
    envelopes = list(state.network.iter_all())
    if envelopes:
        for env in envelopes:
            out.append(f"    in flight {env.src} -> {env.dst}: {env.msg!r}")
    else:
        out.append("    in flight: --")
    pending = state.timers.pending()
    if pending:
        out.append("    timers: " + ", ".join(f"{h.owner}:{h.kind}" for h in pending))
    else:
        out.append("    timers: --")
    return "\n".join(out)


def render_discovery(d: Discovery) -> str:
    return (
        f"{d.name} ({d.expectation.value}) {d.classification}, {len(d.path)} step(s):\n"
        f"{render_path(d.path)}"
    )


def render_trace(log: Iterable[StepTrace]) -> str:
    out: list[str] = []
    for entry in log:
        if entry.action is None:
            out.append("Step 0 | initial state")
        else:
            out.append(f"Step {entry.step} | {describe_action(entry.action)}")
        out.append(render_state(entry.state))
    return "\n".join(out) + "\n"


def render_failures(checker: "Checker", failures: Iterable[Property]) -> str:
    verdicts = checker.verdicts()
    discoveries = checker.discoveries()
    out = [f"properties did not reach their expected disposition (status={checker.status.value}):"]
    for p in failures:
        out.append(f"- {p.name} ({p.expectation.value}): {verdicts[p.name].value}")
        d = discoveries.get(p.name)
        if d is not None:
            out.append(render_path(d.path))
    return "\n".join(out)


def render_report(checker: "Checker") -> str:
    out = [
        f"Status: {checker.status.value}",
        f"Unique states: {checker.unique_state_count()}",
        f"Max depth: {checker.max_depth_reached()}",
    ]
    discoveries = checker.discoveries()
    for name, verdict in checker.verdicts().items():
        out.append(f"Property {name}: {verdict.value}")
        d = discoveries.get(name)
        if d is not None:
            out.append(render_path(d.path))
    return "\n".join(out) + "\n"
