from __future__ import annotations

import pytest

from actor_checker.machines import COUNTER_ADDR, SUPERVISOR_ADDR, IncrementRequest, ReplyCount, stimulus_model
from actor_checker.models import Deliver
from actor_checker.network import Envelope
from actor_checker.reporting import render_path, render_trace
from actor_checker.trace import replay


def test_replay_walks_the_discovery_path() -> None:
    model = stimulus_model()
    d = model.checker().run().discovery("success")
    log = replay(model, d.path)

    assert [entry.step for entry in log] == list(range(len(d.path) + 1))
    assert log[0].action is None
    assert log[-1].state == d.state
    counters = [entry.state.state_of(COUNTER_ADDR).counter for entry in log]
    assert counters == sorted(counters)


def test_replay_rejects_actions_that_are_not_enabled() -> None:
    model = stimulus_model()
    with pytest.raises(ValueError):
        replay(model, [Deliver(Envelope(COUNTER_ADDR, SUPERVISOR_ADDR, ReplyCount(3)))])


def test_render_trace_shows_each_step_and_state() -> None:
    model = stimulus_model()
    d = model.checker().run().discovery("success")
    text = render_trace(replay(model, d.path))

    assert text.startswith("Step 0 | initial state")
    assert "Step 5 | Deliver(1 -> 0: ReplyCount(n=3))" in text
    assert "success=True" in text


def test_render_path() -> None:
    assert render_path([]) == "  (empty path)"
    path = [Deliver(Envelope(2, 1, IncrementRequest(3)))]
    assert render_path(path) == "  1: Deliver(2 -> 1: IncrementRequest(n=3))"
