from __future__ import annotations

import pytest

from actor_checker.engine import CheckerStatus
from actor_checker.machines import (
    COUNTER_ADDR,
    STIMULUS_ADDR,
    SUPERVISOR_ADDR,
    IncrementRequest,
    ReplyCount,
    ReportRequest,
    stimulus_model,
)
from actor_checker.models import Deliver, FireTimer
from actor_checker.network import Envelope, TimerHandle
from actor_checker.properties import Verdict
from actor_checker.trace import final_state

EXPECTED_SUCCESS_PATH = [
    FireTimer(TimerHandle(SUPERVISOR_ADDR, "poll")),
    FireTimer(TimerHandle(STIMULUS_ADDR, "stimulus")),
    Deliver(Envelope(STIMULUS_ADDR, COUNTER_ADDR, IncrementRequest(3))),
    Deliver(Envelope(SUPERVISOR_ADDR, COUNTER_ADDR, ReportRequest())),
    Deliver(Envelope(COUNTER_ADDR, SUPERVISOR_ADDR, ReplyCount(3))),
]


def test_initial_state_arms_poll_and_stimulus_timers() -> None:
    (s0,) = stimulus_model().init_states()
    assert s0.timers.pending() == [TimerHandle(SUPERVISOR_ADDR, "poll"), TimerHandle(STIMULUS_ADDR, "stimulus")]
    assert len(s0.network) == 0


def test_eventually_success_is_witnessed_by_shortest_path() -> None:
    """
    Scenario 4: the witness is exactly the timer firings and deliveries
    needed to reach success, found in BFS order.
    """
    checker = stimulus_model(threshold=3, amount=3, pulses=1).checker().run()

    assert checker.status == CheckerStatus.EXHAUSTED
    checker.assert_properties()
    checker.assert_discovery("success", EXPECTED_SUCCESS_PATH)
    assert checker.verdicts() == {
        "success_implies_threshold": Verdict.HOLDS,
        "success": Verdict.WITNESSED,
    }


def test_discovery_path_is_reproducible() -> None:
    runs = [stimulus_model(amount=1, pulses=3).checker().run() for _ in range(3)]
    paths = [r.discovery("success").path for r in runs]
    assert paths[0] == paths[1] == paths[2]
    assert [r.unique_state_count() for r in runs] == [runs[0].unique_state_count()] * 3


def test_witness_replays_to_a_successful_state() -> None:
    model = stimulus_model(amount=1, pulses=3)
    d = model.checker().run().discovery("success")

    assert d is not None
    assert final_state(model, d.path) == d.state
    assert d.state.state_of(SUPERVISOR_ADDR).success is True
    assert d.state.state_of(COUNTER_ADDR).counter >= 3


def test_assert_discovery_reports_actual_path_on_mismatch() -> None:
    checker = stimulus_model().checker().run()
    with pytest.raises(AssertionError) as exc:
        checker.assert_discovery("success", EXPECTED_SUCCESS_PATH[:2])
    message = str(exc.value)
    assert "Actual:" in message
    assert "ReplyCount(n=3)" in message


def test_assert_discovery_fails_for_undecided_property() -> None:
    checker = stimulus_model().checker().run()
    with pytest.raises(AssertionError, match="no discovery"):
        checker.assert_discovery("success_implies_threshold", [])
    checker.assert_no_discovery("success_implies_threshold")
