from __future__ import annotations

from actor_checker.engine import CheckerStatus
from actor_checker.machines import (
    COUNTER_ADDR,
    SUPERVISOR_ADDR,
    IncrementRequest,
    counter_supervisor_model,
)
from actor_checker.models import Deliver, Drop, Redeliver
from actor_checker.network import Envelope, FaultModel

INCREMENT = Envelope(SUPERVISOR_ADDR, COUNTER_ADDR, IncrementRequest(2))


def test_default_network_neither_duplicates_nor_drops() -> None:
    model = counter_supervisor_model(increments=(2,), report=False)
    (s0,) = model.init_states()

    assert model.actions(s0) == [Deliver(INCREMENT)]
    assert model.next_state(s0, Redeliver(INCREMENT)) is None
    assert model.next_state(s0, Drop(INCREMENT)) is None


def test_delivery_consumes_the_envelope() -> None:
    model = counter_supervisor_model(increments=(2,), report=False)
    (s0,) = model.init_states()

    s1 = model.next_state(s0, Deliver(INCREMENT))
    assert s1.state_of(COUNTER_ADDR).counter == 2
    assert model.next_state(s1, Deliver(INCREMENT)) is None


def test_redelivery_applies_the_transition_again() -> None:
    """Redelivering a retained increment counts it twice: transitions are not idempotent."""
    model = counter_supervisor_model(increments=(2,), report=False, faults=FaultModel(duplicating=True))
    (s0,) = model.init_states()

    assert model.actions(s0) == [Deliver(INCREMENT), Redeliver(INCREMENT)]

    s1 = model.next_state(s0, Redeliver(INCREMENT))
    s2 = model.next_state(s1, Redeliver(INCREMENT))
    assert s1.state_of(COUNTER_ADDR).counter == 2
    assert s2.state_of(COUNTER_ADDR).counter == 4
    assert s2.network.count(INCREMENT) == 1


def test_duplicating_network_needs_a_depth_bound() -> None:
    model = counter_supervisor_model(increments=(2,), report=False, faults=FaultModel(duplicating=True))
    checker = model.checker(max_depth=4).run()

    assert checker.status == CheckerStatus.DEPTH_BOUNDED
    counters = {s.state_of(COUNTER_ADDR).counter for s in checker.states()}
    assert counters == {0, 2, 4, 6, 8}


def test_lossy_network_can_drop_without_delivering() -> None:
    model = counter_supervisor_model(increments=(2,), report=False, faults=FaultModel(lossy=True))
    (s0,) = model.init_states()

    dropped = model.next_state(s0, Drop(INCREMENT))
    assert len(dropped.network) == 0
    assert dropped.state_of(COUNTER_ADDR).counter == 0

    checker = model.checker().run()
    assert checker.status == CheckerStatus.EXHAUSTED
    assert checker.unique_state_count() == 3
