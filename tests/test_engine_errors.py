from __future__ import annotations

import itertools

import pytest

from actor_checker.actor import Machine, NondeterminismError
from actor_checker.engine import CheckerStatus
from actor_checker.machines import CounterMachine, counter_supervisor_model
from actor_checker.model import ActorModel, ConfigurationError
from actor_checker.models import Deliver
from actor_checker.network import Envelope
from actor_checker.properties import Expectation, PropertyEvaluationError


class ForwardingMachine(Machine):
    """Forwards every message to address 9, which is never configured."""

    kind = "forwarder"

    def default_state(self) -> int:
        return 0

    def respond(self, self_addr, state, src, msg):
        return state + 1, [(9, msg)]


class FlakyMachine(Machine):
    kind = "flaky"

    def __init__(self) -> None:
        self._calls = itertools.count()

    def default_state(self) -> int:
        return 0

    def respond(self, self_addr, state, src, msg):
        return next(self._calls) % 2, []


def forwarding_model() -> ActorModel:
    return (
        ActorModel()
        .machine(ForwardingMachine())
        .actor(0, ForwardingMachine.kind)
        .init_network([Envelope(0, 0, "hello")])
    )


def test_send_to_unconfigured_address_is_a_configuration_error() -> None:
    checker = forwarding_model().checker()
    with pytest.raises(ConfigurationError) as exc:
        checker.run()

    assert checker.status == CheckerStatus.FAILED
    assert exc.value.action == Deliver(Envelope(0, 0, "hello"))
    assert exc.value.state is not None
    assert "unconfigured address 9" in str(exc.value)


def test_configuration_error_surfaces_from_parallel_workers() -> None:
    checker = forwarding_model().checker(workers=3)
    with pytest.raises(ConfigurationError):
        checker.spawn_bfs().join()
    assert checker.status == CheckerStatus.FAILED


def test_initial_envelope_to_unknown_address_is_rejected() -> None:
    model = ActorModel().machine(CounterMachine()).actor(1, CounterMachine.kind).init_network(
        [Envelope(1, 5, "x")]
    )
    with pytest.raises(ConfigurationError, match="unconfigured address 5"):
        model.init_states()


def test_registration_errors() -> None:
    model = ActorModel().machine(CounterMachine())
    with pytest.raises(ConfigurationError):
        model.machine(CounterMachine())
    with pytest.raises(ConfigurationError):
        model.actor(0, "no-such-kind")
    model.actor(0, CounterMachine.kind)
    with pytest.raises(ConfigurationError):
        model.actor(0, CounterMachine.kind)
    model.property(Expectation.ALWAYS, "p", lambda s: True)
    with pytest.raises(ConfigurationError):
        model.property(Expectation.SOMETIMES, "p", lambda s: True)


def test_model_without_actors_cannot_start() -> None:
    with pytest.raises(ConfigurationError):
        ActorModel().init_states()


def test_raising_predicate_is_an_engine_fault_not_a_violation() -> None:
    model = counter_supervisor_model().property(Expectation.ALWAYS, "broken", lambda s: 1 / 0)
    checker = model.checker()

    with pytest.raises(PropertyEvaluationError) as exc:
        checker.run()

    assert exc.value.property_name == "broken"
    assert isinstance(exc.value.__cause__, ZeroDivisionError)
    assert checker.discovery("broken") is None
    assert checker.status == CheckerStatus.FAILED


def test_determinism_cross_check_aborts_exploration() -> None:
    model = (
        ActorModel(check_determinism=True)
        .machine(FlakyMachine())
        .actor(0, FlakyMachine.kind)
        .init_network([Envelope(0, 0, "ping")])
    )
    with pytest.raises(NondeterminismError):
        model.checker().run()
