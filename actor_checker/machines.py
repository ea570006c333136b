"""
Sample workloads: a counter, a threshold supervisor and a timer-driven
stimulus generator. They exercise the checker; nothing in the engine depends
on them.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from actor_checker.actor import Machine, Outputs
from actor_checker.effects import Out
from actor_checker.model import ActorModel
from actor_checker.models import GlobalState
from actor_checker.network import Address, Envelope, FaultModel
from actor_checker.properties import Expectation

SUPERVISOR_ADDR: Address = 0
COUNTER_ADDR: Address = 1
STIMULUS_ADDR: Address = 2

POLL_TIMER = "poll"
STIMULUS_TIMER = "stimulus"


# ----------------------------
# Messages
# ----------------------------

@dataclass(frozen=True, slots=True)
class IncrementRequest:
    n: int


@dataclass(frozen=True, slots=True)
class ReportRequest:
    pass


@dataclass(frozen=True, slots=True)
class ReplyCount:
    n: int


# ----------------------------
# Counter
# ----------------------------

@dataclass(frozen=True, slots=True)
class CounterState:
    counter: int = 0


class CounterMachine(Machine):
    """Adds IncrementRequest amounts; answers ReportRequest with ReplyCount."""

    kind = "counter"

    def default_state(self) -> CounterState:
        return CounterState(counter=0)

    def respond(self, self_addr: Address, state: CounterState, src: Address, msg: object) -> tuple[CounterState, Outputs]:
        if isinstance(msg, IncrementRequest):
            return replace(state, counter=state.counter + msg.n), []
        if isinstance(msg, ReportRequest):
            return state, [(src, ReplyCount(state.counter))]
        return state, []


# ----------------------------
# Supervisor
# ----------------------------

class Comparison(str, Enum):
    """
    How a reported count is compared with the threshold.
    AT_LEAST (n >= threshold) is the canonical contract.
    """

    AT_LEAST = "at_least"
    GREATER = "greater"

    def passes(self, n: int, threshold: int) -> bool:
        if self == Comparison.GREATER:
            return n > threshold
        return n >= threshold


@dataclass(frozen=True, slots=True)
class SupervisorState:
    threshold: int = 5
    counter_addr: Address = COUNTER_ADDR
    success: bool = False
    comparison: Comparison = Comparison.AT_LEAST
    # When set, a "poll" timer sends ReportRequest whenever no report is outstanding.
    poll: bool = False
    awaiting: bool = False


class SupervisorMachine(Machine):
    """Flips success once the counter reports a count that passes the threshold."""

    kind = "supervisor"

    def default_state(self) -> SupervisorState:
        return SupervisorState()

    def initial_timers(self, self_addr: Address, state: SupervisorState) -> tuple[str, ...]:
        return (POLL_TIMER,) if state.poll else ()

    def respond(
            self, self_addr: Address, state: SupervisorState, src: Address, msg: object
    ) -> tuple[SupervisorState, Outputs]:
        if isinstance(msg, ReplyCount):
            success = state.success or state.comparison.passes(msg.n, state.threshold)
            return replace(state, success=success, awaiting=False), []
        return state, []

    def on_timeout(self, self_addr: Address, state: SupervisorState, timer: object) -> tuple[SupervisorState, Out]:
        o = Out()
        if timer != POLL_TIMER or state.success:
            return state, o
        if not state.awaiting:
            o.send(state.counter_addr, ReportRequest())
            state = replace(state, awaiting=True)
        o.set_timer(POLL_TIMER)
        return state, o


# ----------------------------
# Stimulus
# ----------------------------

@dataclass(frozen=True, slots=True)
class StimulusState:
    target: Address = COUNTER_ADDR
    amount: int = 1
    remaining: int = 3


class StimulusMachine(Machine):
    """
    External input generator: each "stimulus" timer firing sends one
    IncrementRequest(amount) to target, re-arming until remaining hits 0.
    """

    kind = "stimulus"

    def default_state(self) -> StimulusState:
        return StimulusState()

    def initial_timers(self, self_addr: Address, state: StimulusState) -> tuple[str, ...]:
        return (STIMULUS_TIMER,) if state.remaining > 0 else ()

    def respond(self, self_addr: Address, state: StimulusState, src: Address, msg: object) -> tuple[StimulusState, Outputs]:
        return state, []

    def on_timeout(self, self_addr: Address, state: StimulusState, timer: object) -> tuple[StimulusState, Out]:
        o = Out()
        if timer != STIMULUS_TIMER or state.remaining <= 0:
            return state, o
        o.send(state.target, IncrementRequest(state.amount))
        state = replace(state, remaining=state.remaining - 1)
        if state.remaining > 0:
            o.set_timer(STIMULUS_TIMER)
        return state, o


# ----------------------------
# Properties and model builders
# ----------------------------

def supervisor_success(state: GlobalState) -> bool:
    return bool(state.state_of(SUPERVISOR_ADDR).success)


def success_implies_threshold(state: GlobalState) -> bool:
    sup = state.state_of(SUPERVISOR_ADDR)
    if not sup.success:
        return True
    return sup.comparison.passes(state.state_of(sup.counter_addr).counter, sup.threshold)


def counter_non_negative(state: GlobalState) -> bool:
    return state.state_of(COUNTER_ADDR).counter >= 0


def counter_supervisor_model(
        *,
        threshold: int = 3,
        comparison: Comparison = Comparison.AT_LEAST,
        increments: tuple[int, ...] = (3,),
        report: bool = True,
        faults: FaultModel = FaultModel(),
        check_determinism: bool = False,
) -> ActorModel:
    """
    Supervisor at 0 and counter at 1. The initial network holds one
    IncrementRequest per entry in increments and, if report is set, one
    ReportRequest, all sent by the supervisor.
    """
    envelopes = [Envelope(SUPERVISOR_ADDR, COUNTER_ADDR, IncrementRequest(n)) for n in increments]
    if report:
        envelopes.append(Envelope(SUPERVISOR_ADDR, COUNTER_ADDR, ReportRequest()))

    return (
        ActorModel(faults=faults, check_determinism=check_determinism)
        .machine(SupervisorMachine())
        .machine(CounterMachine())
        .actor(SUPERVISOR_ADDR, SupervisorMachine.kind, SupervisorState(threshold=threshold, comparison=comparison))
        .actor(COUNTER_ADDR, CounterMachine.kind, CounterState(counter=0))
        .init_network(envelopes)
        .property(Expectation.ALWAYS, "counter_non_negative", counter_non_negative)
        .property(Expectation.ALWAYS, "success_implies_threshold", success_implies_threshold)
        .property(Expectation.EVENTUALLY, "success", supervisor_success)
    )


def stimulus_model(
        *,
        threshold: int = 3,
        comparison: Comparison = Comparison.AT_LEAST,
        amount: int = 3,
        pulses: int = 1,
        faults: FaultModel = FaultModel(),
        check_determinism: bool = False,
) -> ActorModel:
    """
    Supervisor (polling) at 0, counter at 1, stimulus at 2. The stimulus
    autonomously sends pulses IncrementRequest(amount) messages to the counter.
    """
    return (
        ActorModel(faults=faults, check_determinism=check_determinism)
        .machine(SupervisorMachine())
        .machine(CounterMachine())
        .machine(StimulusMachine())
        .actor(
            SUPERVISOR_ADDR,
            SupervisorMachine.kind,
            SupervisorState(threshold=threshold, comparison=comparison, poll=True),
        )
        .actor(COUNTER_ADDR, CounterMachine.kind, CounterState(counter=0))
        .actor(STIMULUS_ADDR, StimulusMachine.kind, StimulusState(target=COUNTER_ADDR, amount=amount, remaining=pulses))
        .property(Expectation.ALWAYS, "success_implies_threshold", success_implies_threshold)
        .property(Expectation.EVENTUALLY, "success", supervisor_success)
    )


WORKLOAD_TYPES: tuple[type, ...] = (
    IncrementRequest,
    ReportRequest,
    ReplyCount,
    CounterState,
    SupervisorState,
    StimulusState,
    Comparison,
)
