from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable

from actor_checker.actor import ActorRuntime, Machine
from actor_checker.effects import Effect, EffectKind
from actor_checker.models import (
    Action,
    ActorRecord,
    Deliver,
    Drop,
    FireTimer,
    GlobalState,
    Redeliver,
)
from actor_checker.network import Address, Envelope, FaultModel, Network, TimerHandle, Timers
from actor_checker.properties import Expectation, Property

if TYPE_CHECKING:
    from actor_checker.engine import Checker


class ConfigurationError(ValueError):
    """
    The model references something that was never configured (unknown actor
    kind, unknown destination address, duplicate registration).

    state/action identify where exploration was when it was detected.
    """

    def __init__(self, message: str, *, state: GlobalState | None = None, action: Action | None = None) -> None:
        super().__init__(message)
        self.state = state
        self.action = action


@dataclass(frozen=True, slots=True)
class ActorSpec:
    address: Address
    kind: str
    # One initial configuration per alternative; None selects the machine default.
    configs: tuple[Any, ...] = (None,)


class ActorModel:
    """
    A closed set of actors plus the properties to check about them.

    Machines are registered by kind tag; every actor instance names the kind
    that handles it, so dispatch is a lookup on the tag.
    """

    def __init__(self, *, faults: FaultModel = FaultModel(), check_determinism: bool = False) -> None:
        self.faults = faults
        self.check_determinism = check_determinism
        self._runtimes: dict[str, ActorRuntime] = {}
        self._actors: dict[Address, ActorSpec] = {}
        self._properties: dict[str, Property] = {}
        self._init_network: list[Envelope] = []

    # Read-only accessors stay above the property() builder, which shadows the
    # builtin for the rest of the class body.
    @property
    def properties(self) -> tuple[Property, ...]:
        return tuple(self._properties.values())

    @property
    def addresses(self) -> tuple[Address, ...]:
        return tuple(sorted(self._actors))

    # ----------------------------
    # Construction
    # ----------------------------

    def machine(self, machine: Machine) -> "ActorModel":
        if not machine.kind:
            raise ConfigurationError(f"{type(machine).__name__} has no kind tag")
        if machine.kind in self._runtimes:
            raise ConfigurationError(f"duplicate machine kind {machine.kind!r}")
        self._runtimes[machine.kind] = ActorRuntime(machine, check_determinism=self.check_determinism)
        return self

    def actor(self, address: Address, kind: str, *configs: Any) -> "ActorModel":
        """
        Register an actor. Passing several configs makes one initial state per
        combination of alternatives across all actors.
        """
        if kind not in self._runtimes:
            raise ConfigurationError(f"unknown actor kind {kind!r} for address {address}")
        if address in self._actors:
            raise ConfigurationError(f"duplicate actor address {address}")
        self._actors[address] = ActorSpec(address, kind, tuple(configs) if configs else (None,))
        return self

    def property(
            self,
            expectation: Expectation,
            name: str,
            predicate: Callable[[GlobalState], bool],
    ) -> "ActorModel":
        if name in self._properties:
            raise ConfigurationError(f"duplicate property name {name!r}")
        self._properties[name] = Property(Expectation(expectation), name, predicate)
        return self

    def init_network(self, envelopes: Iterable[Envelope]) -> "ActorModel":
        self._init_network.extend(envelopes)
        return self

    def runtime_for(self, kind: str) -> ActorRuntime:
        try:
            return self._runtimes[kind]
        except KeyError:
            raise ConfigurationError(f"unknown actor kind {kind!r}") from None

    # ----------------------------
    # Semantics
    # ----------------------------

    def init_states(self) -> list[GlobalState]:
        if not self._actors:
            raise ConfigurationError("model has no actors")

        for env in self._init_network:
            self._check_address(env.src, f"initial envelope source {env!r}")
            self._check_address(env.dst, f"initial envelope destination {env!r}")

        specs = [self._actors[a] for a in self.addresses]
        states: list[GlobalState] = []
        for choice in itertools.product(*(spec.configs for spec in specs)):
            records: list[ActorRecord] = []
            started: list[tuple[Address, tuple[Effect, ...]]] = []
            for spec, config in zip(specs, choice):
                state, effects = self.runtime_for(spec.kind).start(spec.address, config)
                records.append(ActorRecord(spec.address, spec.kind, state))
                started.append((spec.address, effects))

            g = GlobalState(actors=tuple(records), network=Network(self._init_network), timers=Timers())
            for address, effects in started:
                g = self._apply_effects(g, address, effects, action=None)
            if g not in states:
                states.append(g)
        return states

    def actions(self, state: GlobalState) -> list[Action]:
        """Enabled actions, in a deterministic order."""
        out: list[Action] = []
        distinct = state.network.distinct()
        out.extend(Deliver(env) for env in distinct)
        if self.faults.duplicating:
            out.extend(Redeliver(env) for env in distinct)
        if self.faults.lossy:
            out.extend(Drop(env) for env in distinct)
        out.extend(FireTimer(h) for h in state.timers.pending())
        return out

    def next_state(self, state: GlobalState, action: Action) -> GlobalState | None:
        """Successor of state under action, or None if the action is not enabled."""
        if isinstance(action, FireTimer):
            handle = action.handle
            if handle not in state.timers:
                return None
            record = self._record(state, handle.owner, action)
            after = state.with_timers(state.timers.cancel(handle))
            new_state, effects = self.runtime_for(record.kind).timeout(handle.owner, record.state, handle)
            after = after.with_actor_state(handle.owner, new_state)
            return self._apply_effects(after, handle.owner, effects, action=action)

        env = action.envelope
        if env not in state.network:
            return None
        if isinstance(action, Redeliver) and not self.faults.duplicating:
            return None
        if isinstance(action, Drop):
            if not self.faults.lossy:
                return None
            return state.with_network(state.network.remove_one(env))

        record = self._record(state, env.dst, action)
        after = state
        if isinstance(action, Deliver):
            after = state.with_network(state.network.remove_one(env))
        new_state, effects = self.runtime_for(record.kind).deliver(env.dst, record.state, env.src, env.msg)
        after = after.with_actor_state(env.dst, new_state)
        return self._apply_effects(after, env.dst, effects, action=action)

    def checker(self, **kwargs: Any) -> "Checker":
        from actor_checker.engine import Checker

        return Checker(self, **kwargs)

    # ----------------------------
    # Helpers
    # ----------------------------

    def _check_address(self, address: Address, what: str) -> None:
        if address not in self._actors:
            raise ConfigurationError(f"{what} names unconfigured address {address}")

    def _record(self, state: GlobalState, address: Address, action: Action) -> ActorRecord:
        try:
            return state.actor(address)
        except KeyError:
            raise ConfigurationError(
                f"action targets unconfigured address {address}", state=state, action=action
            ) from None

    def _apply_effects(
            self,
            state: GlobalState,
            owner: Address,
            effects: Iterable[Effect],
            *,
            action: Action | None,
    ) -> GlobalState:
        network = state.network
        timers = state.timers
        for effect in effects:
            if effect.kind == EffectKind.SEND:
                if effect.dst not in self._actors:
                    raise ConfigurationError(
                        f"actor {owner} sent {effect.msg!r} to unconfigured address {effect.dst}",
                        state=state,
                        action=action,
                    )
                network = network.send(Envelope(owner, effect.dst, effect.msg))
            elif effect.kind == EffectKind.SET_TIMER:
                timers = timers.set(TimerHandle(owner, effect.timer))
            elif effect.kind == EffectKind.CANCEL_TIMER:
                timers = timers.cancel(TimerHandle(owner, effect.timer))
        if network is state.network and timers is state.timers:
            return state
        return GlobalState(actors=state.actors, network=network, timers=timers)
