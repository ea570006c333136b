from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Union

from actor_checker.network import Address, Envelope, Network, TimerHandle, Timers


@dataclass(frozen=True, slots=True)
class ActorRecord:
    address: Address
    # Tag naming the machine kind that owns this state (e.g. "counter").
    kind: str
    state: Any


@dataclass(frozen=True, slots=True)
class GlobalState:
    """
    Snapshot of every actor, every in-flight envelope and every pending timer.

    Values are never mutated; each transition builds a fresh GlobalState.
    actors is sorted by address so equality is structural.
    """

    actors: tuple[ActorRecord, ...]
    network: Network = Network()
    timers: Timers = Timers()

    def addresses(self) -> tuple[Address, ...]:
        return tuple(a.address for a in self.actors)

    def actor(self, address: Address) -> ActorRecord:
        for a in self.actors:
            if a.address == address:
                return a
        raise KeyError(address)

    def state_of(self, address: Address) -> Any:
        return self.actor(address).state

    def with_actor_state(self, address: Address, state: Any) -> "GlobalState":
        actors = tuple(
            replace(a, state=state) if a.address == address else a
            for a in self.actors
        )
        return replace(self, actors=actors)

    def with_network(self, network: Network) -> "GlobalState":
        return replace(self, network=network)

    def with_timers(self, timers: Timers) -> "GlobalState":
        return replace(self, timers=timers)


@dataclass(frozen=True, slots=True)
class Deliver:
    """Deliver one copy of envelope and remove it from the network."""

    envelope: Envelope


@dataclass(frozen=True, slots=True)
class Redeliver:
    """Deliver envelope but leave it in flight (duplicating network only)."""

    envelope: Envelope


@dataclass(frozen=True, slots=True)
class Drop:
    """Remove one copy of envelope without delivering it (lossy network only)."""

    envelope: Envelope


@dataclass(frozen=True, slots=True)
class FireTimer:
    handle: TimerHandle


Action = Union[Deliver, Redeliver, Drop, FireTimer]


def action_owner(action: Action) -> Address:
    """Address of the actor whose handler runs for this action."""
    if isinstance(action, FireTimer):
        return action.handle.owner
    return action.envelope.dst


def describe_action(action: Action) -> str:
    if isinstance(action, FireTimer):
        return f"FireTimer(owner={action.handle.owner}, kind={action.handle.kind!r})"
    env = action.envelope
    return f"{type(action).__name__}({env.src} -> {env.dst}: {env.msg!r})"
