from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Iterator

Address = int


@dataclass(frozen=True, slots=True)
class Envelope:
    """One in-flight message instance. Immutable once created."""

    src: Address
    dst: Address
    msg: Any


@dataclass(frozen=True, slots=True)
class TimerHandle:
    """
    A logical timer owned by one actor.

    There is no wall clock: a pending timer is always eligible to fire.
    """

    owner: Address
    kind: Hashable


def envelope_sort_key(env: Envelope) -> tuple:
    # repr() is stable across processes, hash() of str is not.
    return (env.src, env.dst, type(env.msg).__name__, repr(env.msg))


def timer_sort_key(handle: TimerHandle) -> tuple:
    return (handle.owner, str(handle.kind))


class Network:
    """
    Immutable multiset of envelopes.

    Identical envelopes are counted, never merged. Equality and hashing depend
    only on content, so two networks built in a different send order compare
    equal.
    """

    __slots__ = ("_counts", "_hash")

    def __init__(self, envelopes: Iterable[Envelope] = ()) -> None:
        counts: dict[Envelope, int] = {}
        for env in envelopes:
            counts[env] = counts.get(env, 0) + 1
        self._counts = counts
        self._hash: int | None = None

    @classmethod
    def _from_counts(cls, counts: dict[Envelope, int]) -> "Network":
        net = cls.__new__(cls)
        net._counts = counts
        net._hash = None
        return net

    def send(self, env: Envelope) -> "Network":
        counts = dict(self._counts)
        counts[env] = counts.get(env, 0) + 1
        return Network._from_counts(counts)

    def remove_one(self, env: Envelope) -> "Network":
        """Return a network holding one fewer copy of env."""
        n = self._counts.get(env, 0)
        if n <= 0:
            raise ValueError(f"envelope not in flight: {env!r}")
        counts = dict(self._counts)
        if n == 1:
            del counts[env]
        else:
            counts[env] = n - 1
        return Network._from_counts(counts)

    def count(self, env: Envelope) -> int:
        return self._counts.get(env, 0)

    def distinct(self) -> list[Envelope]:
        """Distinct envelopes in canonical order."""
        return sorted(self._counts, key=envelope_sort_key)

    def iter_all(self) -> Iterator[Envelope]:
        """Every copy of every envelope, in canonical order."""
        for env in self.distinct():
            for _ in range(self._counts[env]):
                yield env

    def items(self) -> list[tuple[Envelope, int]]:
        return [(env, self._counts[env]) for env in self.distinct()]

    def __iter__(self) -> Iterator[Envelope]:
        return self.iter_all()

    def __contains__(self, env: object) -> bool:
        return env in self._counts

    def __len__(self) -> int:
        return sum(self._counts.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Network):
            return NotImplemented
        return self._counts == other._counts

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._counts.items()))
        return self._hash

    def __repr__(self) -> str:
        return f"Network({list(self.iter_all())!r})"


class Timers:
    """
    Immutable per-actor sets of pending timers.

    Setting a timer that is already pending is a no-op.
    """

    __slots__ = ("_pending", "_hash")

    def __init__(self, handles: Iterable[TimerHandle] = ()) -> None:
        pending: dict[Address, frozenset] = {}
        for h in handles:
            pending[h.owner] = pending.get(h.owner, frozenset()) | {h.kind}
        self._pending = pending
        self._hash: int | None = None

    @classmethod
    def _from_pending(cls, pending: dict[Address, frozenset]) -> "Timers":
        timers = cls.__new__(cls)
        timers._pending = pending
        timers._hash = None
        return timers

    def set(self, handle: TimerHandle) -> "Timers":
        current = self._pending.get(handle.owner, frozenset())
        if handle.kind in current:
            return self
        pending = dict(self._pending)
        pending[handle.owner] = current | {handle.kind}
        return Timers._from_pending(pending)

    def cancel(self, handle: TimerHandle) -> "Timers":
        current = self._pending.get(handle.owner, frozenset())
        if handle.kind not in current:
            return self
        pending = dict(self._pending)
        remaining = current - {handle.kind}
        if remaining:
            pending[handle.owner] = remaining
        else:
            del pending[handle.owner]
        return Timers._from_pending(pending)

    def for_owner(self, owner: Address) -> frozenset:
        return self._pending.get(owner, frozenset())

    def pending(self) -> list[TimerHandle]:
        """All pending timers ordered by owner, then kind."""
        handles = [TimerHandle(owner, kind) for owner, kinds in self._pending.items() for kind in kinds]
        return sorted(handles, key=timer_sort_key)

    def __contains__(self, handle: object) -> bool:
        if not isinstance(handle, TimerHandle):
            return False
        return handle.kind in self._pending.get(handle.owner, frozenset())

    def __len__(self) -> int:
        return sum(len(kinds) for kinds in self._pending.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Timers):
            return NotImplemented
        return self._pending == other._pending

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._pending.items()))
        return self._hash

    def __repr__(self) -> str:
        return f"Timers({self.pending()!r})"


@dataclass(frozen=True, slots=True)
class FaultModel:
    """
    Network fault injection switches.

    Delivery always consumes exactly one copy of the envelope. These flags only
    add extra, separately scheduled actions:
      - duplicating: Redeliver(envelope) delivers while keeping the copy in flight
      - lossy: Drop(envelope) removes a copy without delivering it
    """

    duplicating: bool = False
    lossy: bool = False
