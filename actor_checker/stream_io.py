from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Sequence

from actor_checker.models import (
    Action,
    ActorRecord,
    Deliver,
    Drop,
    FireTimer,
    GlobalState,
    Redeliver,
)
from actor_checker.network import Envelope, FaultModel, Network, TimerHandle, Timers
from actor_checker.snapshots import GraphSnapshot


class InputFormatError(ValueError):
    """Raised when a check spec, state snapshot or path fails validation."""


# ----------------------------
# Value codec
# ----------------------------

class Codec:
    """
    JSON-compatible encoding for message payloads and actor states.

    Only registered dataclasses and enums can be encoded, so decoding never
    instantiates arbitrary types. Plain scalars, lists, tuples and frozensets
    are handled structurally.
    """

    def __init__(self, types: Iterable[type] = ()) -> None:
        self._by_name: dict[str, type] = {}
        for cls in types:
            self.register(cls)

    def register(self, cls: type) -> type:
        if not (dataclasses.is_dataclass(cls) or issubclass(cls, Enum)):
            raise TypeError(f"{cls.__name__} is neither a dataclass nor an Enum")
        existing = self._by_name.get(cls.__name__)
        if existing is not None and existing is not cls:
            raise TypeError(f"type name {cls.__name__!r} already registered")
        self._by_name[cls.__name__] = cls
        return cls

    def encode(self, value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, Enum):
            return {"$enum": self._registered_name(value), "value": value.value}
        if isinstance(value, str):
            return value
        if isinstance(value, tuple):
            return {"$tuple": [self.encode(v) for v in value]}
        if isinstance(value, frozenset):
            items = [self.encode(v) for v in value]
            return {"$frozenset": sorted(items, key=lambda x: json.dumps(x, sort_keys=True))}
        if isinstance(value, list):
            return [self.encode(v) for v in value]
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return {
                "$type": self._registered_name(value),
                "fields": {f.name: self.encode(getattr(value, f.name)) for f in dataclasses.fields(value)},
            }
        raise TypeError(f"cannot encode value of type {type(value).__name__}: {value!r}")

    def decode(self, raw: Any, *, label: str = "value") -> Any:
        if raw is None or isinstance(raw, (bool, int, float, str)):
            return raw
        if isinstance(raw, list):
            return [self.decode(v, label=f"{label}[{i}]") for i, v in enumerate(raw)]
        if not isinstance(raw, dict):
            raise InputFormatError(f"{label} has unsupported JSON type {type(raw).__name__}")

        if "$tuple" in raw:
            items = raw["$tuple"]
            if not isinstance(items, list):
                raise InputFormatError(f"{label}.$tuple must be an array")
            return tuple(self.decode(v, label=f"{label}[{i}]") for i, v in enumerate(items))
        if "$frozenset" in raw:
            items = raw["$frozenset"]
            if not isinstance(items, list):
                raise InputFormatError(f"{label}.$frozenset must be an array")
            return frozenset(self.decode(v, label=f"{label}[{i}]") for i, v in enumerate(items))
        if "$enum" in raw:
            cls = self._lookup(raw["$enum"], label=label)
            try:
                return cls(raw.get("value"))
            except ValueError as e:
                raise InputFormatError(f"{label}: {raw.get('value')!r} is not a valid {cls.__name__}") from e
        if "$type" in raw:
            cls = self._lookup(raw["$type"], label=label)
            fields = raw.get("fields", {})
            if not isinstance(fields, dict):
                raise InputFormatError(f"{label}.fields must be an object")
            decoded = {k: self.decode(v, label=f"{label}.{k}") for k, v in fields.items()}
            try:
                return cls(**decoded)
            except TypeError as e:
                raise InputFormatError(f"{label}: cannot build {cls.__name__}: {e}") from e
        raise InputFormatError(f"{label} must carry one of $type, $enum, $tuple, $frozenset")

    def _registered_name(self, value: Any) -> str:
        name = type(value).__name__
        if self._by_name.get(name) is not type(value):
            raise TypeError(f"type {name!r} is not registered with this codec")
        return name

    def _lookup(self, name: object, *, label: str) -> type:
        if not isinstance(name, str) or name not in self._by_name:
            raise InputFormatError(f"{label} names unknown type {name!r}")
        return self._by_name[name]


# ----------------------------
# Global states, actions, paths
# ----------------------------

def dump_global_state(state: GlobalState, codec: Codec) -> dict[str, Any]:
    """Return a JSON-serializable snapshot of state."""
    return {
        "actors": [
            {"address": a.address, "kind": a.kind, "state": codec.encode(a.state)}
            for a in state.actors
        ],
        "network": [
            {"src": env.src, "dst": env.dst, "msg": codec.encode(env.msg), "count": n}
            for env, n in state.network.items()
        ],
        "timers": [
            {"owner": h.owner, "kind": codec.encode(h.kind)}
            for h in state.timers.pending()
        ],
    }


def load_global_state(raw: Any, codec: Codec) -> GlobalState:
    """Inverse of dump_global_state."""
    if not isinstance(raw, dict):
        raise InputFormatError("state must be an object")

    actors_raw = _require_list(raw, "actors", label="state")
    network_raw = _require_list(raw, "network", label="state")
    timers_raw = _require_list(raw, "timers", label="state")

    actors: list[ActorRecord] = []
    for i, item in enumerate(actors_raw):
        label = f"state.actors[{i}]"
        if not isinstance(item, dict):
            raise InputFormatError(f"{label} must be an object")
        address = _require_int(item, "address", label=label)
        kind = item.get("kind")
        if not isinstance(kind, str) or not kind.strip():
            raise InputFormatError(f"{label}.kind must be a non-empty string")
        actors.append(ActorRecord(address, kind, codec.decode(item.get("state"), label=f"{label}.state")))
    actors.sort(key=lambda a: a.address)

    addresses = {a.address for a in actors}
    if len(addresses) != len(actors):
        raise InputFormatError("state.actors has duplicate addresses")

    envelopes: list[Envelope] = []
    for i, item in enumerate(network_raw):
        label = f"state.network[{i}]"
        if not isinstance(item, dict):
            raise InputFormatError(f"{label} must be an object")
        src = _require_int(item, "src", label=label)
        dst = _require_int(item, "dst", label=label)
        count = item.get("count", 1)
        if not isinstance(count, int) or count < 1:
            raise InputFormatError(f"{label}.count must be an int >= 1")
        if src not in addresses or dst not in addresses:
            raise InputFormatError(f"{label} references an address with no actor")
        env = Envelope(src, dst, codec.decode(item.get("msg"), label=f"{label}.msg"))
        envelopes.extend([env] * count)

    handles: list[TimerHandle] = []
    for i, item in enumerate(timers_raw):
        label = f"state.timers[{i}]"
        if not isinstance(item, dict):
            raise InputFormatError(f"{label} must be an object")
        owner = _require_int(item, "owner", label=label)
        if owner not in addresses:
            raise InputFormatError(f"{label}.owner references an address with no actor")
        handles.append(TimerHandle(owner, codec.decode(item.get("kind"), label=f"{label}.kind")))

    return GlobalState(actors=tuple(actors), network=Network(envelopes), timers=Timers(handles))


_ENVELOPE_ACTIONS: dict[str, type] = {"Deliver": Deliver, "Redeliver": Redeliver, "Drop": Drop}


def dump_action(action: Action, codec: Codec) -> dict[str, Any]:
    if isinstance(action, FireTimer):
        return {"action": "FireTimer", "owner": action.handle.owner, "kind": codec.encode(action.handle.kind)}
    env = action.envelope
    return {
        "action": type(action).__name__,
        "src": env.src,
        "dst": env.dst,
        "msg": codec.encode(env.msg),
    }


def load_action(raw: Any, codec: Codec, *, label: str = "action") -> Action:
    if not isinstance(raw, dict):
        raise InputFormatError(f"{label} must be an object")
    name = raw.get("action")
    if name == "FireTimer":
        owner = _require_int(raw, "owner", label=label)
        return FireTimer(TimerHandle(owner, codec.decode(raw.get("kind"), label=f"{label}.kind")))
    cls = _ENVELOPE_ACTIONS.get(name) if isinstance(name, str) else None
    if cls is None:
        raise InputFormatError(f"{label}.action must be one of: Deliver, Redeliver, Drop, FireTimer")
    src = _require_int(raw, "src", label=label)
    dst = _require_int(raw, "dst", label=label)
    return cls(Envelope(src, dst, codec.decode(raw.get("msg"), label=f"{label}.msg")))


def dump_path(path: Sequence[Action], codec: Codec) -> list[dict[str, Any]]:
    return [dump_action(a, codec) for a in path]


def load_path(raw: Any, codec: Codec) -> list[Action]:
    if not isinstance(raw, list):
        raise InputFormatError("path must be a JSON array of actions")
    return [load_action(item, codec, label=f"path[{i}]") for i, item in enumerate(raw)]


def dump_graph(graph: GraphSnapshot, codec: Codec) -> dict[str, Any]:
    """JSON-serializable form of an explored state graph."""
    return {
        "init": list(graph.init),
        "complete_edges": graph.complete_edges,
        "nodes": [
            {"index": n.index, "depth": n.depth, "state": dump_global_state(n.state, codec)}
            for n in graph.nodes
        ],
        "edges": [
            {"src": e.src, "dst": e.dst, "action": dump_action(e.action, codec)}
            for e in graph.edges
        ],
    }


# ----------------------------
# Check spec (CLI configuration)
# ----------------------------

WORKLOADS = ("counter_supervisor", "stimulus")
COMPARISONS = ("at_least", "greater")


@dataclass(frozen=True)
class CheckSpecOptions:
    workers: int = 1
    max_depth: int | None = None
    check_determinism: bool = False


@dataclass(frozen=True)
class CheckSpec:
    workload: str
    threshold: int = 3
    comparison: str = "at_least"
    # counter_supervisor: amounts sent to the counter up front.
    increments: tuple[int, ...] = (3,)
    report: bool = True
    # stimulus: amount per pulse and number of pulses.
    amount: int = 3
    pulses: int = 1
    faults: FaultModel = FaultModel()
    options: CheckSpecOptions = CheckSpecOptions()


def load_check_spec(path: Path) -> CheckSpec:
    """Load and validate a check spec.

    Format:
      {
        "workload": "stimulus",
        "threshold": 3,
        "comparison": "at_least",
        "amount": 3,
        "pulses": 1,
        "faults": {"duplicating": false, "lossy": false},
        "options": {"workers": 4, "max_depth": 20}
      }

    counter_supervisor workloads take "increments" (array of ints) and
    "report" (bool) instead of "amount"/"pulses".
    """

    if not path.exists():
        raise InputFormatError(f"file not found: {path}")
    if not path.is_file():
        raise InputFormatError(f"not a file: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e

    if not isinstance(raw, dict):
        raise InputFormatError("root must be a JSON object")

    workload = raw.get("workload")
    if workload not in WORKLOADS:
        raise InputFormatError(f"workload must be one of: {', '.join(WORKLOADS)}")

    threshold = raw.get("threshold", 3)
    if not _is_int(threshold):
        raise InputFormatError("threshold must be an int")

    comparison = raw.get("comparison", "at_least")
    if comparison not in COMPARISONS:
        raise InputFormatError(f"comparison must be one of: {', '.join(COMPARISONS)}")

    increments_raw = raw.get("increments", [3])
    if not isinstance(increments_raw, list):
        raise InputFormatError("increments must be an array of ints")
    for i, n in enumerate(increments_raw):
        if not _is_int(n):
            raise InputFormatError(f"increments[{i}] must be an int")

    report = raw.get("report", True)
    if not isinstance(report, bool):
        raise InputFormatError("report must be a bool")

    amount = raw.get("amount", 3)
    if not _is_int(amount):
        raise InputFormatError("amount must be an int")

    pulses = raw.get("pulses", 1)
    if not _is_int(pulses) or pulses < 0:
        raise InputFormatError("pulses must be an int >= 0")

    return CheckSpec(
        workload=str(workload),
        threshold=int(threshold),
        comparison=str(comparison),
        increments=tuple(int(n) for n in increments_raw),
        report=report,
        amount=int(amount),
        pulses=int(pulses),
        faults=_parse_faults(raw.get("faults", {})),
        options=_parse_options(raw.get("options", {})),
    )


def _parse_faults(raw: object) -> FaultModel:
    if raw is None:
        return FaultModel()
    if not isinstance(raw, dict):
        raise InputFormatError("faults must be an object")
    for key in raw:
        if key not in {"duplicating", "lossy"}:
            raise InputFormatError(f"faults.{key} is not a known fault switch")
    duplicating = raw.get("duplicating", False)
    lossy = raw.get("lossy", False)
    if not isinstance(duplicating, bool):
        raise InputFormatError("faults.duplicating must be a bool")
    if not isinstance(lossy, bool):
        raise InputFormatError("faults.lossy must be a bool")
    return FaultModel(duplicating=duplicating, lossy=lossy)


def _parse_options(raw: object) -> CheckSpecOptions:
    if raw is None:
        return CheckSpecOptions()
    if not isinstance(raw, dict):
        raise InputFormatError("options must be an object")

    workers = raw.get("workers", 1)
    if not _is_int(workers) or workers < 1:
        raise InputFormatError("options.workers must be an int >= 1")

    max_depth = raw.get("max_depth", None)
    if max_depth is not None and (not _is_int(max_depth) or max_depth < 0):
        raise InputFormatError("options.max_depth must be an int >= 0 when provided")

    check_determinism = raw.get("check_determinism", False)
    if not isinstance(check_determinism, bool):
        raise InputFormatError("options.check_determinism must be a bool")

    return CheckSpecOptions(workers=int(workers), max_depth=max_depth, check_determinism=check_determinism)


def _is_int(value: object) -> bool:
    # bool is an int subclass; JSON true/false must not pass as numbers.
    return isinstance(value, int) and not isinstance(value, bool)


def _require_int(raw: dict[str, Any], key: str, *, label: str) -> int:
    value = raw.get(key)
    if not _is_int(value):
        raise InputFormatError(f"{label}.{key} must be an int")
    return int(value)


def _require_list(raw: dict[str, Any], key: str, *, label: str) -> list[Any]:
    value = raw.get(key)
    if not isinstance(value, list):
        raise InputFormatError(f"{label}.{key} must be an array")
    return value
