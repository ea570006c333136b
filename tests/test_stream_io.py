from __future__ import annotations

import json
from pathlib import Path

import pytest

from actor_checker.machines import WORKLOAD_TYPES, Comparison, counter_supervisor_model, stimulus_model
from actor_checker.network import FaultModel
from actor_checker.stream_io import (
    Codec,
    InputFormatError,
    dump_global_state,
    dump_graph,
    dump_path,
    load_check_spec,
    load_global_state,
    load_path,
)

SAMPLES = Path(__file__).resolve().parents[1] / "samples"


def make_codec() -> Codec:
    return Codec(WORKLOAD_TYPES)


def test_global_state_round_trip_is_structurally_equal() -> None:
    codec = make_codec()
    checker = stimulus_model(amount=1, pulses=2).checker().run()

    for state in checker.states():
        raw = json.loads(json.dumps(dump_global_state(state, codec)))
        loaded = load_global_state(raw, codec)
        assert loaded == state
        assert hash(loaded) == hash(state)


def test_duplicate_envelopes_survive_round_trip() -> None:
    codec = make_codec()
    (s0,) = counter_supervisor_model(increments=(3, 3)).init_states()

    raw = dump_global_state(s0, codec)
    assert [e["count"] for e in raw["network"]] == [2, 1]
    assert load_global_state(raw, codec) == s0


def test_path_round_trip() -> None:
    codec = make_codec()
    d = stimulus_model().checker().run().discovery("success")

    raw = json.loads(json.dumps(dump_path(d.path, codec)))
    assert load_path(raw, codec) == list(d.path)


def test_graph_dump_is_json_serializable() -> None:
    codec = make_codec()
    checker = counter_supervisor_model().checker(record_graph=True).run()
    raw = json.loads(json.dumps(dump_graph(checker.graph(), codec)))

    assert raw["init"] == [0]
    assert len(raw["nodes"]) == checker.unique_state_count()
    assert raw["complete_edges"] is True
    assert all(e["action"]["action"] == "Deliver" for e in raw["edges"])


def test_codec_refuses_unregistered_types() -> None:
    codec = Codec()
    with pytest.raises(TypeError):
        codec.encode(Comparison.AT_LEAST)
    with pytest.raises(InputFormatError):
        codec.decode({"$type": "CounterState", "fields": {"counter": 1}})


def test_load_global_state_rejects_dangling_addresses() -> None:
    codec = make_codec()
    (s0,) = counter_supervisor_model().init_states()
    raw = dump_global_state(s0, codec)
    raw["network"][0]["dst"] = 42

    with pytest.raises(InputFormatError, match="network"):
        load_global_state(raw, codec)


def test_load_check_spec_sample_file() -> None:
    spec = load_check_spec(SAMPLES / "counter_supervisor_spec.json")
    assert spec.workload == "counter_supervisor"
    assert spec.increments == (1, 2)
    assert spec.options.workers == 4
    assert spec.options.check_determinism is True
    assert spec.faults == FaultModel()


@pytest.mark.parametrize(
    ("payload", "fragment"),
    [
        ({"workload": "nope"}, "workload"),
        ({"workload": "stimulus", "threshold": True}, "threshold"),
        ({"workload": "stimulus", "comparison": ">="}, "comparison"),
        ({"workload": "stimulus", "pulses": -1}, "pulses"),
        ({"workload": "counter_supervisor", "increments": [1, "2"]}, "increments[1]"),
        ({"workload": "stimulus", "faults": {"reordering": True}}, "faults.reordering"),
        ({"workload": "stimulus", "options": {"workers": 0}}, "options.workers"),
        ({"workload": "stimulus", "options": {"max_depth": -3}}, "options.max_depth"),
    ],
)
def test_load_check_spec_rejects_invalid_fields(tmp_path: Path, payload: dict, fragment: str) -> None:
    path = tmp_path / "spec.json"
    path.write_text(json.dumps(payload), encoding="utf-8")

    with pytest.raises(InputFormatError) as exc:
        load_check_spec(path)
    assert fragment in str(exc.value)


def test_load_check_spec_rejects_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "spec.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(InputFormatError, match="invalid JSON"):
        load_check_spec(path)
    with pytest.raises(InputFormatError, match="file not found"):
        load_check_spec(tmp_path / "missing.json")
