from __future__ import annotations

from actor_checker.event_sink import InMemoryEventSink
from actor_checker.events import EventType
from actor_checker.machines import counter_supervisor_model, stimulus_model


def test_event_order_for_a_full_run() -> None:
    """
    Asserts causality ordering (not formatting):
      - RUN_STARTED comes after the initial state is discovered
      - RUN_FINISHED is last and carries the final status
      - one STATE_DISCOVERED per unique state
    """
    sink = InMemoryEventSink()
    checker = counter_supervisor_model().checker(event_sink=sink).run()

    types = [e.type for e in sink.events]
    assert types[0] == EventType.STATE_DISCOVERED
    assert types[1] == EventType.RUN_STARTED
    assert types[-1] == EventType.RUN_FINISHED
    assert sink.events[-1].data["status"] == "EXHAUSTED"
    assert len(sink.of_type(EventType.STATE_DISCOVERED)) == checker.unique_state_count()

    seqs = [e.seq for e in sink.events]
    assert seqs == list(range(1, len(seqs) + 1))


def test_property_decided_event_carries_path_length() -> None:
    sink = InMemoryEventSink()
    stimulus_model().checker(event_sink=sink).run()

    decided = sink.of_type(EventType.PROPERTY_DECIDED)
    assert len(decided) == 1
    assert decided[0].data["property"] == "success"
    assert decided[0].data["classification"] == "example"
    assert decided[0].depth == 5


def test_depth_bound_events_are_emitted() -> None:
    sink = InMemoryEventSink()
    stimulus_model(amount=1, pulses=3).checker(event_sink=sink, max_depth=1).run()

    hits = sink.of_type(EventType.DEPTH_BOUND_HIT)
    assert hits
    assert all(e.depth == 1 for e in hits)


def test_parallel_run_numbers_events_without_gaps() -> None:
    sink = InMemoryEventSink()
    checker = stimulus_model(amount=1, pulses=2).checker(event_sink=sink, workers=4).run()

    assert sorted(e.seq for e in sink.events) == list(range(1, len(sink.events) + 1))
    assert len(sink.of_type(EventType.STATE_DISCOVERED)) == checker.unique_state_count()
