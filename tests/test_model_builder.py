from __future__ import annotations

import importlib

import actor_checker
from actor_checker.machines import COUNTER_ADDR, STIMULUS_ADDR, SUPERVISOR_ADDR, counter_supervisor_model, stimulus_model
from actor_checker.model import ActorModel
from actor_checker.properties import Expectation


def test_package_and_modules_import() -> None:
    assert actor_checker.__doc__
    for name in ("model", "engine", "machines", "trace", "reporting", "stream_io", "__main__"):
        importlib.import_module(f"actor_checker.{name}")


def test_property_builder_and_read_only_accessors_coexist() -> None:
    """
    ActorModel.property() registers a property while .properties and
    .addresses stay plain read-only attributes.
    """
    model = counter_supervisor_model()

    assert [p.name for p in model.properties] == [
        "counter_non_negative",
        "success_implies_threshold",
        "success",
    ]
    assert model.addresses == (SUPERVISOR_ADDR, COUNTER_ADDR)
    assert stimulus_model().addresses == (SUPERVISOR_ADDR, COUNTER_ADDR, STIMULUS_ADDR)


def test_property_builder_returns_the_model() -> None:
    model = ActorModel()
    assert model.properties == ()
    assert model.addresses == ()

    same = model.property(Expectation.SOMETIMES, "anything", lambda s: True)
    assert same is model
    assert [(p.expectation, p.name) for p in model.properties] == [(Expectation.SOMETIMES, "anything")]
