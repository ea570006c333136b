from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from actor_checker.actor import NondeterminismError
from actor_checker.engine import Checker
from actor_checker.machines import WORKLOAD_TYPES, Comparison, counter_supervisor_model, stimulus_model
from actor_checker.model import ActorModel, ConfigurationError
from actor_checker.properties import PropertyEvaluationError
from actor_checker.reporting import render_discovery, render_trace
from actor_checker.stream_io import (
    CheckSpec,
    Codec,
    InputFormatError,
    dump_graph,
    dump_path,
    load_check_spec,
)
from actor_checker.trace import replay


def _demo_spec() -> CheckSpec:
    # Deterministic demo: one stimulus pulse of 3 against threshold 3.
    return CheckSpec(workload="stimulus", threshold=3, amount=3, pulses=1)


def _model_from_spec(spec: CheckSpec) -> ActorModel:
    comparison = Comparison(spec.comparison)
    if spec.workload == "counter_supervisor":
        return counter_supervisor_model(
            threshold=spec.threshold,
            comparison=comparison,
            increments=spec.increments,
            report=spec.report,
            faults=spec.faults,
            check_determinism=spec.options.check_determinism,
        )
    return stimulus_model(
        threshold=spec.threshold,
        comparison=comparison,
        amount=spec.amount,
        pulses=spec.pulses,
        faults=spec.faults,
        check_determinism=spec.options.check_determinism,
    )


def _load_spec(args: argparse.Namespace) -> CheckSpec:
    chosen = sum(1 for v in [bool(args.demo), bool(args.spec)] if v)
    if chosen != 1:
        raise InputFormatError("choose exactly one of --demo or --spec.")
    if args.demo:
        return _demo_spec()
    return load_check_spec(Path(str(args.spec)))


def _build_checker(args: argparse.Namespace, *, record_graph: bool = False) -> Checker:
    spec = _load_spec(args)
    workers = args.workers if args.workers is not None else spec.options.workers
    max_depth = args.max_depth if args.max_depth is not None else spec.options.max_depth
    model = _model_from_spec(spec)
    try:
        return model.checker(workers=int(workers), max_depth=max_depth, record_graph=record_graph)
    except ValueError as e:
        # Bounds given on the command line bypass the check spec validation.
        raise InputFormatError(str(e)) from e


def _run_checker(args: argparse.Namespace, *, record_graph: bool = False) -> Checker:
    checker = _build_checker(args, record_graph=record_graph)
    return checker.run()


def _cmd_check(args: argparse.Namespace) -> int:
    try:
        checker = _run_checker(args, record_graph=bool(args.graph_out))
    except InputFormatError as e:
        print(f"ERROR: invalid check spec: {e}", file=sys.stderr)
        return 2
    except (ConfigurationError, PropertyEvaluationError, NondeterminismError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    sys.stdout.write(checker.report())

    codec = Codec(WORKLOAD_TYPES)
    if args.graph_out:
        out = Path(str(args.graph_out))
        out.write_text(json.dumps(dump_graph(checker.graph(), codec), indent=2), encoding="utf-8")
    if args.paths_out:
        out = Path(str(args.paths_out))
        paths = {name: dump_path(d.path, codec) for name, d in checker.discoveries().items()}
        out.write_text(json.dumps(paths, indent=2), encoding="utf-8")

    try:
        checker.assert_properties()
    except AssertionError as e:
        print(f"FAIL: {e}", file=sys.stderr)
        return 1
    return 0


def _cmd_replay(args: argparse.Namespace) -> int:
    try:
        checker = _run_checker(args)
    except InputFormatError as e:
        print(f"ERROR: invalid check spec: {e}", file=sys.stderr)
        return 2
    except (ConfigurationError, PropertyEvaluationError, NondeterminismError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    name = str(args.property)
    d = checker.discovery(name)
    if d is None:
        verdict = checker.verdicts().get(name)
        detail = verdict.value if verdict is not None else "unknown property"
        print(f"ERROR: no discovery for property {name!r} ({detail})", file=sys.stderr)
        return 1

    sys.stdout.write(render_discovery(d) + "\n")
    sys.stdout.write(render_trace(replay(checker.model, d.path)))
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--demo", action="store_true", help="Check the built-in stimulus/counter/supervisor model.")
    p.add_argument("--spec", type=str, help="Check a model described by a check spec JSON.")
    p.add_argument("--workers", type=int, default=None, help="BFS worker threads (overrides the spec).")
    p.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Do not expand states deeper than this (overrides the spec). Unwitnessed properties become INCONCLUSIVE.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="actor_checker",
        description=(
            "Actor Model Checker: explicit-state exploration of actor networks.\n"
            "\n"
            "Enumerates every interleaving of message delivery and timer firing\n"
            "and reports invariant violations and property witnesses."
        ),
    )

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Explore a model and report every property.")
    _add_common(check)
    check.add_argument("--graph-out", type=str, default=None, help="Write the explored state graph as JSON.")
    check.add_argument("--paths-out", type=str, default=None, help="Write every discovery path as JSON.")
    check.set_defaults(func=_cmd_check)

    rep = sub.add_parser("replay", help="Print the witness trace of one property, state by state.")
    _add_common(rep)
    rep.add_argument("--property", type=str, required=True, help="Property name to replay.")
    rep.set_defaults(func=_cmd_replay)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
