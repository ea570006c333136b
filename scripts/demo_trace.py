from __future__ import annotations

from actor_checker.machines import stimulus_model
from actor_checker.reporting import render_discovery, render_trace
from actor_checker.trace import replay


def main() -> None:
    model = stimulus_model(threshold=3, amount=1, pulses=3)
    checker = model.checker().run()

    print(checker.report())

    d = checker.discovery("success")
    if d is None:
        print("success was never witnessed")
        return

    print(render_discovery(d))
    print()
    # Show every intermediate state along the witness path
    print(render_trace(replay(model, d.path)))


if __name__ == "__main__":
    main()
