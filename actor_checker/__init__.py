"""
Actor Model Checker

Core modules:
- actor: transition-function contract and the runtime adapter that turns outputs into effects
- network: in-flight envelope multiset, pending timers, fault switches
- model: actor/property registration, initial states, enabled actions, successor states
- engine: breadth-first exploration (one worker or many) with state deduplication
- properties: invariant / sometimes / eventually evaluation and discoveries
- trace, reporting, stream_io: replay, human-readable output, JSON snapshots (no behavior changes)
"""
