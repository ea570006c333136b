from __future__ import annotations

import queue
from abc import ABC, abstractmethod
from collections import deque
from enum import Enum
from threading import Event as ThreadEvent
from threading import Lock, Thread
from typing import Sequence

from actor_checker.event_sink import EventSink
from actor_checker.events import EventType
from actor_checker.model import ActorModel
from actor_checker.models import Action, GlobalState
from actor_checker.properties import Discovery, PropertyEvaluator, Verdict
from actor_checker.snapshots import Edge, GraphSnapshot, StateNode


class CheckerStatus(str, Enum):
    SEEDED = "SEEDED"
    EXPANDING = "EXPANDING"
    # Frontier empty: every reachable state was visited.
    EXHAUSTED = "EXHAUSTED"
    # At least one state with enabled actions sat at max_depth and was not expanded.
    DEPTH_BOUNDED = "DEPTH_BOUNDED"
    # An invariant was violated, or every property has a discovery.
    PROPERTY_DECIDED = "PROPERTY_DECIDED"
    CANCELLED = "CANCELLED"
    # An engine fault (configuration error, predicate exception) aborted the run.
    FAILED = "FAILED"


class StateArena:
    """
    Stores each distinct GlobalState once and refers to it by index.

    The visited index maps a state's structural hash to the arena indices
    sharing that hash. Each index also remembers its depth and the
    (parent index, action) that first reached it, which is enough to rebuild
    the shortest known path.
    """

    def __init__(self) -> None:
        self._states: list[GlobalState] = []
        self._parents: list[tuple[int, Action] | None] = []
        self._depths: list[int] = []
        self._by_hash: dict[int, list[int]] = {}

    def __len__(self) -> int:
        return len(self._states)

    def state(self, index: int) -> GlobalState:
        return self._states[index]

    def depth(self, index: int) -> int:
        return self._depths[index]

    def parent(self, index: int) -> tuple[int, Action] | None:
        return self._parents[index]

    def intern(self, state: GlobalState, parent: tuple[int, Action] | None) -> tuple[int, bool]:
        """Return (index, inserted). Existing states keep their first parent."""
        bucket = self._by_hash.setdefault(hash(state), [])
        for index in bucket:
            if self._states[index] == state:
                return index, False
        index = len(self._states)
        self._states.append(state)
        self._parents.append(parent)
        self._depths.append(0 if parent is None else self._depths[parent[0]] + 1)
        bucket.append(index)
        return index, True

    def path_to(self, index: int) -> list[Action]:
        path: list[Action] = []
        link = self._parents[index]
        while link is not None:
            parent, action = link
            path.append(action)
            link = self._parents[parent]
        path.reverse()
        return path


class FrontierStore(ABC):
    """
    Visited set + frontier behind one interface, so the expansion and
    property logic is the same for one worker and for many.
    """

    def __init__(self) -> None:
        self.arena = StateArena()
        self.edges: list[Edge] = []

    @abstractmethod
    def insert(self, state: GlobalState, parent: tuple[int, Action] | None) -> tuple[int, bool]:
        """Atomic check-and-insert; newly inserted states are pushed on the frontier."""

    @abstractmethod
    def pop(self) -> int | None: ...

    def done(self) -> None:
        """Mark the last popped index as fully expanded."""

    def add_edge(self, edge: Edge) -> None:
        self.edges.append(edge)

    def state(self, index: int) -> GlobalState:
        return self.arena.state(index)

    def depth(self, index: int) -> int:
        return self.arena.depth(index)

    def path_to(self, index: int) -> list[Action]:
        return self.arena.path_to(index)

    def __len__(self) -> int:
        return len(self.arena)


class SerialStore(FrontierStore):
    """Single-owner FIFO queue and plain set; deterministic visitation order."""

    def __init__(self) -> None:
        super().__init__()
        self._frontier: deque[int] = deque()

    def insert(self, state: GlobalState, parent: tuple[int, Action] | None) -> tuple[int, bool]:
        index, inserted = self.arena.intern(state, parent)
        if inserted:
            self._frontier.append(index)
        return index, inserted

    def pop(self) -> int | None:
        if not self._frontier:
            return None
        return self._frontier.popleft()


class ConcurrentStore(FrontierStore):
    """
    Shared by N worker threads. The arena is guarded by one lock so only the
    thread that wins the check-and-insert records a state.

    Newly inserted states wait in the next level until the current level is
    fully expanded, so a state's first insertion always comes from a parent
    at the smallest depth and depths match a serial run.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lock = Lock()
        self._frontier: queue.Queue[int | None] = queue.Queue()
        self._next: list[int] = []

    def insert(self, state: GlobalState, parent: tuple[int, Action] | None) -> tuple[int, bool]:
        with self._lock:
            index, inserted = self.arena.intern(state, parent)
            if inserted:
                self._next.append(index)
        return index, inserted

    def advance(self) -> int:
        """Move the next level onto the frontier; returns its size."""
        with self._lock:
            level, self._next = self._next, []
        for index in level:
            self._frontier.put(index)
        return len(level)

    def pop(self) -> int | None:
        return self._frontier.get()

    def done(self) -> None:
        self._frontier.task_done()

    def wait_idle(self) -> None:
        """Block until every enqueued state has been expanded (or skipped)."""
        self._frontier.join()

    def release(self, workers: int) -> None:
        for _ in range(workers):
            self._frontier.put(None)

    def add_edge(self, edge: Edge) -> None:
        with self._lock:
            self.edges.append(edge)

    def state(self, index: int) -> GlobalState:
        with self._lock:
            return self.arena.state(index)

    def depth(self, index: int) -> int:
        with self._lock:
            return self.arena.depth(index)

    def path_to(self, index: int) -> list[Action]:
        with self._lock:
            return self.arena.path_to(index)


class Checker:
    """
    Breadth-first explorer of every GlobalState reachable in an ActorModel.

    workers=1 expands states on one thread in FIFO order, so visitation order
    and discovery paths are reproducible. workers>1 shares a ConcurrentStore
    between threads and expands one BFS level at a time; the visited set and
    every state's depth are identical, paths may differ between equally
    short alternatives.

    max_depth bounds exploration: states at that depth are not expanded, and
    sometimes/eventually properties still unwitnessed are reported as
    INCONCLUSIVE rather than UNWITNESSED.
    """

    def __init__(
            self,
            model: ActorModel,
            *,
            workers: int = 1,
            max_depth: int | None = None,
            event_sink: EventSink | None = None,
            record_graph: bool = False,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1 (got {workers})")
        if max_depth is not None and max_depth < 0:
            raise ValueError(f"max_depth must be >= 0 (got {max_depth})")

        self.model = model
        self.workers = workers
        self.max_depth = max_depth
        self.event_sink = event_sink
        self.record_graph = record_graph
        self.status = CheckerStatus.SEEDED

        self._store: FrontierStore = SerialStore() if workers == 1 else ConcurrentStore()
        self._evaluator = PropertyEvaluator(model.properties)
        self._init: list[int] = []
        self._stop = ThreadEvent()
        self._cancelled = False
        self._decided = False
        self._depth_bounded = False
        self._error: Exception | None = None
        self._error_lock = Lock()
        self._thread: Thread | None = None
        self._started = False

    # ----------------------------
    # Run control
    # ----------------------------

    def spawn_bfs(self) -> "Checker":
        """Start exploring on a background thread; call join() to wait."""
        self._claim_start()
        self._thread = Thread(target=self._run_in_background, name="actor-checker", daemon=True)
        self._thread.start()
        return self

    def join(self) -> "Checker":
        """Wait for a spawned run; re-raises any engine fault."""
        if self._thread is None:
            raise RuntimeError("spawn_bfs() must be called before join()")
        self._thread.join()
        if self._error is not None:
            raise self._error
        return self

    def run(self) -> "Checker":
        """Explore on the calling thread (plus workers, if any) until done."""
        self._claim_start()
        self._run()
        return self

    def cancel(self) -> None:
        """Best-effort stop; all effects are declarative, so nothing leaks."""
        self._cancelled = True
        self._stop.set()

    def is_done(self) -> bool:
        return self.status not in (CheckerStatus.SEEDED, CheckerStatus.EXPANDING)

    def _claim_start(self) -> None:
        if self._started:
            raise RuntimeError("checker already started")
        self._started = True

    def _run_in_background(self) -> None:
        try:
            self._run()
        except Exception as e:
            self._fail(e)

    def _run(self) -> None:
        try:
            self._seed()
            self.status = CheckerStatus.EXPANDING
            self._emit(EventType.RUN_STARTED, workers=self.workers, max_depth=self.max_depth)
            if self.workers == 1:
                self._serial_loop()
            else:
                self._parallel_loop()
        except Exception as e:
            self._fail(e)
        self.status = self._final_status()
        self._emit(EventType.RUN_FINISHED, status=self.status.value, unique_states=len(self._store))
        if self._error is not None:
            raise self._error

    def _seed(self) -> None:
        for state in self.model.init_states():
            index, inserted = self._store.insert(state, None)
            if not inserted:
                continue
            self._init.append(index)
            self._emit(EventType.STATE_DISCOVERED, depth=0, index=index)
            self._check(index, state, None)

    def _serial_loop(self) -> None:
        while not self._stop.is_set():
            index = self._store.pop()
            if index is None:
                return
            self._expand(index)

    def _parallel_loop(self) -> None:
        store = self._store
        assert isinstance(store, ConcurrentStore)
        threads = [
            Thread(target=self._worker, name=f"actor-checker-bfs-{n}", daemon=True)
            for n in range(self.workers)
        ]
        for t in threads:
            t.start()
        while not self._stop.is_set() and store.advance():
            store.wait_idle()
        store.release(len(threads))
        for t in threads:
            t.join()

    def _worker(self) -> None:
        store = self._store
        while True:
            index = store.pop()
            if index is None:
                return
            try:
                # After a stop the queue is still drained so wait_idle() returns.
                if not self._stop.is_set():
                    self._expand(index)
            except Exception as e:
                self._fail(e)
            finally:
                store.done()

    def _fail(self, error: Exception) -> None:
        with self._error_lock:
            if self._error is None:
                self._error = error
        self._stop.set()

    def _final_status(self) -> CheckerStatus:
        if self._error is not None:
            return CheckerStatus.FAILED
        if self._cancelled:
            return CheckerStatus.CANCELLED
        if self._decided:
            return CheckerStatus.PROPERTY_DECIDED
        if self._depth_bounded:
            return CheckerStatus.DEPTH_BOUNDED
        return CheckerStatus.EXHAUSTED

    # ----------------------------
    # Expansion
    # ----------------------------

    def _expand(self, index: int) -> None:
        store = self._store
        state = store.state(index)
        depth = store.depth(index)
        actions = self.model.actions(state)

        if self.max_depth is not None and depth >= self.max_depth:
            if actions:
                self._depth_bounded = True
                self._emit(EventType.DEPTH_BOUND_HIT, depth=depth, index=index)
            return

        for action in actions:
            if self._stop.is_set():
                return
            successor = self.model.next_state(state, action)
            if successor is None:
                continue
            child, inserted = store.insert(successor, (index, action))
            if self.record_graph:
                store.add_edge(Edge(index, action, child))
            if not inserted:
                continue
            self._emit(EventType.STATE_DISCOVERED, depth=depth + 1, index=child)
            self._check(child, successor, action)

    def _check(self, index: int, state: GlobalState, action: Action | None) -> None:
        found = self._evaluator.evaluate(state, lambda: self._store.path_to(index), action=action)
        if not found:
            return
        for d in found:
            self._emit(
                EventType.PROPERTY_DECIDED,
                depth=len(d.path),
                property=d.name,
                classification=d.classification,
            )
        if self._evaluator.invariant_violated() or self._evaluator.all_decided():
            self._decided = True
            self._stop.set()

    def _emit(self, event_type: EventType, depth: int | None = None, **data: object) -> None:
        if self.event_sink is not None:
            self.event_sink.emit(event_type, depth=depth, **data)

    # ----------------------------
    # Results
    # ----------------------------

    @property
    def complete(self) -> bool:
        """True when the whole reachable state space was explored."""
        return self.status == CheckerStatus.EXHAUSTED

    def unique_state_count(self) -> int:
        return len(self._store)

    def max_depth_reached(self) -> int:
        arena = self._store.arena
        return max((arena.depth(i) for i in range(len(arena))), default=0)

    def states(self) -> list[GlobalState]:
        arena = self._store.arena
        return [arena.state(i) for i in range(len(arena))]

    def discoveries(self) -> dict[str, Discovery]:
        return self._evaluator.discoveries()

    def discovery(self, name: str) -> Discovery | None:
        return self._evaluator.discoveries().get(name)

    def verdicts(self) -> dict[str, Verdict]:
        return self._evaluator.verdicts(complete=self.complete)

    def graph(self) -> GraphSnapshot:
        """Explored states and edges as an immutable snapshot."""
        self._require_done()
        arena = self._store.arena
        nodes = tuple(StateNode(i, arena.depth(i), arena.state(i)) for i in range(len(arena)))
        if self.record_graph:
            edges = tuple(self._store.edges)
        else:
            tree: list[Edge] = []
            for i in range(len(arena)):
                link = arena.parent(i)
                if link is not None:
                    tree.append(Edge(link[0], link[1], i))
            edges = tuple(tree)
        return GraphSnapshot(init=tuple(self._init), nodes=nodes, edges=edges, complete_edges=self.record_graph)

    def report(self) -> str:
        from actor_checker.reporting import render_report

        return render_report(self)

    def assert_properties(self) -> None:
        """
        Fail unless every invariant was never violated and every
        sometimes/eventually property was witnessed.
        """
        from actor_checker.reporting import render_failures

        self._require_done()
        failures = self._evaluator.failures()
        if failures:
            raise AssertionError(render_failures(self, failures))

    def assert_discovery(self, name: str, expected_path: Sequence[Action]) -> None:
        """Fail unless property name was decided by exactly expected_path."""
        from actor_checker.reporting import render_path

        self._require_done()
        d = self.discovery(name)
        if d is None:
            raise AssertionError(f"no discovery for property {name!r} (status={self.status.value})")
        if list(d.path) != list(expected_path):
            raise AssertionError(
                f"discovery path for {name!r} does not match.\n"
                f"Expected:\n{render_path(expected_path)}\n"
                f"Actual:\n{render_path(d.path)}"
            )

    def assert_no_discovery(self, name: str) -> None:
        from actor_checker.reporting import render_discovery

        self._require_done()
        d = self.discovery(name)
        if d is not None:
            raise AssertionError(f"unexpected discovery:\n{render_discovery(d)}")

    def _require_done(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("checker is still running; call join() first")
