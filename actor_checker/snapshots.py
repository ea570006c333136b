from __future__ import annotations

from dataclasses import dataclass

from actor_checker.models import Action, GlobalState


@dataclass(frozen=True)
class StateNode:
    index: int
    depth: int
    state: GlobalState


@dataclass(frozen=True)
class Edge:
    src: int
    action: Action
    dst: int


@dataclass(frozen=True)
class GraphSnapshot:
    """
    Read-only view of the explored state graph for external tooling.

    Without edge recording only the BFS tree edges (each state's discovering
    parent) are present.
    """

    init: tuple[int, ...]
    nodes: tuple[StateNode, ...]
    edges: tuple[Edge, ...]
    complete_edges: bool

    def node(self, index: int) -> StateNode:
        return self.nodes[index]

    def successors(self, index: int) -> list[Edge]:
        return [e for e in self.edges if e.src == index]
