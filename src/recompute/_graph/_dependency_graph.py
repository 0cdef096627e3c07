"""Generic dependency graph abstraction."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ._algorithms import find_cycle, topological_sort


@dataclass(frozen=True, slots=True)
class DependencyGraph[T]:
    """An immutable directed graph of "depends on" edges, generic over the node type.

    successors[a] = {b} means "b depends on a". Every node has an entry,
    isolated nodes included.
    """

    _successors: dict[T, frozenset[T]] = field(default_factory=dict)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[T, T]], nodes: Iterable[T] = ()) -> DependencyGraph[T]:
        """Build a graph from (source, target) edges and optional isolated nodes.

        An edge (a, b) means "b depends on a". Nodes are kept in first-seen
        order, `nodes` first, which makes unkeyed traversals deterministic.

        Example:
            >>> graph = DependencyGraph.from_edges([("a", "b"), ("b", "c")])
            >>> graph.successors("a")
            frozenset({'b'})

        """
        successors: dict[T, set[T]] = {node: set() for node in nodes}
        for src, dst in edges:
            successors.setdefault(src, set()).add(dst)
            successors.setdefault(dst, set())
        return cls(_successors={k: frozenset(v) for k, v in successors.items()})

    def successors(self, node: T) -> frozenset[T]:
        """Get direct dependents of a node (nodes that depend on it)."""
        return self._successors.get(node, frozenset())

    def topological_order(self, key: Callable[[T], Any] | None = None) -> list[T]:
        """Return nodes in topological order (dependencies before dependents).

        Args:
            key: Optional tie-break among nodes that are ready at the same time.

        Raises:
            CycleError: If the graph contains a cycle.

        """
        return topological_sort(self._successors, key)

    def find_cycle(self, key: Callable[[T], Any] | None = None) -> list[T] | None:
        """Return a cycle of the graph, or None if it is acyclic."""
        return find_cycle(self._successors, key)

    def __len__(self) -> int:
        return len(self._successors)
