"""Graph algorithms for dependency graph operations."""

import heapq
import itertools
from collections import defaultdict, deque
from collections.abc import Callable, Collection, Hashable, Iterable, Mapping
from typing import Any

from recompute._errors import CycleError

_WHITE, _GRAY, _BLACK = 0, 1, 2


def _all_nodes[T: Hashable](successors: Mapping[T, Collection[T]]) -> list[T]:
    """All nodes of the graph, keys first, in first-seen order."""
    return list(dict.fromkeys(itertools.chain(successors, itertools.chain.from_iterable(successors.values()))))


def _ordered[T: Hashable](nodes: Iterable[T], key: Callable[[T], Any] | None) -> list[T]:
    return sorted(nodes, key=key) if key is not None else list(nodes)


def find_cycle[T: Hashable](
    successors: Mapping[T, Collection[T]],
    key: Callable[[T], Any] | None = None,
) -> list[T] | None:
    """Find a cycle in a graph.

    Args:
        successors: Mapping from node to collection of nodes that depend on it.
        key: Optional sort key making the traversal, and so the reported
            cycle, deterministic.

    Returns:
        The nodes of a cycle with the first node repeated at the end, or None
        if the graph is acyclic.

    Example:
        >>> find_cycle({"a": ["b"], "b": ["c"], "c": ["a"]})
        ['a', 'b', 'c', 'a']
        >>> find_cycle({"a": ["b"], "b": []}) is None
        True

    """
    color: dict[T, int] = {}

    for root in _ordered(_all_nodes(successors), key):
        if color.get(root, _WHITE) != _WHITE:
            continue
        color[root] = _GRAY
        path = [root]
        stack = [iter(_ordered(successors.get(root, ()), key))]
        while stack:
            for successor in stack[-1]:
                state = color.get(successor, _WHITE)
                if state == _GRAY:
                    return [*path[path.index(successor) :], successor]
                if state == _WHITE:
                    color[successor] = _GRAY
                    path.append(successor)
                    stack.append(iter(_ordered(successors.get(successor, ()), key)))
                    break
            else:
                color[path.pop()] = _BLACK
                stack.pop()

    return None


def topological_sort[T: Hashable](
    successors: Mapping[T, Collection[T]],
    key: Callable[[T], Any] | None = None,
) -> list[T]:
    """Sort a graph topologically (dependencies before dependents).

    Given a graph represented as a mapping from nodes to their successors
    (nodes that depend on them), return nodes in an order where each node
    appears before all nodes that depend on it.

    Args:
        successors: Mapping from node to collection of nodes that depend on it.
            An edge (a -> b) means "b depends on a".
        key: Optional tie-break. Among the nodes that are ready at the same
            time, the one with the smallest key comes first. Without a key,
            ready nodes are emitted in first-seen order.

    Returns:
        List of nodes in topological order.

    Raises:
        CycleError: If the graph contains a cycle. The error carries the cycle.

    Example:
        >>> # a -> b -> c means c depends on b, b depends on a
        >>> topological_sort({"a": ["b"], "b": ["c"], "c": []})
        ['a', 'b', 'c']

    """
    # Calculate in-degree for each node
    indegree: defaultdict[T, int] = defaultdict(int)
    for node, deps in successors.items():
        indegree[node] = indegree.get(node, 0)
        for dep in deps:
            indegree[dep] += 1

    order: list[T] = []

    if key is None:
        # Start with nodes that have no predecessors (in-degree 0)
        queue = deque([node for node, deg in indegree.items() if deg == 0])
        while queue:
            node = queue.popleft()
            order.append(node)
            for successor in successors.get(node, []):
                indegree[successor] -= 1
                if indegree[successor] == 0:
                    queue.append(successor)
    else:
        # The counter keeps heap entries comparable without comparing nodes
        counter = itertools.count()
        heap = [(key(node), next(counter), node) for node, deg in indegree.items() if deg == 0]
        heapq.heapify(heap)
        while heap:
            _, _, node = heapq.heappop(heap)
            order.append(node)
            for successor in successors.get(node, []):
                indegree[successor] -= 1
                if indegree[successor] == 0:
                    heapq.heappush(heap, (key(successor), next(counter), successor))

    if len(order) != len(indegree):
        remaining = {node: successors.get(node, ()) for node in indegree if indegree[node] > 0}
        cycle = find_cycle(remaining, key) or list(remaining)
        raise CycleError(cycle)

    return order
