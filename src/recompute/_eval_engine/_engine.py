"""Core recomputation engine for frame commits."""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import ValidationError

from recompute._errors import ComputeError
from recompute._spec import NodeKind
from recompute._store import Failed, Fresh, Pending

from ._resolution import resolve_dependencies

if TYPE_CHECKING:
    from collections.abc import Mapping

    from recompute._graph import ComputerGraph, NodeId
    from recompute._store import ValueStore

    from ._frame import Frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommitResult:
    """Outcome of committing a frame.

    Compute failures do not abort a commit; they are contained per node and
    reported here. Callers inspect `errors` (or the executor's per-computer
    error maps) to see which values failed.

    Attributes:
        assigned: Inputs written by the frame, in assignment order.
        delivered: Inputs written through connections, in recomputation order.
        recomputed: Values recomputed, in recomputation order.
        errors: (node, error) for every node that failed during the commit.

    """

    assigned: tuple[NodeId, ...] = ()
    delivered: tuple[NodeId, ...] = ()
    recomputed: tuple[NodeId, ...] = ()
    errors: tuple[tuple[NodeId, ComputeError], ...] = ()

    @property
    def success(self) -> bool:
        """Check if the commit completed without compute errors."""
        return len(self.errors) == 0

    @property
    def failed(self) -> frozenset[NodeId]:
        """Nodes that failed during the commit."""
        return frozenset(node for node, _ in self.errors)


@dataclass(slots=True)
class _Pass:
    """Mutable bookkeeping of one recomputation pass."""

    graph: ComputerGraph
    heap: list[tuple[int, NodeId]] = field(default_factory=list)
    queued: set[NodeId] = field(default_factory=set)
    delivered: list[NodeId] = field(default_factory=list)
    recomputed: list[NodeId] = field(default_factory=list)
    errors: list[tuple[NodeId, ComputeError]] = field(default_factory=list)

    def enqueue(self, node: NodeId) -> None:
        if node not in self.queued:
            self.queued.add(node)
            heapq.heappush(self.heap, (self.graph.position(node), node))

    def enqueue_successors(self, node: NodeId) -> None:
        for successor in self.graph.successors(node):
            self.enqueue(successor)


def _recompute_value(node: NodeId, graph: ComputerGraph, store: ValueStore) -> Pending | Fresh | Failed:
    spec = graph.spec_of(node.computer).get_value(node.name)
    resolved = resolve_dependencies(node, spec, store)
    if isinstance(resolved, Pending | Failed):
        return resolved

    try:
        result = spec.compute(resolved)
    except Exception as e:  # noqa: BLE001 - any failure of user code is contained to this node
        error = ComputeError(f"{type(e).__name__}: {e}", node=node)
        error.__cause__ = e
        logger.warning("Computing %s failed: %s", node, error.reason)
        return Failed(error)

    logger.debug("Result for %s: %r", node, result)
    return Fresh(result)


def _fail_delivery(node: NodeId, error: ComputeError, stores: Mapping[str, ValueStore], state: _Pass) -> None:
    logger.warning("Delivery to %s failed: %s", node, error.reason)
    stores[node.computer].fail_input(node.name, error)
    state.errors.append((node, error))
    state.enqueue_successors(node)


def _deliver(node: NodeId, graph: ComputerGraph, stores: Mapping[str, ValueStore], state: _Pass) -> None:
    """Copy a connection source's result into its target input.

    A failed source, or a result the target's type rejects, fails the target
    and, through it, every value that depends on the target.
    """
    connection = graph.connection_into(node)
    if connection is None:
        return
    source = connection.source
    match stores[source.computer].get(source.name):
        case Fresh(delivered):
            pass
        case Failed(source_error):
            error = ComputeError(f"connection source {source} failed ({source_error.reason})", node=node)
            _fail_delivery(node, error, stores, state)
            return
        case other:
            # A pending source delivers nothing; the target keeps its state
            logger.debug("Skipping delivery to %s: %s is %r", node, source, other)
            return

    input_spec = graph.spec_of(node.computer).get_input(node.name)
    try:
        value = input_spec.coerce(delivered)
    except ValidationError as e:
        error = ComputeError(f"value delivered from {source} is invalid: {e}", node=node)
        error.__cause__ = e
        _fail_delivery(node, error, stores, state)
        return

    stores[node.computer].set_input(node.name, value)
    state.delivered.append(node)
    logger.debug("Delivered %s = %r", connection, value)
    state.enqueue_successors(node)


def commit(
    graph: ComputerGraph,
    stores: Mapping[str, ValueStore],
    frame: Frame,
    *,
    recompute_all: bool = False,
) -> CommitResult:
    """Apply a frame and recompute everything it affects.

    This function:
    1. Applies every pending assignment to its input
    2. Collects the dirty set: every node reachable from an assigned input
       through dependency or connection edges
    3. Recomputes dirty values once each, in ascending topological order,
       so later values see the results of earlier ones
    4. Delivers recomputed values into connected inputs within the same pass;
       a failed delivery fails the target input and its dependents

    Args:
        graph: The frozen merged graph.
        stores: Value store of each registered computer.
        frame: The frame to apply. Its assignments must already be validated.
        recompute_all: Treat every value as dirty (first materialization).

    Returns:
        CommitResult listing written inputs, recomputed values and errors.

    """
    state = _Pass(graph=graph)

    for node, value in frame.assignments.items():
        stores[node.computer].set_input(node.name, value)
        state.enqueue_successors(node)

    if recompute_all:
        for node in graph.topo_order():
            if graph.kind_of(node) is NodeKind.VALUE:
                state.enqueue(node)

    logger.debug("Committing %d assignment(s), %d node(s) dirty", len(frame), len(state.queued))

    while state.heap:
        _, node = heapq.heappop(state.heap)

        if graph.kind_of(node) is NodeKind.INPUT:
            _deliver(node, graph, stores, state)
            continue

        store = stores[node.computer]
        outcome = _recompute_value(node, graph, store)
        store.set_value(node.name, outcome)
        state.recomputed.append(node)
        if isinstance(outcome, Failed):
            state.errors.append((node, outcome.error))
        state.enqueue_successors(node)

    return CommitResult(
        assigned=tuple(frame.assignments),
        delivered=tuple(state.delivered),
        recomputed=tuple(state.recomputed),
        errors=tuple(state.errors),
    )
