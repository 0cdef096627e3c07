"""Merged dependency graph over all computers registered with an executor."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from recompute._errors import CycleError, GraphError, UsageError
from recompute._spec import NodeKind

from ._dependency_graph import DependencyGraph

if TYPE_CHECKING:
    from recompute._spec import ComputerSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, order=True)
class NodeId:
    """Identifies an input or a value of a registered computer."""

    computer: str
    name: str

    def __str__(self) -> str:
        return f"{self.computer}.{self.name}"


@dataclass(frozen=True, slots=True)
class Connection:
    """Wires a value of one computer into an input of another.

    Attributes:
        source: The value whose results are delivered.
        target: The input receiving them.

    """

    source: NodeId
    target: NodeId

    def __str__(self) -> str:
        return f"{self.source} -> {self.target}"


@dataclass(frozen=True, slots=True)
class _Built:
    graph: DependencyGraph[NodeId]
    order: tuple[NodeId, ...]
    position: dict[NodeId, int]


class ComputerGraph:
    """A single DAG spanning every registered computer and connection.

    Nodes are the inputs and values of each computer; edges are value
    dependencies and connections. Every mutation builds and checks a
    candidate graph first and only replaces the current one when it is
    acyclic, so a failing call leaves the graph unmodified.

    When several orders are valid, nodes are ordered by computer
    registration order, then by declaration order within the computer
    (inputs before values).
    """

    def __init__(self) -> None:
        self._specs: dict[str, ComputerSpec] = {}
        self._connections: dict[NodeId, Connection] = {}
        self._built = _Built(graph=DependencyGraph(), order=(), position={})
        self._frozen = False

    # ---- construction -------------------------------------------------

    def add_computer(self, name: str, spec: ComputerSpec) -> None:
        """Insert the inputs and values of `spec` as computer `name`.

        Raises:
            UsageError: If the name is taken or the graph is frozen.
            CycleError: If the computer's values depend on each other cyclically.

        """
        self._check_not_frozen()
        if name in self._specs:
            msg = f"Computer '{name}' is already registered."
            raise UsageError(msg)

        specs = {**self._specs, name: spec}
        self._built = self._build(specs, self._connections)
        self._specs = specs
        logger.debug("Added computer '%s' (%d nodes)", name, len(spec.inputs) + len(spec.values))

    def connect(self, source: NodeId, target: NodeId) -> Connection:
        """Wire value `source` into input `target`.

        Raises:
            UsageError: If a name is unknown, the source is not a value, the
                target is not an input, or the graph is frozen.
            GraphError: If the target input already has a connection.
            CycleError: If the connection closes a cycle.

        """
        self._check_not_frozen()
        if self.kind_of(source) is not NodeKind.VALUE:
            msg = f"Connection source '{source}' must be a value of a registered computer."
            raise UsageError(msg)
        if self.kind_of(target) is not NodeKind.INPUT:
            msg = f"Connection target '{target}' must be an input of a registered computer."
            raise UsageError(msg)
        if (existing := self._connections.get(target)) is not None:
            msg = f"Duplicate connection: input '{target}' is already connected to '{existing.source}'."
            raise GraphError(msg)

        connection = Connection(source=source, target=target)
        connections = {**self._connections, target: connection}
        self._built = self._build(self._specs, connections)
        self._connections = connections
        logger.debug("Connected %s", connection)
        return connection

    def freeze(self) -> None:
        """Forbid further computers and connections."""
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = "The graph is frozen; computers and connections must be added before initialize()."
            raise UsageError(msg)

    @staticmethod
    def _build(specs: dict[str, ComputerSpec], connections: dict[NodeId, Connection]) -> _Built:
        rank: dict[NodeId, tuple[int, int]] = {}
        edges: list[tuple[NodeId, NodeId]] = []

        for computer_index, (computer, spec) in enumerate(specs.items()):
            for node_index, node_name in enumerate(spec.node_names()):
                rank[NodeId(computer, node_name)] = (computer_index, node_index)
            for value in spec.values:
                edges.extend((NodeId(computer, dep), NodeId(computer, value.name)) for dep in value.depends_on)

        edges.extend((connection.source, connection.target) for connection in connections.values())

        graph = DependencyGraph.from_edges(edges, nodes=rank)
        if (cycle := graph.find_cycle(key=rank.__getitem__)) is not None:
            raise CycleError(cycle)
        order = tuple(graph.topological_order(key=rank.__getitem__))
        logger.debug("Built graph: %d nodes, %d connections", len(graph), len(connections))
        return _Built(graph=graph, order=order, position={node: i for i, node in enumerate(order)})

    # ---- queries ------------------------------------------------------

    @property
    def frozen(self) -> bool:
        """Whether the graph no longer accepts computers and connections."""
        return self._frozen

    @property
    def computers(self) -> tuple[str, ...]:
        """Registered computer names in registration order."""
        return tuple(self._specs)

    @property
    def connections(self) -> tuple[Connection, ...]:
        """Declared connections in declaration order."""
        return tuple(self._connections.values())

    def spec_of(self, computer: str) -> ComputerSpec:
        """Get the specification of a registered computer.

        Raises:
            UsageError: If the computer is not registered.

        """
        try:
            return self._specs[computer]
        except KeyError:
            msg = f"Unknown computer '{computer}'."
            raise UsageError(msg) from None

    def kind_of(self, node: NodeId) -> NodeKind | None:
        """Return the kind of a node, or None if it does not exist."""
        spec = self._specs.get(node.computer)
        return spec.kind_of(node.name) if spec is not None else None

    def topo_order(self) -> tuple[NodeId, ...]:
        """Total order over all nodes consistent with every edge."""
        return self._built.order

    def position(self, node: NodeId) -> int:
        """Index of `node` in the topological order."""
        return self._built.position[node]

    def successors(self, node: NodeId) -> frozenset[NodeId]:
        """Nodes that directly depend on `node`, including connection targets."""
        return self._built.graph.successors(node)

    def connection_into(self, target: NodeId) -> Connection | None:
        """The connection driving input `target`, if any."""
        return self._connections.get(target)

    def __contains__(self, node: NodeId) -> bool:
        return self.kind_of(node) is not None
