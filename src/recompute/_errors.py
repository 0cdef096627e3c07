"""Exception hierarchy for recompute."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ._graph import NodeId


class RecomputeError(Exception):
    """Base class for all errors raised by recompute."""


class SpecificationError(RecomputeError):
    """A computer specification is malformed.

    Raised while building a specification: duplicate names, unresolved or
    missing dependencies, or an event handler with an unsupported arity.
    """


class GraphError(RecomputeError):
    """The merged dependency graph would become invalid.

    Raised by `add_computer` and `connect`. The graph is left unmodified.
    """


class CycleError(GraphError):
    """A dependency cycle was found.

    Attributes:
        cycle: The nodes forming the cycle, with the first node repeated at the end.

    """

    def __init__(self, cycle: Sequence[object]) -> None:
        self.cycle = tuple(cycle)
        rendered = " -> ".join(str(node) for node in self.cycle)
        super().__init__(f"Cycle detected: {rendered}")


class UsageError(RecomputeError):
    """An API call was used incorrectly.

    Unknown names, writes to values, frame protocol violations and malformed
    event results all raise this before any state is mutated.
    """


class ComputeError(RecomputeError):
    """A compute function or an event handler failed.

    The original exception, if any, is chained as ``__cause__``.

    Attributes:
        node: The node whose computation failed, if known.
        reason: Human readable description of the failure.

    """

    def __init__(self, reason: str, node: NodeId | None = None) -> None:
        self.node = node
        self.reason = reason
        super().__init__(f"{node}: {reason}" if node is not None else reason)
