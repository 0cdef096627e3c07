"""Pending input assignments of an open frame."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from recompute._graph import NodeId


@dataclass(slots=True)
class Frame:
    """An uncommitted batch of input assignments.

    Nothing in a frame is visible in any value store until it is committed.
    Assigning the same input twice keeps the last value.
    """

    assignments: dict[NodeId, Any] = field(default_factory=dict)

    def assign(self, node: NodeId, value: Any) -> None:
        """Record a pending assignment, replacing any earlier one for `node`."""
        self.assignments[node] = value

    def __len__(self) -> int:
        return len(self.assignments)
