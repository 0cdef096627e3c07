"""Specification layer for recompute.

Pure, immutable descriptions of computers consumed by the executor:
- InputSpec, ValueSpec, EventSpec: the nodes and events of one computer
- ComputerSpec: a validated collection of them
- Computer: decorator-based builder producing a ComputerSpec
"""

from ._builder import Computer, Dep, infer_dependencies
from ._computer_spec import ComputerSpec
from ._node_spec import MISSING, EventSpec, InputSpec, NodeKind, ValueSpec

__all__ = [
    "MISSING",
    "Computer",
    "ComputerSpec",
    "Dep",
    "EventSpec",
    "InputSpec",
    "NodeKind",
    "ValueSpec",
    "infer_dependencies",
]
