"""Reactive dependency-graph evaluator."""

__all__ = [
    "MISSING",
    "PENDING",
    "UNSET",
    "Assigned",
    "CommitResult",
    "ComputeError",
    "Computer",
    "ComputerSpec",
    "Connection",
    "CycleError",
    "Dep",
    "DependencyGraph",
    "EventSpec",
    "Executor",
    "Failed",
    "Fresh",
    "GraphError",
    "InputSpec",
    "NodeId",
    "NodeKind",
    "NodeState",
    "Pending",
    "RecomputeError",
    "SpecificationError",
    "Unset",
    "UsageError",
    "ValueSpec",
    "ValueStore",
]

from ._errors import ComputeError, CycleError, GraphError, RecomputeError, SpecificationError, UsageError
from ._eval_engine import CommitResult
from ._executor import Executor
from ._graph import Connection, DependencyGraph, NodeId
from ._spec import MISSING, Computer, ComputerSpec, Dep, EventSpec, InputSpec, NodeKind, ValueSpec
from ._store import PENDING, UNSET, Assigned, Failed, Fresh, NodeState, Pending, Unset, ValueStore
