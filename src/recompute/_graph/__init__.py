"""Graph module providing dependency graph abstractions.

This module contains:
- DependencyGraph[T]: A generic, immutable directed graph
- topological_sort, find_cycle: Algorithms for ordering nodes and reporting cycles
- ComputerGraph: The merged graph over all computers of an executor
"""

from ._algorithms import find_cycle, topological_sort
from ._computer_graph import ComputerGraph, Connection, NodeId
from ._dependency_graph import DependencyGraph

__all__ = ["ComputerGraph", "Connection", "DependencyGraph", "NodeId", "find_cycle", "topological_sort"]
