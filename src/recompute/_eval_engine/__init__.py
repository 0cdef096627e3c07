"""Evaluation engine module for recompute.

This module applies frames to value stores and recomputes the affected
part of a frozen graph.

Key types:
- Frame: Pending input assignments of an open frame
- CommitResult: Structured result listing recomputed values and errors
- commit: Apply a frame and recompute its dirty set
"""

from ._engine import CommitResult, commit
from ._frame import Frame
from ._resolution import resolve_dependencies

__all__ = ["CommitResult", "Frame", "commit", "resolve_dependencies"]
