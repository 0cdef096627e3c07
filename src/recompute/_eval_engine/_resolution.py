"""Dependency resolution utilities for the evaluation engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from recompute._errors import ComputeError
from recompute._store import PENDING, Failed, Pending, Unset

if TYPE_CHECKING:
    from collections.abc import Mapping

    from recompute._graph import NodeId
    from recompute._spec import ValueSpec
    from recompute._store import ValueStore


def resolve_dependencies(
    node: NodeId,
    spec: ValueSpec,
    store: ValueStore,
) -> Mapping[str, Any] | Pending | Failed:
    """Build the snapshot a value is computed from.

    Given a value's declared dependencies, collect their current values from
    the store. A value is never invoked with partial data: if a dependency
    failed the value fails too, and if a dependency has no value yet the
    value stays pending.

    Args:
        node: The value being recomputed.
        spec: Its specification.
        store: The store of its computer.

    Returns:
        A read-only snapshot of exactly the dependencies, PENDING, or a
        Failed state naming the upstream failure.

    """
    pending = False
    for dep in spec.depends_on:
        match store.get(dep):
            case Failed(error):
                reason = f"dependency '{dep}' failed ({error.reason})"
                return Failed(ComputeError(reason, node=node))
            case Unset() | Pending():
                pending = True
            case _:
                pass

    if pending:
        return PENDING
    return store.snapshot(spec.depends_on)
