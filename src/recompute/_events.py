"""Event dispatch: turning a snapshot and a payload into input updates."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ._errors import ComputeError, UsageError
from ._spec import NodeKind

if TYPE_CHECKING:
    from ._spec import ComputerSpec

logger = logging.getLogger(__name__)


def dispatch_event(
    computer: str,
    spec: ComputerSpec,
    event_name: str,
    snapshot: Mapping[str, Any],
    payload: Any = None,
) -> dict[str, Any]:
    """Run an event handler and validate the updates it returns.

    Args:
        computer: Name the computer is registered under (for messages).
        spec: The computer's specification.
        event_name: Name of the event to run.
        snapshot: Full read-only snapshot of the computer.
        payload: Passed to handlers that accept a payload, ignored otherwise.

    Returns:
        Mapping from input name to new value, in the handler's order.

    Raises:
        UsageError: If the event is unknown, or the handler returns something
            other than a mapping of this computer's input names.
        ComputeError: If the handler raises.

    """
    try:
        event = spec.get_event(event_name)
    except KeyError:
        msg = f"Computer '{computer}' has no event named '{event_name}'."
        raise UsageError(msg) from None

    logger.debug("Dispatching %s.%s (payload=%r)", computer, event_name, payload)
    try:
        updates = event.handle(snapshot, payload) if event.takes_payload else event.handle(snapshot)
    except Exception as e:
        msg = f"handler of event '{event_name}' raised {type(e).__name__}: {e}"
        raise ComputeError(msg) from e

    if not isinstance(updates, Mapping):
        msg = f"Handler of event '{computer}.{event_name}' must return a mapping, got {type(updates).__name__}."
        raise UsageError(msg)

    for key in updates:
        kind = spec.kind_of(key) if isinstance(key, str) else None
        if kind is NodeKind.VALUE:
            msg = f"Event '{computer}.{event_name}' tried to set value '{key}'; values cannot be written."
            raise UsageError(msg)
        if kind is not NodeKind.INPUT:
            msg = f"Event '{computer}.{event_name}' returned '{key}', which is not an input of '{computer}'."
            raise UsageError(msg)

    return dict(updates)
