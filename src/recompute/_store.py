"""Per-computer table of input and value states."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from ._errors import ComputeError, UsageError
from ._spec import NodeKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ._spec import ComputerSpec


@dataclass(frozen=True, slots=True)
class Unset:
    """An input without an initial value that was never assigned."""

    def __repr__(self) -> str:
        return "UNSET"


@dataclass(frozen=True, slots=True)
class Assigned:
    """An input holding a value."""

    value: Any


@dataclass(frozen=True, slots=True)
class Pending:
    """A value whose dependencies are not all available yet."""

    def __repr__(self) -> str:
        return "PENDING"


@dataclass(frozen=True, slots=True)
class Fresh:
    """A value computed from the latest snapshot of its dependencies."""

    value: Any


@dataclass(frozen=True, slots=True)
class Failed:
    """A node that failed, or whose upstream failed."""

    error: ComputeError


type NodeState = Unset | Assigned | Pending | Fresh | Failed

UNSET: Final = Unset()
PENDING: Final = Pending()


class ValueStore:
    """Current state of every input and value of one registered computer.

    Inputs start UNSET unless assigned, values start PENDING until the
    first recomputation. Only frame commits write to a store.
    """

    def __init__(self, computer: str, spec: ComputerSpec) -> None:
        self._computer = computer
        self._spec = spec
        self._states: dict[str, NodeState] = dict.fromkeys(spec.input_names, UNSET)
        self._states.update(dict.fromkeys(spec.value_names, PENDING))

    @property
    def computer(self) -> str:
        """Name of the computer this store belongs to."""
        return self._computer

    def _require(self, name: str, kind: NodeKind | None = None) -> None:
        actual = self._spec.kind_of(name)
        if actual is None:
            msg = f"Computer '{self._computer}' has no input or value named '{name}'."
            raise UsageError(msg)
        if kind is not None and actual is not kind:
            msg = f"'{name}' of computer '{self._computer}' is a {actual}, expected {kind}."
            raise UsageError(msg)

    def get(self, name: str) -> NodeState:
        """Current state of an input or a value."""
        self._require(name)
        return self._states[name]

    def set_input(self, name: str, value: Any) -> None:
        """Assign an input. Writing a value name is a UsageError."""
        self._require(name, NodeKind.INPUT)
        self._states[name] = Assigned(value)

    def fail_input(self, name: str, error: ComputeError) -> None:
        """Mark a connection-driven input whose delivery failed."""
        self._require(name, NodeKind.INPUT)
        self._states[name] = Failed(error)

    def set_value(self, name: str, state: Pending | Fresh | Failed) -> None:
        """Store the outcome of recomputing a value."""
        self._require(name, NodeKind.VALUE)
        self._states[name] = state

    def snapshot(self, names: Iterable[str] | None = None) -> Mapping[str, Any]:
        """Read-only view of name -> value for assigned inputs and fresh values.

        Args:
            names: Restrict the snapshot to these names. Defaults to every node.

        """
        selected = self._states.keys() if names is None else names
        data: dict[str, Any] = {}
        for name in selected:
            match self._states[name]:
                case Assigned(value) | Fresh(value):
                    data[name] = value
                case _:
                    pass
        return MappingProxyType(data)

    def errors(self) -> dict[str, ComputeError]:
        """Errors of failed nodes, by name."""
        return {name: state.error for name, state in self._states.items() if isinstance(state, Failed)}

    def states(self) -> dict[str, NodeState]:
        """A copy of every state, inputs first, in declaration order."""
        return dict(self._states)
