"""The executor: computers, connections, frames and events."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ._errors import UsageError
from ._eval_engine import CommitResult, Frame, commit
from ._events import dispatch_event
from ._graph import ComputerGraph, NodeId
from ._spec import NodeKind
from ._store import ValueStore

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from ._errors import ComputeError
    from ._graph import Connection
    from ._spec import ComputerSpec
    from ._store import NodeState

logger = logging.getLogger(__name__)


class Executor:
    """Evaluates a set of connected computers.

    An executor is an explicitly constructed value with no shared global
    state. It is not thread safe; callers serialize access to one instance,
    while independent instances can be used in parallel.

    Lifecycle:
    1. Register computers with `add_computer` and wire them with `connect`
    2. Call `initialize` once; this freezes the graph and computes everything
    3. Change inputs through frames (`start_frame`, `set_input`,
       `commit_frame`, or the `frame()` context manager) and `apply_event`

    Example:
        >>> executor = Executor()
        >>> executor.add_computer(calc_spec)
        >>> executor.initialize()
        >>> with executor.frame():
        ...     executor.set_input("calc", "x", 42)
        >>> executor.current_values("calc")
        {'x': 42, 'y': 0, 'sum': 42}

    """

    def __init__(self) -> None:
        self._graph = ComputerGraph()
        self._stores: dict[str, ValueStore] = {}
        self._initial: dict[NodeId, Any] = {}
        self._frame: Frame | None = None
        self._initialized = False

    # ---- building ------------------------------------------------------

    def add_computer(
        self,
        spec: ComputerSpec,
        name: str | None = None,
        initial_overrides: Mapping[str, Any] | None = None,
    ) -> str:
        """Register a computer.

        Args:
            spec: The computer's specification.
            name: Instance name; defaults to the specification's name.
            initial_overrides: Initial values replacing (or supplying) the
                declared ones, by input name.

        Returns:
            The name the computer is registered under.

        Raises:
            UsageError: If the name is taken, an override names something other
                than an input, an override value is invalid, or the executor is
                already initialized.
            CycleError: If the computer's values depend on each other cyclically.

        """
        computer = name if name is not None else spec.name

        initial: dict[NodeId, Any] = {
            NodeId(computer, input_spec.name): input_spec.initial for input_spec in spec.inputs if input_spec.has_initial
        }
        for input_name, value in (initial_overrides or {}).items():
            if spec.kind_of(input_name) is not NodeKind.INPUT:
                msg = f"Initial override '{input_name}' is not an input of computer '{computer}'."
                raise UsageError(msg)
            initial[NodeId(computer, input_name)] = self._coerce(spec, computer, input_name, value)

        self._graph.add_computer(computer, spec)
        self._stores[computer] = ValueStore(computer, spec)
        self._initial.update(initial)
        logger.debug("Registered computer '%s' from specification '%s'", computer, spec.name)
        return computer

    def connect(self, source: tuple[str, str], target: tuple[str, str]) -> Connection:
        """Wire value ``source = (computer, value)`` into input ``target = (computer, input)``.

        Raises:
            UsageError: If a name is unknown, the source is not a value or the
                target is not an input, or the executor is already initialized.
            GraphError: If the target already has a connection.
            CycleError: If the connection closes a cycle.

        """
        return self._graph.connect(NodeId(*source), NodeId(*target))

    def initialize(self) -> CommitResult:
        """Freeze the graph and materialize every value.

        Every input with a declared or overridden initial value is assigned in
        one frame, and every value is computed once.

        Raises:
            UsageError: If called twice.

        """
        if self._initialized:
            msg = "Executor is already initialized."
            raise UsageError(msg)

        self._graph.freeze()
        self._initialized = True
        logger.debug("Recomputation order: %s", ", ".join(str(node) for node in self._graph.topo_order()))

        frame = Frame(assignments=dict(self._initial))
        return commit(self._graph, self._stores, frame, recompute_all=True)

    # ---- frames ----------------------------------------------------------

    def start_frame(self) -> None:
        """Open a frame.

        Raises:
            UsageError: If a frame is already open or the executor is not initialized.

        """
        self._require_initialized()
        if self._frame is not None:
            msg = "A frame is already open; commit or discard it first."
            raise UsageError(msg)
        self._frame = Frame()

    def set_input(self, computer: str, input_name: str, value: Any) -> None:
        """Record an input assignment in the open frame (last write wins).

        Raises:
            UsageError: If no frame is open, the computer or input is unknown,
                `input_name` names a value or a connected input, or the value
                does not match the input's type.

        """
        if self._frame is None:
            msg = "No frame is open; call start_frame() first."
            raise UsageError(msg)
        node, coerced = self._check_assignment(computer, input_name, value)
        self._frame.assign(node, coerced)

    def commit_frame(self) -> CommitResult:
        """Apply the open frame and recompute the values it affects.

        Raises:
            UsageError: If no frame is open.

        """
        if self._frame is None:
            msg = "No frame is open; call start_frame() first."
            raise UsageError(msg)
        frame, self._frame = self._frame, None
        return commit(self._graph, self._stores, frame)

    def discard_frame(self) -> None:
        """Drop the open frame without applying it.

        Raises:
            UsageError: If no frame is open.

        """
        if self._frame is None:
            msg = "No frame is open."
            raise UsageError(msg)
        self._frame = None

    @contextmanager
    def frame(self) -> Iterator[Executor]:
        """Context manager for a frame.

        The frame is committed when the block exits normally and discarded if
        it raises. The commit result is not returned; use `commit_frame` when
        it is needed.

        Usage:
            with executor.frame():
                executor.set_input("calc", "x", 1)
                executor.set_input("calc", "y", 2)
                # recomputation happens here, once
        """
        self.start_frame()
        try:
            yield self
        except BaseException:
            self._frame = None
            raise
        self.commit_frame()

    def apply_event(self, computer: str, event_name: str, payload: Any = None) -> CommitResult:
        """Run an event handler and apply its updates as one frame.

        Raises:
            UsageError: If the computer or event is unknown, a frame is open,
                or the handler's result is not a mapping of valid input updates.
            ComputeError: If the handler raises.

        """
        self._require_initialized()
        if self._frame is not None:
            msg = "Cannot apply an event while a frame is open."
            raise UsageError(msg)

        spec = self._graph.spec_of(computer)
        updates = dispatch_event(computer, spec, event_name, self._stores[computer].snapshot(), payload)

        # Validate everything before opening the frame so a bad update changes nothing
        frame = Frame()
        for input_name, value in updates.items():
            node, coerced = self._check_assignment(computer, input_name, value)
            frame.assign(node, coerced)

        if not frame.assignments:
            logger.debug("Event %s.%s returned no updates", computer, event_name)
            return CommitResult()
        return commit(self._graph, self._stores, frame)

    # ---- reading ---------------------------------------------------------

    def current_values(self, computer: str) -> dict[str, Any]:
        """Assigned inputs and fresh values of a computer.

        Unset inputs, pending values and failed nodes are absent; see `errors`.
        """
        return dict(self._store_of(computer).snapshot())

    def errors(self, computer: str) -> dict[str, ComputeError]:
        """Errors of the failed nodes of a computer, by name."""
        return self._store_of(computer).errors()

    def state(self, computer: str, name: str) -> NodeState:
        """Current state of one input or value."""
        return self._store_of(computer).get(name)

    def states(self, computer: str) -> dict[str, NodeState]:
        """Current state of every input and value of a computer."""
        return self._store_of(computer).states()

    def order(self) -> tuple[NodeId, ...]:
        """Global recomputation order."""
        return self._graph.topo_order()

    def spec_of(self, computer: str) -> ComputerSpec:
        """Specification a computer was registered with."""
        return self._graph.spec_of(computer)

    @property
    def computers(self) -> tuple[str, ...]:
        """Registered computer names in registration order."""
        return self._graph.computers

    @property
    def connections(self) -> tuple[Connection, ...]:
        """Declared connections in declaration order."""
        return self._graph.connections

    @property
    def is_initialized(self) -> bool:
        """Whether `initialize` has run."""
        return self._initialized

    @property
    def frame_open(self) -> bool:
        """Whether a frame is currently open."""
        return self._frame is not None

    # ---- helpers ---------------------------------------------------------

    def _require_initialized(self) -> None:
        if not self._initialized:
            msg = "Executor is not initialized; call initialize() first."
            raise UsageError(msg)

    def _store_of(self, computer: str) -> ValueStore:
        try:
            return self._stores[computer]
        except KeyError:
            msg = f"Unknown computer '{computer}'."
            raise UsageError(msg) from None

    @staticmethod
    def _coerce(spec: ComputerSpec, computer: str, input_name: str, value: Any) -> Any:
        try:
            return spec.get_input(input_name).coerce(value)
        except ValidationError as e:
            msg = f"Invalid value {value!r} for input '{computer}.{input_name}': {e}"
            raise UsageError(msg) from e

    def _check_assignment(self, computer: str, input_name: str, value: Any) -> tuple[NodeId, Any]:
        spec = self._graph.spec_of(computer)
        kind = spec.kind_of(input_name)
        if kind is NodeKind.VALUE:
            msg = f"'{computer}.{input_name}' is a value; values are computed and cannot be set."
            raise UsageError(msg)
        if kind is not NodeKind.INPUT:
            msg = f"Computer '{computer}' has no input named '{input_name}'."
            raise UsageError(msg)

        node = NodeId(computer, input_name)
        if (connection := self._graph.connection_into(node)) is not None:
            msg = f"Input '{node}' is driven by '{connection.source}' and cannot be set directly."
            raise UsageError(msg)
        return node, self._coerce(spec, computer, input_name, value)
