"""Decorator-based builder producing ComputerSpec objects."""

from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Annotated, Any, get_args, get_origin

from recompute._errors import SpecificationError

from ._computer_spec import ComputerSpec
from ._node_spec import MISSING, EventSpec, InputSpec, ValueSpec

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Dep:
    """Annotation naming the dependency a compute parameter reads.

    Without it a parameter reads the input or value of the same name.

    Example:
        >>> @calc.val()
        ... def total(items: Annotated[list[float], Dep("line_items")]) -> float:
        ...     return sum(items)

    """

    name: str


_INFERABLE_KINDS = (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)


def _get_signature(func: Callable[..., Any]) -> inspect.Signature:
    try:
        return inspect.signature(func, eval_str=True)
    except NameError:
        # Annotations referring to names we cannot resolve; fall back to raw strings
        return inspect.signature(func)


def _get_dep_from_annotation(annotation: Any) -> str | None:
    if get_origin(annotation) is not Annotated:
        return None
    deps = [arg for arg in get_args(annotation)[1:] if isinstance(arg, Dep)]
    if len(deps) > 1:
        msg = f"Only one Dep annotation is allowed per parameter, got {deps}."
        raise SpecificationError(msg)
    return deps[0].name if deps else None


def infer_dependencies(func: Callable[..., Any], value_name: str) -> dict[str, str]:
    """Infer a value's dependencies from the parameters of its function.

    Args:
        func: Function whose parameters name its dependencies.
        value_name: Name of the value (for error messages).

    Returns:
        Mapping from parameter name to dependency name, in parameter order.

    Raises:
        SpecificationError: If the parameters cannot name dependencies.

    """
    sig = _get_signature(func)
    param_deps: dict[str, str] = {}
    for param in sig.parameters.values():
        if param.kind not in _INFERABLE_KINDS:
            msg = (
                f"Cannot infer dependencies of value '{value_name}' from parameter "
                f"'{param}' ({param.kind.description}). Pass depends_on explicitly."
            )
            raise SpecificationError(msg)
        param_deps[param.name] = _get_dep_from_annotation(param.annotation) or param.name

    if not param_deps:
        msg = (
            f"Value '{value_name}' takes no parameters, so its dependencies cannot be inferred. "
            "Pass depends_on=() for a constant."
        )
        raise SpecificationError(msg)
    return param_deps


def _bind_parameters(func: Callable[..., Any], param_deps: dict[str, str]) -> Callable[[Mapping[str, Any]], Any]:
    def compute(snapshot: Mapping[str, Any]) -> Any:
        return func(**{param: snapshot[dep] for param, dep in param_deps.items()})

    return functools.update_wrapper(compute, func)


def _get_name(func: Callable[..., Any], name: str | None) -> str:
    if name is not None:
        return name
    if not hasattr(func, "__name__") or not isinstance(func.__name__, str):
        msg = "Function must have a valid name."
        raise SpecificationError(msg)
    return func.__name__


@dataclass(slots=True)
class Computer:
    """Builder for a computer specification.

    Example:
        >>> calc = Computer("calc")
        >>> calc.input("x", initial=0)
        >>> calc.input("y", initial=0)
        >>> @calc.val()
        ... def total(x, y):
        ...     return x + y
        >>> spec = calc.build()

    """

    name: str
    description: str | None = None
    _inputs: list[InputSpec] = field(default_factory=list)
    _values: list[ValueSpec] = field(default_factory=list)
    _events: list[EventSpec] = field(default_factory=list)

    def _check_unique(self, name: str) -> None:
        taken = {spec.name for spec in (*self._inputs, *self._values, *self._events)}
        if name in taken:
            msg = f"Name '{name}' is already declared in computer '{self.name}'."
            raise SpecificationError(msg)

    def input(
        self,
        name: str,
        *,
        initial: Any = MISSING,
        description: str | None = None,
        value_type: Any = None,
    ) -> InputSpec:
        """Declare an input."""
        self._check_unique(name)
        spec = InputSpec(name=name, initial=initial, description=description, value_type=value_type)
        self._inputs.append(spec)
        return spec

    def val[F: Callable[..., Any]](
        self,
        name: str | None = None,
        *,
        depends_on: Collection[str] | None = None,
        description: str | None = None,
    ) -> Callable[[F], F]:
        """Decorator declaring a value.

        With ``depends_on`` the function is called with the snapshot mapping.
        Without it the function's parameters name its dependencies and are
        passed as keyword arguments. The decorated function is returned as is.
        """

        def decorator(func: F) -> F:
            value_name = _get_name(func, name)
            self._check_unique(value_name)

            if depends_on is not None:
                spec = ValueSpec(
                    name=value_name,
                    compute=func,
                    depends_on=depends_on,
                    description=description or inspect.getdoc(func),
                )
            else:
                param_deps = infer_dependencies(func, value_name)
                logger.debug("Inferred dependencies of '%s.%s': %s", self.name, value_name, param_deps)
                spec = ValueSpec(
                    name=value_name,
                    compute=_bind_parameters(func, param_deps),
                    depends_on=list(param_deps.values()),
                    description=description or inspect.getdoc(func),
                )
            self._values.append(spec)
            return func

        return decorator

    def event[F: Callable[..., Any]](
        self,
        name: str | None = None,
        *,
        description: str | None = None,
    ) -> Callable[[F], F]:
        """Decorator declaring an event handler."""

        def decorator(func: F) -> F:
            event_name = _get_name(func, name)
            self._check_unique(event_name)
            self._events.append(EventSpec(name=event_name, handle=func, description=description or inspect.getdoc(func)))
            return func

        return decorator

    def build(self) -> ComputerSpec:
        """Build the immutable specification.

        Raises:
            SpecificationError: If a dependency does not resolve within the computer.

        """
        return ComputerSpec(
            name=self.name,
            inputs=tuple(self._inputs),
            values=tuple(self._values),
            events=tuple(self._events),
            description=self.description,
        )
