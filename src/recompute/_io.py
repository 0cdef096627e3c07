"""Loading scenarios and exporting values as TOML."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomli_w
from pydantic_core import to_jsonable_python

from ._scenario import Scenario

if TYPE_CHECKING:
    from ._executor import Executor

logger = logging.getLogger(__name__)


def load_scenario_from_toml(path: Path) -> Scenario:
    """Load and validate a scenario file.

    Raises:
        tomllib.TOMLDecodeError: If the file is not valid TOML.
        pydantic.ValidationError: If the content is not a valid scenario.

    """
    with path.open("rb") as f:
        data = tomllib.load(f)
    scenario = Scenario.model_validate(data)
    logger.debug("Loaded %d scenario step(s) from %s", len(scenario.steps), path)
    return scenario


def _serialize_value(value: Any) -> Any:
    """Convert a value to TOML-compatible data.

    Handles:
    - Pydantic models, dataclasses, enums, sets, ...: via pydantic's JSON-able conversion
    - Anything pydantic cannot convert: its repr
    - None: dropped from tables and arrays, since TOML has no null
    """
    data = to_jsonable_python(value, fallback=repr)
    return _strip_none(data)


def _strip_none(data: Any) -> Any:
    if isinstance(data, dict):
        return {str(k): _strip_none(v) for k, v in data.items() if v is not None}
    if isinstance(data, list):
        return [_strip_none(item) for item in data if item is not None]
    return data


def values_to_dict(executor: Executor) -> dict[str, Any]:
    """Collect the current values and errors of every computer.

    The structure is:
    {
        "computer_name": {
            "values": {"name": value, ...},
            "errors": {"name": "message", ...},  # only when some node failed
        },
        ...
    }
    """
    result: dict[str, Any] = {}
    for computer in executor.computers:
        table: dict[str, Any] = {"values": _serialize_value(executor.current_values(computer))}
        errors = executor.errors(computer)
        if errors:
            table["errors"] = {name: error.reason for name, error in errors.items()}
        result[computer] = table
    return result


def export_values_to_toml(executor: Executor, output_path: Path) -> None:
    """Write the current values and errors of every computer to a TOML file."""
    data = values_to_dict(executor)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("wb") as f:
        tomli_w.dump(data, f)
    logger.debug("Exported values of %d computer(s) to %s", len(data), output_path)
