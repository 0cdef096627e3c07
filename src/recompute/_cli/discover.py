"""Utilities to discover executors in scripts and modules.

`get_module_data_from_path` was adapted from `fastapi_cli.discover` of package `fastapi-cli` version 0.0.8 (77e6d1f).
"""

from __future__ import annotations

import importlib
import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from recompute._executor import Executor

from .config import ModuleSource, ScriptSource

if TYPE_CHECKING:
    from pathlib import Path

    from .config import ExecutorSource

logger = logging.getLogger(__name__)


@dataclass
class ModuleData:
    """Module data for a Python module."""

    module_import_str: str
    extra_sys_path: Path
    module_paths: list[Path]


def get_module_data_from_path(path: Path) -> ModuleData:
    """Get module data from a file path.

    Args:
        path: Path to a Python file or package

    Returns:
        ModuleData containing module import information

    """
    use_path = path.resolve()
    module_path = use_path
    if use_path.is_file() and use_path.stem == "__init__":
        module_path = use_path.parent
    module_paths = [module_path]
    extra_sys_path = module_path.parent
    for parent in module_path.parents:
        init_path = parent / "__init__.py"
        if init_path.is_file():
            module_paths.insert(0, parent)
            extra_sys_path = parent.parent
        else:
            break

    module_str = ".".join(p.stem for p in module_paths)
    return ModuleData(
        module_import_str=module_str,
        extra_sys_path=extra_sys_path.resolve(),
        module_paths=module_paths,
    )


def as_executor(obj: object, where: str) -> Executor:
    """Return `obj` if it is an Executor, or the Executor returned by calling it.

    Raises:
        TypeError: If `obj` is neither an Executor nor a factory returning one.

    """
    if isinstance(obj, Executor):
        return obj
    if callable(obj):
        result = obj()
        if isinstance(result, Executor):
            return result
        msg = f"{where} returned {type(result).__name__}, not an Executor"
        raise TypeError(msg)
    msg = f"{where} is not an Executor or a factory returning one"
    raise TypeError(msg)


def load_executor_from_script(script_path: Path, name: str | None = None) -> Executor:
    """Load an executor from a Python script path.

    Args:
        script_path: Path to the Python script defining the executor
        name: Name of the executor (or factory) variable. If None, the first
            Executor instance found in the module is used.

    Returns:
        The loaded Executor

    Raises:
        ImportError: If the module cannot be imported
        ValueError: If no executor is found or the named variable doesn't exist
        TypeError: If the named variable is not an Executor or a factory

    """
    module_data = get_module_data_from_path(script_path)
    sys.path.insert(0, str(module_data.extra_sys_path))

    try:
        module = importlib.import_module(module_data.module_import_str)
    except (ImportError, ValueError):
        logger.exception("Import error")
        logger.warning("Ensure all the package directories have an __init__.py file")
        raise

    if name:
        if not hasattr(module, name):
            msg = f"Could not find '{name}' in {module_data.module_import_str}"
            raise ValueError(msg)
        return as_executor(getattr(module, name), f"'{name}' in {module_data.module_import_str}")

    # Infer executor from module
    for attr in dir(module):
        obj = getattr(module, attr)
        if isinstance(obj, Executor):
            logger.debug("Found executor: %s", attr)
            return obj

    msg = "Could not find an Executor in module, try using --name"
    raise ValueError(msg)


def load_executor_from_module_path(module_path: str) -> Executor:
    """Load an executor from a module path (e.g., 'examples.calculator:executor').

    Args:
        module_path: Module path in format 'module.path:variable_name'

    Returns:
        The loaded Executor

    Raises:
        ValueError: If module path format is invalid
        TypeError: If the variable is not an Executor or a factory returning one

    """
    if ":" not in module_path:
        msg = "Module path must be in format 'module.path:variable_name'"
        raise ValueError(msg)

    module_name, variable = module_path.split(":", 1)
    module = importlib.import_module(module_name)
    return as_executor(getattr(module, variable), f"'{variable}' in module '{module_name}'")


def load_executor_from_source(source: ExecutorSource) -> Executor:
    """Load an executor from an ExecutorSource (script or module)."""
    match source:
        case ScriptSource(script=script, name=name):
            return load_executor_from_script(script, name)
        case ModuleSource(module_path=module_path):
            return load_executor_from_module_path(module_path)
