"""The [tool.recompute] table of pyproject.toml."""

import tomllib
from pathlib import Path
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator


class ConfigError(Exception):
    """Error in recompute configuration."""


def _resolve_path(path: Path, info: ValidationInfo) -> Path:
    # Relative paths are relative to the directory holding pyproject.toml
    project_root = (info.context or {}).get("project_root")
    if project_root is None or path.is_absolute():
        return path
    return project_root / path


def _check_module_path(value: str) -> str:
    if ":" not in value:
        msg = f"Invalid module path '{value}'. Expected format: 'module.path:variable_name'"
        raise ValueError(msg)
    return value


ProjectPath = Annotated[Path, AfterValidator(_resolve_path)]


class ScriptSource(BaseModel):
    """Script path with optional variable name: ``{ script = "calc.py", name = "executor" }``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    script: ProjectPath
    name: str | None = None


class ModuleSource(BaseModel):
    """Module path with variable name (e.g., 'examples.calculator:executor')."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    module_path: Annotated[str, AfterValidator(_check_module_path)]


type ExecutorSource = ScriptSource | ModuleSource


class RecomputeConfig(BaseModel):
    """Validated [tool.recompute] settings; CLI arguments take precedence."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    executor: ScriptSource | ModuleSource | None = None
    scenario: ProjectPath | None = None
    output: ProjectPath | None = None
    project_root: Path | None = None

    @field_validator("executor", mode="before")
    @classmethod
    def module_path_shorthand(cls, value: object) -> object:
        if isinstance(value, str):
            return {"module_path": value}
        return value


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Return the nearest pyproject.toml in `start_dir` (default: cwd) or one of its parents."""
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        if (candidate := directory / "pyproject.toml").is_file():
            return candidate
    return None


def load_config(pyproject_path: Path) -> RecomputeConfig:
    """Load and validate [tool.recompute] from a pyproject.toml.

    Raises:
        ConfigError: If the file is not valid TOML or the table is invalid.

    """
    project_root = pyproject_path.parent
    try:
        with pyproject_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {pyproject_path}: {e}"
        raise ConfigError(msg) from e

    section = data.get("tool", {}).get("recompute", {})
    try:
        return RecomputeConfig.model_validate(
            {**section, "project_root": project_root},
            context={"project_root": project_root},
        )
    except ValidationError as e:
        msg = f"Invalid [tool.recompute] in {pyproject_path}: {e}"
        raise ConfigError(msg) from e


def get_config() -> RecomputeConfig:
    """Config from the nearest pyproject.toml, or an empty config if there is none."""
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return RecomputeConfig()
    return load_config(pyproject_path)
