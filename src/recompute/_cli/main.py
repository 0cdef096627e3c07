import logging
import tomllib
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from recompute._errors import RecomputeError
from recompute._executor import Executor
from recompute._io import export_values_to_toml, load_scenario_from_toml
from recompute._scenario import run_scenario

from .config import ConfigError, ModuleSource, RecomputeConfig, ScriptSource, get_config
from .discover import load_executor_from_module_path, load_executor_from_script, load_executor_from_source
from .render import (
    render_commit,
    render_computer_table,
    render_connection_table,
    render_order_table,
    render_state_table,
)

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()

PathArgument = Annotated[
    str | None,
    typer.Argument(help="Path to Python script or module path (e.g., examples.calculator:executor)"),
]
NameOption = Annotated[
    str | None,
    typer.Option("--name", help="Name of the executor variable (for script paths only)"),
]


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Recompute CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _load_config() -> RecomputeConfig:
    try:
        return get_config()
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _load_executor(path: str | None, config: RecomputeConfig, name: str | None = None) -> Executor:
    """Load an executor from the CLI path, falling back to [tool.recompute].executor."""
    try:
        if path is not None:
            if ":" in path:
                err_console.print(f"[cyan]Loading executor from module:[/cyan] {path}")
                return load_executor_from_module_path(path)
            script_path = Path(path)
            err_console.print(f"[cyan]Loading executor from script:[/cyan] {script_path}")
            return load_executor_from_script(script_path, name)

        match config.executor:
            case None:
                err_console.print(
                    "[red]Error: No executor specified. Provide a path argument "
                    "or configure \\[tool.recompute].executor in pyproject.toml.[/red]",
                )
                raise typer.Exit(code=1)
            case ScriptSource(script=script, name=configured_name):
                err_console.print(f"[cyan]Loading executor from script:[/cyan] {script}")
                return load_executor_from_script(script, name or configured_name)
            case ModuleSource() as source:
                err_console.print(f"[cyan]Loading executor from module:[/cyan] {source.module_path}")
                return load_executor_from_source(source)
    except RecomputeError as e:
        err_console.print(f"[red]✗ {type(e).__name__}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e
    except (ValueError, TypeError) as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def check(
    path: PathArgument = None,
    *,
    name: NameOption = None,
) -> None:
    """Check that an executor's computers and connections form a valid graph."""
    err_console.print()
    executor = _load_executor(path, _load_config(), name)
    err_console.print()

    total_nodes = len(executor.order())
    err_console.print(
        Panel.fit(
            f"[bold]{len(executor.computers)}[/bold] computers, "
            f"[bold]{len(executor.connections)}[/bold] connections, "
            f"[bold]{total_nodes}[/bold] nodes",
            title="[bold]Executor[/bold]",
            border_style="cyan",
        ),
    )
    render_computer_table(executor, out_console)
    render_connection_table(executor, out_console)

    err_console.print()
    err_console.print("[green]✓ Graph is valid[/green]")
    err_console.print()


@app.command()
def order(
    path: PathArgument = None,
    *,
    name: NameOption = None,
) -> None:
    """Show the global recomputation order."""
    err_console.print()
    executor = _load_executor(path, _load_config(), name)
    err_console.print()
    render_order_table(executor, out_console)


def _initialize(executor: Executor) -> bool:
    """Initialize the executor unless its script already did; return whether every value computed."""
    if executor.is_initialized:
        err_console.print("[dim]Executor is already initialized[/dim]")
        return True
    err_console.print("[cyan]Initializing executor...[/cyan]")
    result = executor.initialize()
    render_commit(result, err_console, "initialize")
    return result.success


def _replay_scenario(executor: Executor, scenario_path: Path) -> bool:
    """Replay a scenario file step by step; return whether every step computed cleanly."""
    err_console.print(f"[cyan]Loading scenario from:[/cyan] {scenario_path}")
    try:
        loaded = load_scenario_from_toml(scenario_path)
    except (OSError, tomllib.TOMLDecodeError, ValidationError) as e:
        err_console.print(f"[red]Error: Invalid scenario: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    try:
        outcomes = run_scenario(executor, loaded)
    except RecomputeError as e:
        err_console.print(f"[red]✗ {type(e).__name__}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    for index, outcome in enumerate(outcomes, start=1):
        render_commit(outcome.result, err_console, f"step {index}: {outcome.step.describe()}")
    return all(outcome.result.success for outcome in outcomes)


@app.command()
def run(
    path: PathArgument = None,
    *,
    scenario: Annotated[
        Path | None,
        typer.Option("-s", "--scenario", help="Path to scenario TOML file"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Path to output TOML file"),
    ] = None,
    name: NameOption = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Exit non-zero if any value failed to compute"),
    ] = False,
) -> None:
    """Initialize an executor, replay a scenario and report the resulting values."""
    err_console.print()
    config = _load_config()
    executor = _load_executor(path, config, name)

    effective_scenario = scenario if scenario is not None else config.scenario
    effective_output = output if output is not None else config.output

    success = _initialize(executor)
    err_console.print()

    if effective_scenario is not None:
        success &= _replay_scenario(executor, effective_scenario)
        err_console.print()

    render_state_table(executor, out_console)

    if effective_output is not None:
        err_console.print()
        err_console.print(f"[cyan]Exporting values to:[/cyan] {effective_output}")
        export_values_to_toml(executor, effective_output)

    err_console.print()
    if not success:
        err_console.print("[yellow]⚠ Some values failed to compute[/yellow]")
        if strict:
            raise typer.Exit(code=1)
    else:
        err_console.print("[green]✓ Run complete[/green]")
    err_console.print()


@app.command()
def diff(
    file1: Annotated[
        Path,
        typer.Argument(help="Path to the first TOML file"),
    ],
    file2: Annotated[
        Path,
        typer.Argument(help="Path to the second TOML file"),
    ],
) -> None:
    """Compare two exported TOML files and check if they are identical."""
    with file1.open("rb") as f1, file2.open("rb") as f2:
        toml1 = tomllib.load(f1)
        toml2 = tomllib.load(f2)

    if toml1 == toml2:
        err_console.print("[green]✓ The TOML files are identical.[/green]")
        raise typer.Exit(0)

    for computer in sorted(toml1.keys() | toml2.keys()):
        if toml1.get(computer) != toml2.get(computer):
            err_console.print(f"  [red]•[/red] {escape(computer)}")
    err_console.print("[red]✗ The TOML files differ.[/red]")
    raise typer.Exit(1)


def main() -> None:
    app()
