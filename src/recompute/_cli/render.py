"""Rich rendering utilities for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from recompute._spec import NodeKind
from recompute._store import Assigned, Failed, Fresh, Pending, Unset

if TYPE_CHECKING:
    from rich.console import Console

    from recompute._eval_engine import CommitResult
    from recompute._executor import Executor
    from recompute._store import NodeState


def _get_kind_style(kind: NodeKind | None) -> str:
    """Get the Rich style for a node kind."""
    match kind:
        case NodeKind.INPUT:
            return "blue"
        case NodeKind.VALUE:
            return "yellow"
        case _:
            return "white"


def _format_state(state: NodeState) -> str:
    match state:
        case Assigned(value) | Fresh(value):
            return escape(repr(value))
        case Unset():
            return "[dim]unset[/dim]"
        case Pending():
            return "[dim]pending[/dim]"
        case Failed(error):
            return f"[red]error: {escape(error.reason)}[/red]"
        case _:
            return escape(repr(state))


def render_computer_table(executor: Executor, console: Console) -> None:
    """Render registered computers as a Rich table.

    Args:
        executor: Executor whose computers to list.
        console: Rich Console to output to.

    """
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Computer", style="bold")
    table.add_column("Spec")
    table.add_column("Inputs", justify="right", style="blue")
    table.add_column("Values", justify="right", style="yellow")
    table.add_column("Events", justify="right", style="green")

    for computer in executor.computers:
        spec = executor.spec_of(computer)
        table.add_row(
            escape(computer),
            escape(spec.name),
            str(len(spec.inputs)),
            str(len(spec.values)),
            str(len(spec.events)),
        )

    console.print(table)


def render_connection_table(executor: Executor, console: Console) -> None:
    """Render declared connections as a Rich table."""
    if not executor.connections:
        console.print("[dim]No connections[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Source value")
    table.add_column("Target input")
    for connection in executor.connections:
        table.add_row(escape(str(connection.source)), escape(str(connection.target)))
    console.print(table)


def render_order_table(executor: Executor, console: Console) -> None:
    """Render the global recomputation order."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Node")
    table.add_column("Kind")
    table.add_column("Depends on", style="dim")

    for index, node in enumerate(executor.order()):
        spec = executor.spec_of(node.computer)
        kind = spec.kind_of(node.name)
        style = _get_kind_style(kind)
        deps = spec.get_value(node.name).depends_on if kind is NodeKind.VALUE else ()
        table.add_row(
            str(index),
            escape(str(node)),
            f"[{style}]{str(kind).upper()}[/{style}]",
            escape(", ".join(deps)),
        )

    console.print(table)


def render_commit(result: CommitResult, console: Console, title: str) -> None:
    """Render what one commit did."""
    recomputed = ", ".join(str(node) for node in result.recomputed) or "-"
    status = "[green]✓[/green]" if result.success else "[red]✗[/red]"
    console.print(f"{status} [bold]{escape(title)}[/bold]")
    console.print(f"  [dim]recomputed:[/dim] {escape(recomputed)}")
    if result.delivered:
        delivered = ", ".join(str(node) for node in result.delivered)
        console.print(f"  [dim]delivered:[/dim]  {escape(delivered)}")
    for node, error in result.errors:
        console.print(f"  [red]• {escape(str(node))}: {escape(error.reason)}[/red]")


def render_state_table(executor: Executor, console: Console) -> None:
    """Render the state of every node of every computer."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Node")
    table.add_column("Kind")
    table.add_column("State")

    for computer in executor.computers:
        spec = executor.spec_of(computer)
        for name, state in executor.states(computer).items():
            style = _get_kind_style(spec.kind_of(name))
            table.add_row(escape(f"{computer}.{name}"), f"[{style}]{spec.kind_of(name)}[/{style}]", _format_state(state))

    console.print(table)
