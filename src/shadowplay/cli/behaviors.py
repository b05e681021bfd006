"""shadowplay behaviors -- List and manage learned behaviors.

Subcommands: list, show, remove, wipe, export, import.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shadowplay.cli._common import find_behavior, load_config, open_store, print_error

console = Console()

behaviors_app = typer.Typer(
    name="behaviors",
    help="List and manage learned behaviors.",
    no_args_is_help=True,
)

_DIR_OPTION = typer.Option(None, "--dir", "-d", help="Path to .shadowplay/ directory.")


@behaviors_app.command(name="list")
def behaviors_list(
    goal: str | None = typer.Argument(None, help="Only behaviors matching this goal text."),
    dir: Path | None = _DIR_OPTION,
) -> None:
    """List learned behaviors, most confident first."""
    config = load_config(dir)
    with open_store(config) as store:
        records = store.find_matching(goal) if goal else sorted(store.load(), key=lambda r: r.confidence, reverse=True)

    if not records:
        console.print("[dim]No behaviors learned yet.[/dim]")
        return

    table = Table(title="Learned Behaviors", border_style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Confidence", justify="right")
    table.add_column("Commands", justify="right")
    table.add_column("Runs", justify="right")
    table.add_column("Success", justify="right")
    for record in records:
        stats = record.statistics
        table.add_row(
            record.id,
            record.name,
            f"{record.confidence:.2f}",
            str(len(record.command_sequence)),
            str(stats.times_executed),
            f"{stats.success_rate:.0%}" if stats.times_executed else "-",
        )
    console.print()
    console.print(table)
    console.print()


@behaviors_app.command(name="show")
def behaviors_show(
    behavior: str = typer.Argument(..., help="Behavior id or goal text."),
    dir: Path | None = _DIR_OPTION,
) -> None:
    """Show a behavior's briefing, plan and statistics."""
    config = load_config(dir)
    with open_store(config) as store:
        record = find_behavior(store, behavior)
    if record is None:
        print_error(f"No behavior matches '{behavior}'.", "Not Found")
        raise typer.Exit(code=2)

    stats = record.statistics
    plan = "\n".join(f"{i}. {c}" for i, c in enumerate(record.command_sequence, start=1)) or "(empty)"
    console.print(Panel(record.context or record.description, title=f"[bold]{record.name}[/bold]", border_style="blue"))
    console.print(Panel(plan, title="Command Sequence", border_style="cyan"))
    console.print(
        f"Confidence {record.confidence:.2f} | runs {stats.times_executed} | "
        f"success {stats.success_rate:.0%} | avg {stats.avg_execution_time:.0f}ms | "
        f"last tested {record.last_tested or '-'}"
    )
    if stats.last_failure_reason:
        console.print(f"[yellow]Last failure:[/yellow] {stats.last_failure_reason}")


@behaviors_app.command(name="remove")
def behaviors_remove(
    behavior_id: str = typer.Argument(..., help="Behavior id."),
    dir: Path | None = _DIR_OPTION,
) -> None:
    """Remove one behavior."""
    config = load_config(dir)
    with open_store(config) as store:
        removed = store.remove_behavior(behavior_id)
    if not removed:
        print_error(f"No behavior with id '{behavior_id}'.", "Not Found")
        raise typer.Exit(code=2)
    console.print(f"[green]Removed[/green] {behavior_id}")


@behaviors_app.command(name="wipe")
def behaviors_wipe(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    dir: Path | None = _DIR_OPTION,
) -> None:
    """Delete every learned behavior."""
    config = load_config(dir)
    if not yes and not typer.confirm("Delete all learned behaviors?"):
        raise typer.Exit(code=1)
    with open_store(config) as store:
        store.clear()
    console.print("[green]Knowledge store wiped.[/green]")


@behaviors_app.command(name="export")
def behaviors_export(
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout."),
    dir: Path | None = _DIR_OPTION,
) -> None:
    """Export all behaviors as plaintext JSON."""
    config = load_config(dir)
    with open_store(config) as store:
        data = store.export_json()
    if output is None:
        typer.echo(data)
        return
    output.write_text(data, encoding="utf-8")
    console.print(f"[green]Exported to[/green] {output}")


@behaviors_app.command(name="import")
def behaviors_import(
    source: Path = typer.Argument(..., help="JSON file produced by 'behaviors export'."),
    dir: Path | None = _DIR_OPTION,
) -> None:
    """Replace all behaviors with those in SOURCE."""
    config = load_config(dir)
    if not source.is_file():
        print_error(f"File not found: {source}", "Not Found")
        raise typer.Exit(code=2)
    with open_store(config) as store:
        count = store.import_json(source.read_text(encoding="utf-8"))
    if count == 0:
        print_error(f"Nothing imported from {source}; is it a behavior export?", "Import Error")
        raise typer.Exit(code=2)
    console.print(f"[green]Imported {count} behaviors.[/green]")
