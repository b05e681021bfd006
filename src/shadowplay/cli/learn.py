"""shadowplay learn -- Learn a behavior from a task's recorded demonstrations."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shadowplay.cli._common import load_config, open_store, print_error
from shadowplay.config import ShadowplayConfigError
from shadowplay.engine.observation import load_sessions
from shadowplay.engine.pattern_learner import InsufficientDataError, PatternLearner, SessionMismatchError

console = Console()


def learn(
    task: str = typer.Argument(..., help="Name of the recorded task."),
    briefing: bool = typer.Option(False, "--briefing", "-b", help="Also print the learned briefing."),
    dir: Path | None = typer.Option(None, "--dir", "-d", help="Path to .shadowplay/ directory."),
) -> None:
    """Analyze every recorded attempt of TASK and store the learned behavior.

    Re-learning a task replaces its behavior but keeps the behavior id.
    """
    config = load_config(dir)
    try:
        sessions = load_sessions(config.task_sessions_dir(task))
    except ShadowplayConfigError as exc:
        print_error(str(exc), "Config Error")
        raise typer.Exit(code=2)

    learner = PatternLearner()
    try:
        pattern = learner.analyze(sessions)
    except InsufficientDataError:
        print_error(f"No recorded sessions for '{task}'.\n\nTo fix: shadowplay record \"{task}\"", "No Data")
        raise typer.Exit(code=2)
    except SessionMismatchError as exc:
        print_error(str(exc), "Session Mismatch")
        raise typer.Exit(code=2)

    record = learner.to_knowledge_record(pattern, sessions)
    with open_store(config) as store:
        previous = next((r for r in store.load() if r.name == record.name), None)
        if previous is not None:
            record.id = previous.id
        store.add_behavior(record)

    table = Table(title=f"Learned: {task}", border_style="cyan")
    table.add_column("Step", justify="right")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Description")
    table.add_column("Replay", style="dim")
    steps = [(inv.step, inv.action_kind, "[green]invariant[/green]", inv.description) for inv in pattern.invariants]
    steps += [(var.step, var.variation_kind, "[yellow]variant[/yellow]", var.description) for var in pattern.variants]
    for step, kind, status, description in sorted(steps):
        entry = pattern.fallback_for(step)
        replayed = status.startswith("[green]") and entry is not None
        table.add_row(str(step + 1), kind, status, description, entry.primary_strategy if replayed else "-")

    console.print()
    console.print(table)
    if briefing:
        console.print(Panel(record.context, title="Briefing", border_style="blue"))
    console.print(
        f"\n[bold]{len(pattern.command_sequence)}[/bold] commands from "
        f"[bold]{pattern.total_attempts}[/bold] attempts, confidence [bold]{record.confidence:.2f}[/bold]"
    )
    console.print(f"Behavior id: [cyan]{record.id}[/cyan]\n")
    if not pattern.command_sequence:
        console.print("[yellow]No replayable steps were learned; record more consistent attempts.[/yellow]\n")
