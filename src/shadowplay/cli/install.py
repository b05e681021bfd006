"""shadowplay install -- Install browser dependencies (Playwright).

Runs `playwright install` behind a Rich spinner.
"""

from __future__ import annotations

import subprocess
import sys

import typer
from rich.console import Console
from rich.panel import Panel

console = Console()


def install(
    browsers: str = typer.Option(
        "chromium",
        "--browsers",
        "-b",
        help="Browsers to install (comma-separated). Only chromium is used for replay.",
    ),
) -> None:
    """Install the Playwright browsers Shadowplay records and replays in."""
    browser_list = [b.strip() for b in browsers.split(",") if b.strip()]
    cmd = [sys.executable, "-m", "playwright", "install", *browser_list]

    try:
        with console.status(f"[bold blue]Installing {', '.join(browser_list)}...[/bold blue]", spinner="dots"):
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=600)
    except subprocess.TimeoutExpired:
        console.print(
            Panel(
                "[red]Installation timed out after 10 minutes.[/red]\n\nCheck your network connection and try again.",
                title="[red]Timeout[/red]",
                border_style="red",
            )
        )
        raise typer.Exit(code=3)

    if result.returncode != 0:
        console.print(
            Panel(
                f"[red]Playwright install failed (exit code {result.returncode}).[/red]\n\n"
                f"{result.stderr.strip() if result.stderr else 'No error output.'}\n\n"
                f"[dim]Try running manually:[/dim]\n  {' '.join(cmd)}",
                title="[red]Installation Failed[/red]",
                border_style="red",
            )
        )
        raise typer.Exit(code=3)

    console.print(
        Panel(
            f"[green]Installed: {', '.join(browser_list)}[/green]\n\n"
            "Record your first demonstration:\n"
            '  [bold]shadowplay record "Open settings"[/bold]',
            title="[bold green]Installation Complete[/bold green]",
            border_style="green",
        )
    )
