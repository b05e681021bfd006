"""shadowplay config -- View Shadowplay configuration."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from shadowplay.cli._common import find_project_dir, load_config
from shadowplay.credentials import identify_secret_source, load_storage_key, mask_key

console = Console()

config_app = typer.Typer(
    name="config",
    help="View Shadowplay configuration.",
    no_args_is_help=True,
)


@config_app.command(name="show")
def config_show(
    dir: Path | None = typer.Option(None, "--dir", "-d", help="Path to .shadowplay/ directory."),
) -> None:
    """Show the resolved Shadowplay configuration.

    Secrets and the storage key name are masked.
    """
    project_dir = dir or find_project_dir()
    config = load_config(project_dir)
    config_path = project_dir / "config.yaml"
    storage_key = load_storage_key(project_dir)

    table = Table(title="Shadowplay Configuration", border_style="cyan")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_column("Source", style="dim")

    table.add_row("Project Dir", str(project_dir), "resolved")
    table.add_row("Config File", str(config_path), "exists" if config_path.is_file() else "missing")
    table.add_row("Sessions Dir", str(config.sessions_dir), "config")
    table.add_row("Store Path", str(config.store_path), "config")
    table.add_row("Reports Dir", str(config.reports_dir), "config")
    table.add_row("", "", "")
    table.add_row("Base URL", config.base_url or "[red]NOT SET[/red]", "config")
    table.add_row("Viewport", f"{config.viewport[0]}x{config.viewport[1]}", "config")
    table.add_row("Locale", config.locale, "config")
    table.add_row("Headless", str(config.headless), "config")
    table.add_row("Typing Delay", f"{config.typing_delay_ms}ms", "config")
    table.add_row("Drag", f"{config.drag_steps} steps x {config.drag_step_delay_ms}ms", "config")
    table.add_row("Command Delay", f"{config.command_delay_ms}ms", "config")
    table.add_row("", "", "")
    secret_source = identify_secret_source(project_dir)
    secret_display = "[yellow]shared default[/yellow]" if secret_source == "built-in default" else "configured"
    table.add_row("Store Secret", secret_display, secret_source)
    table.add_row("Storage Key", mask_key(storage_key) if storage_key else "[dim]not created[/dim]", "store.key")

    console.print()
    console.print(table)
    console.print()
