"""shadowplay init -- Initialize a .shadowplay/ project directory.

Creates the directory structure and a config template.
"""

from __future__ import annotations

import os
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.tree import Tree

from shadowplay.credentials import SECRET_ENV_VAR

console = Console()

_SAMPLE_CONFIG = """\
# Shadowplay project configuration

# Page hosting the interface to record and replay against
base_url: "http://localhost:3000"

# Browser viewport (also part of the knowledge-store device fingerprint)
viewport:
  width: 1280
  height: 720
locale: en-US

# Replay runs headless when true; recording always opens a window
headless: false

# Replay pacing (milliseconds)
typing_delay_ms: 50
drag_steps: 10
drag_step_delay_ms: 20
command_delay_ms: 0

# JS object in the host page exposing openApp/closeWindow/focusWindow/moveWindow
window_manager_global: __shadowplayHost

# Attribute marking the recorder's own UI; clicks inside it are never recorded
training_marker: data-training-interface

# Uncomment to set the store secret here (SHADOWPLAY_STORE_SECRET takes priority)
# store_secret: change-me
"""

# Knowledge data and key names stay out of version control
_GITIGNORE_ENTRIES = (".shadowplay/knowledge.json", ".shadowplay/store.key")


def init(
    dir: Path = typer.Option(
        Path("."),
        "--dir",
        "-d",
        help="Parent directory for .shadowplay/ project. Defaults to current directory.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing config.yaml.",
    ),
) -> None:
    """Initialize a new Shadowplay project directory.

    Creates .shadowplay/ with sessions/ and reports/ subdirectories and a
    config.yaml template.
    """
    project_dir = dir.resolve() / ".shadowplay"

    if project_dir.exists() and not force:
        console.print(
            Panel(
                f"[yellow]Directory already exists:[/yellow] {project_dir}\n\nUse [bold]--force[/bold] to overwrite.",
                title="Already Initialized",
                border_style="yellow",
            )
        )
        raise typer.Exit(code=2)

    subdirs = ["sessions", "reports"]
    for sub in subdirs:
        (project_dir / sub).mkdir(parents=True, exist_ok=True)

    (project_dir / "config.yaml").write_text(_SAMPLE_CONFIG, encoding="utf-8")

    gitignore_path = project_dir.parent / ".gitignore"
    existing = gitignore_path.read_text(encoding="utf-8") if gitignore_path.exists() else ""
    missing = [entry for entry in _GITIGNORE_ENTRIES if entry not in existing]
    if missing:
        block = "# Shadowplay -- learned behaviors and store key\n" + "\n".join(missing) + "\n"
        gitignore_path.write_text((existing.rstrip("\n") + "\n\n" if existing else "") + block, encoding="utf-8")

    tree = Tree(f"[bold green]{project_dir}[/bold green]", guide_style="dim")
    tree.add("[cyan]config.yaml[/cyan]")
    for sub in subdirs:
        tree.add(f"[blue]{sub}/[/blue]")

    console.print()
    console.print(Panel(tree, title="[bold green]Shadowplay Initialized[/bold green]", border_style="green"))
    console.print()
    console.print("[dim]Next steps:[/dim]")
    console.print("  1. Edit [cyan].shadowplay/config.yaml[/cyan] with your interface's URL")
    console.print("  2. Run [bold]shadowplay install[/bold] to set up Playwright")
    console.print('  3. Run [bold]shadowplay record "Open settings"[/bold] a few times')

    if not os.environ.get(SECRET_ENV_VAR):
        console.print()
        console.print(
            Panel(
                "[bold yellow]No store secret set.[/bold yellow]\n\n"
                "Learned behaviors are encrypted with a built-in shared secret until you set one:\n\n"
                f"  export {SECRET_ENV_VAR}=...",
                title="[yellow]Store Secret[/yellow]",
                border_style="yellow",
            )
        )
    console.print()
