"""Shadowplay CLI -- Main Typer entry point.

Registers all subcommands and provides --version / --verbose global options.
"""

from __future__ import annotations

import typer
from rich.console import Console

from shadowplay import __version__

TAGLINE = "Show it a few times. It learns the moves."

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print("shadowplay", style="bold cyan")
        console.print(f"  {TAGLINE}", style="dim")
        console.print(f"  v{__version__}\n", style="bold")
        raise typer.Exit()


app = typer.Typer(
    name="shadowplay",
    help=f"Shadowplay -- {TAGLINE}",
    rich_markup_mode="rich",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show Shadowplay version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
) -> None:
    """Shadowplay -- learn UI behaviors by demonstration and replay them.

    Record a task a few times, learn the stable steps, replay them.
    """
    if verbose:
        import logging

        logging.basicConfig(level=logging.DEBUG, format="%(name)s  %(message)s")


# Each subcommand is a separate module to keep this file lean.

from shadowplay.cli.behaviors import behaviors_app  # noqa: E402
from shadowplay.cli.config_cmd import config_app  # noqa: E402
from shadowplay.cli.init_cmd import init  # noqa: E402
from shadowplay.cli.install import install  # noqa: E402
from shadowplay.cli.learn import learn  # noqa: E402
from shadowplay.cli.record import record  # noqa: E402
from shadowplay.cli.replay import exec_commands, replay  # noqa: E402

app.command(name="init", help="Initialize a .shadowplay/ project directory.")(init)
app.command(name="install", help="Install browser dependencies (Playwright).")(install)
app.command(name="record", help="Record one demonstration of a task.")(record)
app.command(name="learn", help="Learn a behavior from a task's recorded demonstrations.")(learn)
app.command(name="replay", help="Replay a learned behavior.")(replay)
app.command(name="exec", help="Execute raw commands against the host interface.")(exec_commands)
app.add_typer(behaviors_app, name="behaviors", help="List and manage learned behaviors.")
app.add_typer(config_app, name="config", help="View Shadowplay configuration.")
