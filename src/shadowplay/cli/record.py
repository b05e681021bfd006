"""shadowplay record -- Record one demonstration of a task.

Opens the host interface in a visible browser and captures clicks, key
presses and scrolls until the window is closed, the time limit passes or
Ctrl+C is pressed.  The session is saved as
``sessions/<task>/attempt-<n>.json``.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from shadowplay.cli._common import load_config, print_error
from shadowplay.config import ShadowplayConfigError
from shadowplay.engine.observation import load_sessions
from shadowplay.engine.recorder import ActionRecorder, CaptureError

console = Console()

logger = logging.getLogger("shadowplay.cli.record")

_POLL_MS = 250


def next_attempt_number(sessions_dir: Path) -> int:
    sessions = load_sessions(sessions_dir)
    return max((s.attempt_number for s in sessions), default=0) + 1


def record(
    task: str = typer.Argument(..., help="Name of the task being demonstrated."),
    attempt: int | None = typer.Option(
        None,
        "--attempt",
        "-n",
        help="Attempt number. Defaults to the next unused number for this task.",
    ),
    seconds: float | None = typer.Option(
        None,
        "--seconds",
        "-s",
        help="Stop recording automatically after this many seconds.",
    ),
    dir: Path | None = typer.Option(None, "--dir", "-d", help="Path to .shadowplay/ directory."),
) -> None:
    """Record one demonstration of TASK in the host interface."""
    config = load_config(dir)
    try:
        sessions_dir = config.task_sessions_dir(task)
    except ShadowplayConfigError as exc:
        print_error(str(exc), "Config Error")
        raise typer.Exit(code=2)

    if not config.base_url:
        print_error("No base_url configured.\n\nTo fix: set base_url in .shadowplay/config.yaml", "Config Error")
        raise typer.Exit(code=2)

    try:
        attempt_number = attempt or next_attempt_number(sessions_dir)
    except ShadowplayConfigError as exc:
        print_error(str(exc), "Config Error")
        raise typer.Exit(code=2)

    from shadowplay.engine.browser_host import BrowserHost

    host = BrowserHost(config, headless=False)
    try:
        host.start()
    except Exception as exc:
        logger.debug("Browser launch failed", exc_info=True)
        print_error(f"Could not start the browser: {exc}\n\nTo fix: shadowplay install", "Browser Error")
        raise typer.Exit(code=3)

    recorder = ActionRecorder(host.capture_surface())
    try:
        with recorder.recording(task, attempt_number):
            console.print(
                Panel(
                    f"Recording [bold]{task}[/bold] (attempt {attempt_number})\n\n"
                    "Demonstrate the task in the browser window.\n"
                    "Close the window or press [bold]Ctrl+C[/bold] when done.",
                    title="[bold red]REC[/bold red]",
                    border_style="red",
                )
            )
            _wait_for_demonstration(host, seconds)
    except CaptureError as exc:
        print_error(str(exc), "Capture Error")
        raise typer.Exit(code=3)
    finally:
        host.stop()

    session = recorder.last_session
    if session is None:
        print_error("No session was recorded.", "Capture Error")
        raise typer.Exit(code=3)

    path = session.save(sessions_dir / f"attempt-{attempt_number}.json")
    console.print(
        Panel(
            f"[green]{len(session.actions)} actions captured[/green] in {session.duration_ms / 1000:.1f}s\n\n"
            f"Saved to [cyan]{path}[/cyan]\n\n"
            f'Record again, then run: [bold]shadowplay learn "{task}"[/bold]',
            title="[bold green]Recording Saved[/bold green]",
            border_style="green",
        )
    )


def _wait_for_demonstration(host, seconds: float | None) -> None:
    deadline = time.monotonic() + seconds if seconds else None
    try:
        while not host.is_closed and (deadline is None or time.monotonic() < deadline):
            try:
                host.pump(_POLL_MS)
            except Exception as exc:
                # The page went away mid-wait; the demonstration is over
                logger.debug("Stopped waiting: %s", exc)
                break
    except KeyboardInterrupt:
        console.print("\n[yellow]Recording stopped by user.[/yellow]")
