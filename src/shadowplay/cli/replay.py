"""shadowplay replay / exec -- Drive the host interface with command sequences.

``replay`` runs a learned behavior (by id or goal text), folds the outcome
into the behavior's statistics and writes a markdown report.  ``exec`` runs
raw commands given on the command line or in a file.

Ctrl+C cancels an in-flight replay between commands or stages.
"""

from __future__ import annotations

import logging
import signal
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from shadowplay.cli._common import find_behavior, load_config, open_store, parse_variables, print_error
from shadowplay.config import ShadowplayConfig
from shadowplay.engine.element_resolver import ElementResolver
from shadowplay.engine.interpreter import CancelToken, CommandInterpreter, ReplayResult, extract_commands
from shadowplay.engine.knowledge_store import KnowledgeRecord
from shadowplay.engine.report_generator import ReplayReport, ReplayReportGenerator

console = Console()

logger = logging.getLogger("shadowplay.cli.replay")


def run_commands(
    config: ShadowplayConfig,
    commands: list[str],
    variables: Mapping[str, str],
    headless: bool | None = None,
) -> ReplayResult:
    """Start the browser, replay *commands* and shut the browser down."""
    from shadowplay.engine.browser_adapters import PageWindowManager, PlaywrightInputInjector, PlaywrightUITree
    from shadowplay.engine.browser_host import BrowserHost

    host = BrowserHost(config, headless=headless)
    try:
        page = host.start()
    except Exception as exc:
        logger.debug("Browser launch failed", exc_info=True)
        print_error(f"Could not start the browser: {exc}\n\nTo fix: shadowplay install", "Browser Error")
        raise typer.Exit(code=3)

    token = CancelToken()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        interpreter = CommandInterpreter.from_config(
            config,
            ElementResolver(PlaywrightUITree(page)),
            PlaywrightInputInjector(page),
            window_manager=PageWindowManager(page, config.window_manager_global),
            on_log=lambda line: console.print(f"  [dim]{line}[/dim]"),
        )
        return interpreter.execute(commands, variables=variables, cancel_token=token)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        host.stop()


def write_report(config: ShadowplayConfig, record: KnowledgeRecord, result: ReplayResult) -> Path:
    now = datetime.now(timezone.utc)
    report = ReplayReport(
        run_id=f"SP-{now:%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}",
        behavior_name=record.name,
        behavior_id=record.id,
        confidence=record.confidence,
        start_time=now.isoformat(),
        commands=list(record.command_sequence),
        result=result,
    )
    config.reports_dir.mkdir(parents=True, exist_ok=True)
    path = config.reports_dir / f"{report.run_id}.md"
    path.write_text(ReplayReportGenerator().generate(report), encoding="utf-8")
    return path


def _print_outcome(result: ReplayResult) -> None:
    if result.cancelled:
        style, verdict = "yellow", "CANCELLED"
    elif result.succeeded:
        style, verdict = "green", "PASS"
    else:
        style, verdict = "red", "FAIL"
    lines = [
        f"[{style}]{verdict}[/{style}]  {len(result.executed)} executed, {len(result.skipped)} skipped "
        f"in {result.duration_ms / 1000:.1f}s"
    ]
    for command, reason in result.skipped:
        lines.append(f"  [dim]skipped[/dim] {command}: {reason}")
    console.print(Panel("\n".join(lines), title="Replay", border_style=style))


def replay(
    behavior: str = typer.Argument(..., help="Behavior id or goal text."),
    var: list[str] = typer.Option([], "--var", help="Template value as NAME=VALUE (repeatable)."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the plan without replaying it."),
    headless: bool | None = typer.Option(None, "--headless/--headed", help="Override the configured headless mode."),
    report: bool = typer.Option(True, "--report/--no-report", help="Write a markdown replay report."),
    dir: Path | None = typer.Option(None, "--dir", "-d", help="Path to .shadowplay/ directory."),
) -> None:
    """Replay a learned behavior against the host interface."""
    config = load_config(dir)
    variables = parse_variables(var)

    with open_store(config) as store:
        record = find_behavior(store, behavior)
    if record is None:
        print_error(f"No behavior matches '{behavior}'.\n\nTo fix: shadowplay behaviors list", "Not Found")
        raise typer.Exit(code=2)

    console.print(f"\n[bold]{record.name}[/bold] [dim]({record.id}, confidence {record.confidence:.2f})[/dim]")
    if dry_run or not record.command_sequence:
        for idx, command in enumerate(record.command_sequence, start=1):
            console.print(f"  {idx}. {command}")
        if not record.command_sequence:
            console.print("[yellow]This behavior has no replayable commands.[/yellow]")
        return

    result = run_commands(config, record.command_sequence, variables, headless)

    with open_store(config) as store:
        store.record_execution(record.id, result.succeeded, result.duration_ms, result.failure_reason)

    _print_outcome(result)
    if report:
        path = write_report(config, record, result)
        console.print(f"[dim]Report written to: {path}[/dim]\n")
    if not result.succeeded:
        raise typer.Exit(code=1)


def exec_commands(
    commands: list[str] | None = typer.Argument(None, help="Commands, e.g. 'MOUSE_MOVE:100:200' 'CLICK'."),
    file: Path | None = typer.Option(None, "--file", "-f", help="Read commands from a file."),
    var: list[str] = typer.Option([], "--var", help="Template value as NAME=VALUE (repeatable)."),
    headless: bool | None = typer.Option(None, "--headless/--headed", help="Override the configured headless mode."),
    dir: Path | None = typer.Option(None, "--dir", "-d", help="Path to .shadowplay/ directory."),
) -> None:
    """Execute raw commands against the host interface."""
    config = load_config(dir)
    variables = parse_variables(var)

    plan = list(commands or [])
    if file is not None:
        if not file.is_file():
            print_error(f"Command file not found: {file}", "Config Error")
            raise typer.Exit(code=2)
        plan.extend(extract_commands(file.read_text(encoding="utf-8")))
    if not plan:
        print_error("No commands given.\n\nPass commands as arguments or use --file.", "Config Error")
        raise typer.Exit(code=2)

    result = run_commands(config, plan, variables, headless)
    _print_outcome(result)
    if not result.succeeded:
        raise typer.Exit(code=1)
