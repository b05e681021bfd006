"""Helpers shared by the Shadowplay subcommands."""

from __future__ import annotations

import contextlib
import platform
from collections.abc import Iterator
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from shadowplay.config import ShadowplayConfig, ShadowplayConfigError
from shadowplay.credentials import resolve_storage_key, resolve_store_secret, save_storage_key
from shadowplay.engine.knowledge_store import KnowledgeRecord, KnowledgeStore, device_fingerprint
from shadowplay.engine.kv_store import FileKeyValueStore

console = Console()

PROJECT_DIR_NAME = ".shadowplay"


def find_project_dir() -> Path:
    """Locate the .shadowplay/ project directory by searching upward from cwd."""
    current = Path.cwd()
    for base in [current, *current.parents]:
        candidate = base / PROJECT_DIR_NAME
        if candidate.is_dir():
            return candidate
    return current / PROJECT_DIR_NAME


def print_error(message: str, title: str = "Error") -> None:
    console.print(Panel(f"[red]{message}[/red]", title=f"[red]{title}[/red]", border_style="red"))


def load_config(project_dir: Path | None) -> ShadowplayConfig:
    """Load the project config, exiting with code 2 when it is invalid."""
    try:
        return ShadowplayConfig.for_project(project_dir or find_project_dir())
    except ShadowplayConfigError as exc:
        print_error(str(exc), "Config Error")
        raise typer.Exit(code=2)


def store_fingerprint(config: ShadowplayConfig) -> str:
    """Device fingerprint for the store key: OS/machine, viewport and locale."""
    return device_fingerprint(f"{platform.system()}/{platform.machine()}", config.viewport, config.locale)


@contextlib.contextmanager
def open_store(config: ShadowplayConfig) -> Iterator[KnowledgeStore]:
    """Open the project's knowledge store, persisting a newly chosen key name."""
    storage_key = resolve_storage_key(config.project_dir)
    store = KnowledgeStore(
        FileKeyValueStore(config.store_path),
        resolve_store_secret(config.project_dir),
        store_fingerprint(config),
        user_id=config.user_id,
        storage_key=storage_key,
    )
    if storage_key is None:
        save_storage_key(config.project_dir, store.storage_key)
    with store:
        yield store


def find_behavior(store: KnowledgeStore, ref: str) -> KnowledgeRecord | None:
    """Behavior by exact id, else the most confident goal match."""
    record = store.get_behavior(ref)
    if record is not None:
        return record
    matches = store.find_matching(ref)
    return matches[0] if matches else None


def parse_variables(pairs: list[str]) -> dict[str, str]:
    """Parse ``NAME=VALUE`` options, exiting with code 2 on a malformed pair."""
    variables: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            print_error(f"Invalid variable: {pair!r}\n\nExpected format: NAME=VALUE", "Config Error")
            raise typer.Exit(code=2)
        variables[name.strip()] = value
    return variables
