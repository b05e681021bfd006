"""Shadowplay configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from shadowplay.models import (
    DEFAULT_LOCALE,
    DEFAULT_VIEWPORT,
    DRAG_STEP_DELAY_MS,
    DRAG_STEPS,
    TRAINING_MARKER_ATTRIBUTE,
    TYPING_DELAY_MS,
)


class ShadowplayConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@dataclass
class ShadowplayConfig:
    """Configuration for recording, learning and replaying behaviors."""

    # Host interface
    base_url: str = ""
    viewport: tuple[int, int] = DEFAULT_VIEWPORT
    headless: bool = False
    locale: str = DEFAULT_LOCALE
    user_id: str = "default"

    # Paths
    project_dir: Path = field(default_factory=lambda: Path(".shadowplay"))
    sessions_dir: Path = field(default_factory=lambda: Path(".shadowplay/sessions"))
    store_path: Path = field(default_factory=lambda: Path(".shadowplay/knowledge.json"))
    reports_dir: Path = field(default_factory=lambda: Path(".shadowplay/reports"))

    # Replay pacing
    typing_delay_ms: int = TYPING_DELAY_MS
    drag_steps: int = DRAG_STEPS
    drag_step_delay_ms: int = DRAG_STEP_DELAY_MS
    command_delay_ms: int = 0

    # Host page integration
    window_manager_global: str = "__shadowplayHost"
    training_marker: str = TRAINING_MARKER_ATTRIBUTE

    @classmethod
    def from_file(cls, config_path: Path) -> ShadowplayConfig:
        """Load config from a YAML file."""
        if not config_path.exists():
            raise ShadowplayConfigError(f"Config file not found: {config_path}\n\nTo fix: shadowplay init")
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ShadowplayConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ShadowplayConfigError(
                f"Config file is not a mapping: {config_path}\n\nTo fix: shadowplay init --force"
            )
        return cls._from_dict(data, config_path.parent)

    @classmethod
    def for_project(cls, project_dir: Path) -> ShadowplayConfig:
        """Load ``config.yaml`` from *project_dir*, or defaults rooted there."""
        config_path = project_dir / "config.yaml"
        if config_path.is_file():
            return cls.from_file(config_path)
        return cls._from_dict({}, project_dir)

    @classmethod
    def _from_dict(cls, data: dict[str, Any], project_dir: Path) -> ShadowplayConfig:
        """Create config from a dictionary."""
        config = cls()
        config.project_dir = project_dir

        config.sessions_dir = project_dir / data.get("sessions_dir", "sessions")
        config.store_path = project_dir / data.get("store_path", "knowledge.json")
        config.reports_dir = project_dir / data.get("reports_dir", "reports")

        if "base_url" in data:
            config.base_url = str(data["base_url"] or "")
        if "headless" in data:
            config.headless = bool(data["headless"])
        if "locale" in data:
            config.locale = str(data["locale"])
        if "user_id" in data:
            config.user_id = str(data["user_id"])
        if "viewport" in data:
            vp = data["viewport"]
            if isinstance(vp, dict):
                config.viewport = (int(vp.get("width", 1280)), int(vp.get("height", 720)))

        try:
            if "typing_delay_ms" in data:
                config.typing_delay_ms = int(data["typing_delay_ms"])
            if "drag_steps" in data:
                config.drag_steps = int(data["drag_steps"])
            if "drag_step_delay_ms" in data:
                config.drag_step_delay_ms = int(data["drag_step_delay_ms"])
            if "command_delay_ms" in data:
                config.command_delay_ms = int(data["command_delay_ms"])
        except (TypeError, ValueError) as exc:
            raise ShadowplayConfigError(
                f"Invalid pacing value in config: {exc}\n\nTo fix: use whole milliseconds"
            ) from exc

        if config.drag_steps < 1:
            raise ShadowplayConfigError("drag_steps must be at least 1")

        if "window_manager_global" in data:
            config.window_manager_global = str(data["window_manager_global"])
        if "training_marker" in data:
            config.training_marker = str(data["training_marker"])

        return config

    def task_sessions_dir(self, task_name: str) -> Path:
        """Directory holding the recorded sessions of one task."""
        safe = "".join(c if c.isalnum() or c in "-_" else "-" for c in task_name.strip().lower())
        if not safe.strip("-"):
            raise ShadowplayConfigError(f"Task name has no usable characters: {task_name!r}")
        return self.sessions_dir / safe
