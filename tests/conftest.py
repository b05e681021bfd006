"""Shared fixtures for Shadowplay unit tests."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from fakes import FakeClock, FakeInjector, FakeSurface, FakeUITree, FakeWindowManager


# ---------------------------------------------------------------------------
# Fixture: temporary project directory with .shadowplay/ structure
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary .shadowplay/ project directory with a minimal config."""
    project_dir = tmp_path / ".shadowplay"
    for sub in ("sessions", "reports"):
        (project_dir / sub).mkdir(parents=True)

    config_data = {
        "base_url": "http://localhost:3000",
        "headless": True,
        "viewport": {"width": 1280, "height": 720},
        "typing_delay_ms": 0,
    }
    (project_dir / "config.yaml").write_text(yaml.dump(config_data, default_flow_style=False), encoding="utf-8")
    return project_dir


# ---------------------------------------------------------------------------
# Fixture: isolated secret sources (no real env, .env or home config leaks in)
# ---------------------------------------------------------------------------

@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.delenv("SHADOWPLAY_STORE_SECRET", raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir


# ---------------------------------------------------------------------------
# Fixture: port doubles
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def injector() -> FakeInjector:
    return FakeInjector()


@pytest.fixture
def window_manager() -> FakeWindowManager:
    return FakeWindowManager()


@pytest.fixture
def ui_tree() -> FakeUITree:
    return FakeUITree()
