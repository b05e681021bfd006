"""Knowledge-store secret and storage-key resolution for Shadowplay."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from shadowplay.models import DEFAULT_STORE_SECRET

logger = logging.getLogger("shadowplay.credentials")

SECRET_ENV_VAR = "SHADOWPLAY_STORE_SECRET"
STORAGE_KEY_FILE = "store.key"


def resolve_store_secret(project_dir: Path | None = None) -> str:
    """Resolve the shared secret the knowledge-store key is derived from.

    Resolution order (highest priority first):
    1. SHADOWPLAY_STORE_SECRET environment variable
    2. .env file in current directory
    3. Project config (.shadowplay/config.yaml)
    4. Global config (~/.shadowplay/config.yaml)
    5. Built-in shared default (logged; offers no real confidentiality)
    """
    # 1. Environment variable
    if secret := os.environ.get(SECRET_ENV_VAR):
        return secret

    # 2. .env file
    env_path = Path(".env")
    if env_path.exists():
        secret = _parse_env_file(env_path, SECRET_ENV_VAR)
        if secret:
            return secret

    # 3. Project config
    if project_dir:
        config_path = project_dir / "config.yaml"
        if config_path.exists():
            secret = _parse_yaml_secret(config_path)
            if secret:
                return secret

    # 4. Global config
    global_config = Path.home() / ".shadowplay" / "config.yaml"
    if global_config.exists():
        secret = _parse_yaml_secret(global_config)
        if secret:
            return secret

    logger.warning(
        "No store secret configured; using the built-in shared secret. "
        "Set %s for per-installation encryption.",
        SECRET_ENV_VAR,
    )
    return DEFAULT_STORE_SECRET


def identify_secret_source(project_dir: Path | None = None) -> str:
    """Describe where resolve_store_secret() would take the secret from."""
    if os.environ.get(SECRET_ENV_VAR):
        return f"env: {SECRET_ENV_VAR}"
    env_path = Path(".env")
    if env_path.exists() and _parse_env_file(env_path, SECRET_ENV_VAR):
        return ".env file"
    if project_dir and (project_dir / "config.yaml").exists() and _parse_yaml_secret(project_dir / "config.yaml"):
        return "config.yaml"
    global_config = Path.home() / ".shadowplay" / "config.yaml"
    if global_config.exists() and _parse_yaml_secret(global_config):
        return "~/.shadowplay/config.yaml"
    return "built-in default"


def load_storage_key(project_dir: Path) -> str | None:
    """Return the persisted storage key name for this project, if any."""
    key_path = project_dir / STORAGE_KEY_FILE
    if not key_path.is_file():
        return None
    name = key_path.read_text(encoding="utf-8").strip()
    return name or None


def save_storage_key(project_dir: Path, storage_key: str) -> Path:
    """Persist the storage key name chosen by a store instance."""
    project_dir.mkdir(parents=True, exist_ok=True)
    key_path = project_dir / STORAGE_KEY_FILE
    key_path.write_text(storage_key + "\n", encoding="utf-8")
    return key_path


def mask_key(key: str) -> str:
    """Mask a secret for display. Shows first 4 and last 2 chars."""
    if len(key) <= 8:
        return "***"
    return f"{key[:4]}...{key[-2:]}"


def _parse_env_file(path: Path, key_name: str) -> str | None:
    """Parse a .env file for a specific key."""
    try:
        with open(path) as f:
            for line in f:
                line = line.strip()
                if line.startswith("#") or "=" not in line:
                    continue
                k, _, v = line.partition("=")
                if k.strip() == key_name:
                    return v.strip().strip("'\"")
    except OSError:
        pass
    return None


def _parse_yaml_secret(path: Path) -> str | None:
    """Parse a YAML config file for the store secret."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return None
        return data.get("store_secret") or None
    except (OSError, yaml.YAMLError):
        pass
    return None


def resolve_storage_key(project_dir: Path, explicit: str | None = None) -> str | None:
    """Storage key name to open the store with.

    An explicit name wins; otherwise the persisted one, or None when the
    store should choose (and the caller persist) a fresh name.
    """
    if explicit:
        return explicit
    return load_storage_key(project_dir)
