"""Read auditlens settings files from disk.

Settings live in ``default.toml`` with an optional per-environment file
(``development.toml``, ``production.toml`` and so on) layered over it.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "AUDITLENS_CONFIG_DIR"
ENVIRONMENT_ENV = "AUDITLENS_ENV"
DEFAULT_ENVIRONMENT = "development"

# How many directories above the working directory to search for config/
SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Directory holding the auditlens TOML files.

    An explicit AUDITLENS_CONFIG_DIR must exist. Without it, the working
    directory and its ancestors are searched for a ``config/`` folder, so
    tests and scripts run from a subdirectory still find the project files.
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        config_dir = Path(explicit)
        if not config_dir.exists():
            raise FileNotFoundError(f"{CONFIG_DIR_ENV} points to a missing directory: {explicit}")
        return config_dir

    cwd = Path.cwd()
    for directory in [cwd, *cwd.parents][:SEARCH_DEPTH]:
        if (directory / "config").exists():
            return directory / "config"

    return Path("config")


def get_environment() -> str:
    """Name of the environment overlay to apply."""
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one settings file.

    Raises:
        FileNotFoundError: If ``file_path`` does not exist
        tomllib.TOMLDecodeError: If the file is not valid TOML
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Settings file not found: {file_path}")

    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Layer ``override`` on ``base`` without mutating either.

    Tables present on both sides are merged key by key; any other value in
    ``override`` replaces the one in ``base`` outright.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config() -> dict[str, Any]:
    """Raw settings for the current environment.

    Returns an empty mapping when there is no ``default.toml``; every
    setting then comes from the model defaults and the environment.
    """
    config_dir = get_config_dir()
    default_file = config_dir / "default.toml"
    if not default_file.exists():
        return {}

    config = load_toml(default_file)

    overlay = config_dir / f"{get_environment()}.toml"
    if overlay.exists():
        config = deep_merge(config, load_toml(overlay))

    return config
