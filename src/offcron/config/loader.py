"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from offcron.config.models import OffcronConfig
from offcron.config.paths import get_config_path


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("offcron.toml"),  # Current directory
        get_config_path(),  # ~/.offcron/config.toml (or OFFCRON_HOME)
        Path("/etc/offcron/config.toml"),  # System-wide
    ]


def _resolve_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment overrides where the file leaves a value unset."""
    mappings = [
        ("database", "url", "OFFCRON_DATABASE_URL"),
        ("runner", "url", "OFFCRON_RUNNER_URL"),
        ("logging", "level", "OFFCRON_LOG_LEVEL"),
    ]
    for section_key, key, env_var in mappings:
        value = os.environ.get(env_var)
        if not value:
            continue
        section = config.setdefault(section_key, {})
        if section.get(key) is None:
            section[key] = value
    return config


def load_config(path: Path | None = None) -> OffcronConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated OffcronConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ValueError: If config file is invalid.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    # Unlike an explicit path, a missing default file just means defaults
    raw_config: dict[str, Any] = {}
    if config_path is not None:
        with config_path.open("rb") as f:
            raw_config = tomllib.load(f)

    raw_config = _resolve_env_overrides(raw_config)

    return OffcronConfig.model_validate(raw_config)


def get_default_config() -> OffcronConfig:
    """Get a default configuration for development/testing."""
    return OffcronConfig()
