"""Centralized path management for offcron.

All state (config, database, logs) is stored under a single base directory.
The base directory can be overridden with the OFFCRON_HOME environment variable.

Default locations:
- Linux/macOS: ~/.offcron
- Windows: %USERPROFILE%\\.offcron
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "OFFCRON_HOME"


@lru_cache(maxsize=1)
def get_offcron_home() -> Path:
    """Get the base directory for all offcron data.

    Resolution order:
    1. OFFCRON_HOME environment variable (if set)
    2. Platform default (~/.offcron)

    Returns:
        Path to the offcron home directory.
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".offcron"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_offcron_home() / "config.toml"


def get_database_path() -> Path:
    """Get the default SQLite database path."""
    return get_offcron_home() / "offcron.db"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_offcron_home() / "logs"
