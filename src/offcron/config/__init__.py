"""Configuration module."""

from offcron.config.loader import get_default_config, load_config
from offcron.config.models import (
    ConfigError,
    DatabaseConfig,
    LoggingConfig,
    OffcronConfig,
    RunnerConfig,
    ServerConfig,
)
from offcron.config.paths import (
    get_config_path,
    get_database_path,
    get_logs_path,
    get_offcron_home,
)

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "LoggingConfig",
    "OffcronConfig",
    "RunnerConfig",
    "ServerConfig",
    "get_config_path",
    "get_database_path",
    "get_default_config",
    "get_logs_path",
    "get_offcron_home",
    "load_config",
]
