"""Configuration models using Pydantic."""

import logging
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from offcron.config.paths import get_database_path

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error."""

    pass


class DatabaseConfig(BaseModel):
    """Configuration for the job store.

    `url` takes precedence over `path` when both are set.
    """

    path: Path = Field(default_factory=get_database_path)
    url: str | None = None


class RunnerConfig(BaseModel):
    """Configuration for the runner process and its trigger.

    max_run_time bounds one runner invocation across every self-ping cycle.
    run_interval is both the minimum spacing between triggered runs and the
    sleep between self-ping cycles.
    """

    max_run_time: int = Field(default=600, gt=0)
    run_interval: int = Field(default=60, gt=0)
    self_pinging: bool = False

    # Runner endpoint the trigger POSTs the handoff payload to
    url: str = "http://127.0.0.1:8765/runner"
    trigger_timeout: float = Field(default=0.5, gt=0)

    # Handoff data: host bootstrap file and the key the facade is provided under
    bootstrap: Path | None = None
    dispatch_key: str | None = None


class ServerConfig(BaseModel):
    """Configuration for the runner HTTP server."""

    host: str = "127.0.0.1"
    port: int = 8765


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: str = "INFO"
    log_to_file: bool = False
    retention_days: int = Field(default=7, gt=0)


class OffcronConfig(BaseModel):
    """Root configuration model."""

    # Must be unique environment-wide; keys the runner state row
    instance_id: str = "offcron"
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _validate_self_pinging(self) -> "OffcronConfig":
        """A self-pinging runner needs room for at least one sleep."""
        if self.runner.self_pinging and (
            self.runner.max_run_time <= self.runner.run_interval
        ):
            raise ValueError(
                "runner.max_run_time must exceed runner.run_interval "
                "when runner.self_pinging is enabled"
            )
        return self

    @model_validator(mode="after")
    def _validate_instance_id(self) -> "OffcronConfig":
        if not self.instance_id.strip():
            raise ValueError("instance_id cannot be empty")
        return self

    @property
    def dispatch_key(self) -> str:
        """Key the scheduler is provided under in the dispatch registry."""
        from offcron.dispatch import default_dispatch_key

        return self.runner.dispatch_key or default_dispatch_key(self.instance_id)

    def database_url(self) -> str:
        """Resolve the SQLAlchemy URL for the job store."""
        if self.database.url:
            return self.database.url
        return f"sqlite+aiosqlite:///{self.database.path}"
