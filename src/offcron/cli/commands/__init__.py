"""CLI command modules."""

from offcron.cli.commands import config, jobs, run, runner, serve, trigger

__all__ = [
    "config",
    "jobs",
    "run",
    "runner",
    "serve",
    "trigger",
]
