"""Shared runtime helpers for CLI entrypoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import typer

from offcron.cli.console import console, error

if TYPE_CHECKING:
    from offcron.config import OffcronConfig
    from offcron.scheduling import Scheduler


def load_cli_config(path: Path | None) -> OffcronConfig:
    """Load config for a command, exiting with a message on failure."""
    from pydantic import ValidationError

    from offcron.config import load_config

    try:
        return load_config(path)
    except FileNotFoundError as e:
        error(str(e))
        raise typer.Exit(1) from None
    except ValidationError as e:
        error("Configuration validation failed:")
        for err in e.errors():
            loc = ".".join(str(x) for x in err["loc"])
            console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
        raise typer.Exit(1) from None
    except Exception as e:
        error(f"Error loading config: {e}")
        raise typer.Exit(1) from None


@asynccontextmanager
async def open_scheduler(
    config: OffcronConfig, bootstrap: Path | None = None
) -> AsyncIterator[Scheduler]:
    """Scheduler wired from config, connected for the duration of the block."""
    from offcron.scheduling import Scheduler

    scheduler = Scheduler.from_config(config, bootstrap_path=bootstrap)
    await scheduler.setup()
    try:
        yield scheduler
    finally:
        await scheduler.close()
