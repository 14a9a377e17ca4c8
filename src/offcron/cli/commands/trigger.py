"""Trigger command: start a runner if one is due."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from offcron.cli.console import dim, error, success


def register(app: typer.Typer) -> None:
    """Register the trigger command."""

    @app.command()
    def trigger(
        bootstrap: Annotated[
            Path | None,
            typer.Option(
                "--bootstrap",
                "-b",
                help="Host bootstrap file (default: runner.bootstrap)",
            ),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """Trigger a runner if the runner is idle and work is due.

        Suitable for an external timer (cron, systemd) that only needs to
        poke the scheduler now and then.
        """
        from offcron.cli.runtime import load_cli_config, open_scheduler
        from offcron.config import ConfigError

        offcron_config = load_cli_config(config)

        async def do_trigger() -> bool:
            async with open_scheduler(offcron_config, bootstrap) as scheduler:
                return await scheduler.maybe_trigger()

        try:
            triggered = asyncio.run(do_trigger())
        except ConfigError as e:
            error(str(e))
            raise typer.Exit(1) from None

        if triggered:
            success("Runner triggered")
        else:
            dim("Nothing to do")
