"""Runner entry point command."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer


def register(app: typer.Typer) -> None:
    """Register the run command."""

    @app.command()
    def run(
        bootstrap: Annotated[
            Path,
            typer.Option(
                "--bootstrap",
                "-b",
                help="Host bootstrap file that provides the scheduler",
            ),
        ],
        key: Annotated[
            str | None,
            typer.Option(
                "--key",
                "-k",
                help="Dispatch key the scheduler is provided under",
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
        """Run one runner invocation in this process.

        The runner state must already be PREPARING (normally set by a
        trigger); a runner invoked while IDLE exits without running jobs.
        """
        from offcron.cli.runtime import load_cli_config
        from offcron.daemon import DaemonOutcome, run_daemon
        from offcron.logging import configure_logging

        offcron_config = load_cli_config(config)
        configure_logging(
            level=offcron_config.logging.level,
            log_to_file=offcron_config.logging.log_to_file,
            retention_days=offcron_config.logging.retention_days,
        )

        payload = {
            "bootstrap_path": str(bootstrap.expanduser().resolve()),
            "dispatch_key": key or offcron_config.dispatch_key,
        }
        try:
            outcome = asyncio.run(run_daemon(payload, install_signal_handlers=True))
        except asyncio.CancelledError:
            raise typer.Exit(1) from None

        if outcome != DaemonOutcome.COMPLETED:
            raise typer.Exit(1)
