"""Server command for running the runner endpoint."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
        host: Annotated[
            str | None,
            typer.Option(
                "--host",
                "-h",
                help="Host to bind to (default: server.host)",
            ),
        ] = None,
        port: Annotated[
            int | None,
            typer.Option(
                "--port",
                "-p",
                help="Port to bind to (default: server.port)",
            ),
        ] = None,
    ) -> None:
        """Start the runner server.

        Triggers POST handoffs to /runner; each one starts a runner in the
        background.
        """
        try:
            asyncio.run(_run_server(config, host, port))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nServer stopped")


async def _run_server(
    config_path: Path | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the server asynchronously."""
    from offcron.cli.runtime import load_cli_config
    from offcron.logging import configure_logging
    from offcron.scheduling import Scheduler
    from offcron.server import OffcronServer, ServerRunner

    offcron_config = load_cli_config(config_path)
    configure_logging(
        level=offcron_config.logging.level,
        use_rich=True,
        log_to_file=offcron_config.logging.log_to_file,
        retention_days=offcron_config.logging.retention_days,
    )

    scheduler = Scheduler.from_config(offcron_config)
    if scheduler.handoff is None:
        logger.warning(
            "runner_bootstrap_not_configured",
            extra={"hint": "set runner.bootstrap; /runner refuses every handoff"},
        )
    server = OffcronServer(scheduler=scheduler)

    runner = ServerRunner(
        server.app,
        host=host or offcron_config.server.host,
        port=port or offcron_config.server.port,
    )
    await runner.run()
