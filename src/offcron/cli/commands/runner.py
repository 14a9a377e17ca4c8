"""Runner state commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from offcron.cli.console import console, create_table, error, success


def register(app: typer.Typer) -> None:
    """Register the runner command."""

    @app.command()
    def runner(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: status, reset"),
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
        """Inspect or reset the runner state.

        reset forces the state back to IDLE, for when a runner died without
        cleaning up and you do not want to wait for stale-state recovery.
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from offcron.cli.runtime import load_cli_config

        offcron_config = load_cli_config(config)

        if action == "status":
            asyncio.run(_runner_status(offcron_config))

        elif action == "reset":
            asyncio.run(_runner_reset(offcron_config))

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: status, reset")
            raise typer.Exit(1)


async def _runner_status(config) -> None:
    from offcron.cli.runtime import open_scheduler

    async with open_scheduler(config) as scheduler:
        snapshot = await scheduler.status()
        pending = len(await scheduler.pending())

    table = create_table("Runner", [("Setting", "cyan"), ("Value", "green")])
    table.add_row("Instance", snapshot.instance_id)
    table.add_row("State", snapshot.state.name)
    table.add_row(
        "Last run",
        snapshot.last_run_at.isoformat() if snapshot.last_run_at else "[dim]never[/dim]",
    )
    table.add_row(
        "Updated",
        snapshot.updated_at.isoformat() if snapshot.updated_at else "[dim]never[/dim]",
    )
    table.add_row("Pending jobs", str(pending))
    table.add_row("Max run time", f"{config.runner.max_run_time}s")
    table.add_row("Run interval", f"{config.runner.run_interval}s")
    table.add_row("Self-pinging", "yes" if config.runner.self_pinging else "no")
    console.print(table)


async def _runner_reset(config) -> None:
    from offcron.cli.runtime import open_scheduler

    async with open_scheduler(config) as scheduler:
        await scheduler.runner.reset()

    success("Runner state reset to IDLE")
