"""Job management commands."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any

import click
import typer

from offcron.cli.console import (
    confirm_or_cancel,
    console,
    create_table,
    error,
    success,
    warning,
)


def _parse_arg(raw: str) -> Any:
    """Parse a CLI argument as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _format_due(due_at: datetime, now: datetime) -> str:
    """Format a due time with a short relative hint."""
    stamp = due_at.strftime("%Y-%m-%d %H:%M:%S")
    if due_at <= now:
        return f"{stamp} [green](due)[/green]"
    seconds = int((due_at - now).total_seconds())
    if seconds < 60:
        return f"{stamp} [dim](in {seconds}s)[/dim]"
    if seconds < 3600:
        return f"{stamp} [dim](in {seconds // 60}m)[/dim]"
    return f"{stamp} [dim](in {seconds // 3600}h)[/dim]"


def register(app: typer.Typer) -> None:
    """Register the jobs command."""

    @app.command()
    def jobs(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: list, schedule, cancel, clear"),
        ] = None,
        hook: Annotated[
            str | None,
            typer.Option("--hook", "-H", help="Hook name"),
        ] = None,
        args: Annotated[
            list[str] | None,
            typer.Option(
                "--arg",
                "-a",
                help="Hook argument, repeatable; parsed as JSON when possible",
            ),
        ] = None,
        delay: Annotated[
            int,
            typer.Option("--delay", "-d", help="Seconds from now until due"),
        ] = 0,
        recurrence: Annotated[
            int | None,
            typer.Option(
                "--recurrence", "-r", help="Repeat every N seconds (recurring jobs)"
            ),
        ] = None,
        job_id: Annotated[
            int | None,
            typer.Option("--id", "-i", help="Job ID (update on schedule, cancel)"),
        ] = None,
        force: Annotated[
            bool,
            typer.Option(
                "--force",
                "-f",
                help="Force action without confirmation",
            ),
        ] = False,
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """Manage scheduled jobs.

        Examples:
            offcron jobs list
            offcron jobs schedule --hook send_digest --arg 42 --delay 300
            offcron jobs schedule --hook cleanup --recurrence 3600
            offcron jobs cancel --hook send_digest --arg 42
            offcron jobs cancel --id 7
            offcron jobs clear --force
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from offcron.cli.runtime import load_cli_config

        offcron_config = load_cli_config(config)
        hook_args = [_parse_arg(raw) for raw in args or []]

        if action == "list":
            asyncio.run(_jobs_list(offcron_config))

        elif action == "schedule":
            if not hook:
                error("--hook is required for schedule")
                raise typer.Exit(1)
            asyncio.run(
                _jobs_schedule(
                    offcron_config, hook, hook_args, delay, recurrence, job_id
                )
            )

        elif action == "cancel":
            if job_id is None and not hook:
                error("--hook or --id is required for cancel")
                raise typer.Exit(1)
            asyncio.run(_jobs_cancel(offcron_config, hook, hook_args, recurrence, job_id))

        elif action == "clear":
            if not confirm_or_cancel("Delete all scheduled jobs?", force):
                return
            asyncio.run(_jobs_clear(offcron_config))

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: list, schedule, cancel, clear")
            raise typer.Exit(1)


async def _jobs_list(config) -> None:
    """List all scheduled jobs."""
    from offcron.cli.runtime import open_scheduler

    async with open_scheduler(config) as scheduler:
        all_jobs = await scheduler.jobs()
        now = scheduler.now()

    if not all_jobs:
        warning("No scheduled jobs found")
        return

    table = create_table(
        "Scheduled Jobs",
        [
            ("ID", {"style": "dim", "justify": "right"}),
            ("Hook", "cyan"),
            ("Args", ""),
            ("Due", ""),
            ("Every", {"justify": "right"}),
        ],
    )
    for job in all_jobs:
        table.add_row(
            str(job.id),
            job.hook,
            json.dumps(job.arg_values()),
            _format_due(job.due_at, now),
            f"{job.recurrence}s" if job.recurrence else "[dim]once[/dim]",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(all_jobs)} job(s)[/dim]")


async def _jobs_schedule(
    config,
    hook: str,
    hook_args: list[Any],
    delay: int,
    recurrence: int | None,
    job_id: int | None,
) -> None:
    """Schedule (or update) a job."""
    from offcron.cli.runtime import open_scheduler

    async with open_scheduler(config) as scheduler:
        try:
            new_id = await scheduler.schedule(
                hook,
                hook_args,
                delay=delay,
                recurrence=recurrence,
                job_id=job_id,
            )
        except ValueError as e:
            error(str(e))
            raise typer.Exit(1) from None

    success(f"Scheduled job {new_id} ({hook})")


async def _jobs_cancel(
    config,
    hook: str | None,
    hook_args: list[Any],
    recurrence: int | None,
    job_id: int | None,
) -> None:
    """Cancel a job by id, or by (hook, args, recurrence)."""
    from offcron.cli.runtime import open_scheduler
    from offcron.scheduling import Found

    async with open_scheduler(config) as scheduler:
        if job_id is not None:
            match await scheduler.repository.find_by_id(job_id):
                case Found(job):
                    await scheduler.repository.delete_by_id(job_id)
                    cancelled_hook: str | None = job.hook
                case _:
                    cancelled_hook = None
        else:
            assert hook is not None
            cancelled = await scheduler.cancel(hook, hook_args, recurrence)
            cancelled_hook = hook if cancelled else None

    if cancelled_hook is None:
        warning("No matching job found")
        return
    success(f"Cancelled job ({cancelled_hook})")


async def _jobs_clear(config) -> None:
    """Delete every scheduled job."""
    from offcron.cli.runtime import open_scheduler

    async with open_scheduler(config) as scheduler:
        removed = await scheduler.repository.clear()

    success(f"Cleared {removed} job(s)")
