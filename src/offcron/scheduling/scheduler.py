"""Scheduler facade: repository + runner + hooks + trigger."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from offcron.config.models import ConfigError
from offcron.db.engine import Database
from offcron.errors import HandlerError
from offcron.scheduling.args import normalize_args
from offcron.scheduling.hooks import HookRegistry
from offcron.scheduling.repository import JobRepository
from offcron.scheduling.runner import Clock, DaemonRunner, Sleep
from offcron.scheduling.trigger import HttpTrigger, Trigger
from offcron.scheduling.types import (
    BatchResult,
    HandoffPayload,
    Job,
    RunnerSnapshot,
    truncate,
    utc_now,
)

if TYPE_CHECKING:
    from offcron.config import OffcronConfig

logger = logging.getLogger(__name__)


class Scheduler:
    """Entry point for host code and for the runner process.

    Host code schedules and cancels jobs and calls maybe_trigger() on
    whatever external event it has (an inbound request, a timer). The runner
    process calls run_batch() from inside the runner loop.

    Example:
        scheduler = Scheduler.from_config(config, bootstrap_path="bootstrap.py")

        @scheduler.hooks.on("send_digest")
        async def send_digest(user_id):
            ...

        await scheduler.setup()
        await scheduler.schedule("send_digest", [42], delay=300, recurrence=86400)
        await scheduler.maybe_trigger()
    """

    def __init__(
        self,
        database: Database,
        *,
        runner: DaemonRunner,
        hooks: HookRegistry | None = None,
        trigger: Trigger | None = None,
        handoff: HandoffPayload | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._database = database
        self._repository = JobRepository(database)
        self._runner = runner
        self._hooks = hooks or HookRegistry()
        self._trigger = trigger
        self._handoff = handoff
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: OffcronConfig,
        *,
        hooks: HookRegistry | None = None,
        trigger: Trigger | None = None,
        bootstrap_path: str | Path | None = None,
        clock: Clock = utc_now,
        sleep: Sleep | None = None,
    ) -> Scheduler:
        """Build a scheduler wired from configuration.

        The handoff payload is only built when a bootstrap path is known
        (argument or `runner.bootstrap`); without one the instance can run
        batches but cannot trigger.
        """
        database = Database(
            database_url=config.database.url, database_path=config.database.path
        )
        runner_kwargs: dict[str, Any] = {"clock": clock}
        if sleep is not None:
            runner_kwargs["sleep"] = sleep
        runner = DaemonRunner.from_config(
            database, config.instance_id, config.runner, **runner_kwargs
        )

        bootstrap = bootstrap_path or config.runner.bootstrap
        handoff = None
        if bootstrap is not None:
            handoff = HandoffPayload(
                bootstrap_path=str(Path(bootstrap).expanduser().resolve()),
                dispatch_key=config.dispatch_key,
            )

        if trigger is None:
            trigger = HttpTrigger(
                config.runner.url, timeout=config.runner.trigger_timeout
            )

        return cls(
            database,
            runner=runner,
            hooks=hooks,
            trigger=trigger,
            handoff=handoff,
            clock=clock,
        )

    @property
    def database(self) -> Database:
        return self._database

    @property
    def repository(self) -> JobRepository:
        return self._repository

    @property
    def runner(self) -> DaemonRunner:
        return self._runner

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def handoff(self) -> HandoffPayload | None:
        return self._handoff

    @property
    def instance_id(self) -> str:
        return self._runner.instance_id

    def now(self) -> datetime:
        return truncate(self._clock())

    async def setup(self) -> None:
        """Connect and create tables. Safe to call more than once."""
        await self._database.connect()
        await self._database.create_tables()

    async def close(self) -> None:
        await self._database.disconnect()

    # ------------------------------------------------------------------
    # Job management
    # ------------------------------------------------------------------

    async def schedule(
        self,
        hook: str,
        args: Mapping[int, Any] | Sequence[Any] | None = None,
        *,
        due_at: datetime | None = None,
        delay: float = 0,
        recurrence: int | None = None,
        job_id: int | None = None,
    ) -> int:
        """Schedule `hook(*args)` at `due_at`, or `delay` seconds from now."""
        if due_at is None:
            due_at = self.now() + timedelta(seconds=delay)
        job = Job(
            due_at=due_at,
            hook=hook,
            args=normalize_args(args),
            recurrence=recurrence,
            id=job_id,
        )
        return await self.schedule_job(job)

    async def schedule_job(self, job: Job) -> int:
        job_id = await self._repository.schedule(job)
        logger.info(
            "job_scheduled",
            extra={
                "job.id": job_id,
                "job.hook": job.hook,
                "job.due_at": job.due_at.isoformat(),
                "job.recurrence": job.recurrence,
            },
        )
        return job_id

    async def cancel(
        self,
        hook: str,
        args: Mapping[int, Any] | Sequence[Any] | None = None,
        recurrence: int | None = None,
    ) -> bool:
        cancelled = await self._repository.cancel(hook, args, recurrence)
        if cancelled:
            logger.info("job_cancelled", extra={"job.hook": hook})
        return cancelled

    async def get_scheduled(
        self,
        hook: str,
        args: Mapping[int, Any] | Sequence[Any] | None = None,
        recurrence: int | None = None,
    ) -> Job:
        return await self._repository.get_scheduled(hook, args, recurrence)

    async def jobs(self) -> list[Job]:
        return await self._repository.fetch_all()

    async def pending(self, now: datetime | None = None) -> list[Job]:
        return await self._repository.fetch_pending(now or self.now())

    async def status(self) -> RunnerSnapshot:
        return await self._runner.snapshot()

    # ------------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------------

    async def maybe_trigger(self, now: datetime | None = None) -> bool:
        """Start a runner if one is due. Returns True if a trigger was sent.

        Only the runner state decides; there is no separate rate limit. A
        trigger that cannot be delivered puts the runner back to IDLE so the
        next call can try again.

        Raises:
            ConfigError: No handoff payload or trigger is configured.
        """
        if self._handoff is None or self._trigger is None:
            raise ConfigError(
                "Scheduler cannot trigger a runner without a bootstrap path"
            )
        now = truncate(now or self.now())

        await self._runner.recover_stale(now)
        has_pending = await self._repository.count_pending(now) > 0
        if not await self._runner.should_trigger(now, has_pending):
            return False
        if not await self._runner.prepare(now):
            return False

        delivered = False
        try:
            delivered = await self._trigger.fire(self._handoff)
        finally:
            if not delivered:
                await self._runner.finish(now)
        return delivered

    # ------------------------------------------------------------------
    # Batch execution (runner process)
    # ------------------------------------------------------------------

    async def run_batch(self, now: datetime | None = None) -> BatchResult:
        """Execute every job pending at `now`, one at a time, in store order.

        A handler failure is logged and leaves its job untouched so it is
        picked up again on the next pass; the rest of the batch carries on.
        Storage errors propagate and end the batch.
        """
        now = truncate(now or self.now())
        result = BatchResult()

        for job in await self._repository.fetch_pending(now):
            assert job.id is not None
            try:
                await self._hooks.dispatch(job.hook, job.arg_values())
            except Exception as e:
                failure = HandlerError(job.id, job.hook, e)
                logger.error(
                    "job_failed",
                    exc_info=True,
                    extra={
                        "job.id": job.id,
                        "job.hook": job.hook,
                        "error.message": str(failure),
                    },
                )
                result.failed.append(job.id)
                continue

            result.executed.append(job.id)
            next_due = job.next_occurrence(now)
            if next_due is not None:
                if await self._repository.reschedule(job.id, next_due):
                    result.rescheduled.append(job.id)
                else:
                    logger.debug(
                        "job_cancelled_while_running",
                        extra={"job.id": job.id, "job.hook": job.hook},
                    )
            else:
                await self._repository.delete_by_id(job.id)
                result.deleted.append(job.id)

        if result.total:
            logger.info(
                "batch_completed",
                extra={
                    "batch.executed": len(result.executed),
                    "batch.failed": len(result.failed),
                    "batch.rescheduled": len(result.rescheduled),
                    "batch.deleted": len(result.deleted),
                },
            )
        return result
