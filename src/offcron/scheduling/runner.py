"""Runner state machine.

State lives in the `runner_state` table, one row per scheduler instance, so
the triggering process and the runner process see the same value. Nothing
here is held as a process global.

    IDLE --prepare--> PREPARING --begin--> RUNNING --finish--> IDLE
                          ^                   |
                          +--continue_cycle---+   (self-pinging only)

Transitions are read-then-write without a lock. The PREPARING state narrows
the window in which two triggers can both fire; it does not close it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from offcron.db.engine import Database
from offcron.db.table import Table, format_timestamp, parse_timestamp
from offcron.errors import StaleStateError
from offcron.scheduling.types import RunnerSnapshot, RunnerState, truncate, utc_now

if TYPE_CHECKING:
    from offcron.config import RunnerConfig

logger = logging.getLogger(__name__)

RUNNER_STATE_TABLE = "runner_state"

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[Any]]


class DaemonRunner:
    """Tracks run state, last-run time and the self-ping loop for one instance."""

    def __init__(
        self,
        database: Database,
        instance_id: str,
        *,
        max_run_time: int = 600,
        run_interval: int = 60,
        self_pinging: bool = False,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_run_time <= 0 or run_interval <= 0:
            raise ValueError("max_run_time and run_interval must be positive")
        self._table = Table(database, RUNNER_STATE_TABLE)
        self._instance_id = instance_id
        self._max_run_time = max_run_time
        self._run_interval = run_interval
        self._self_pinging = self_pinging
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        database: Database,
        instance_id: str,
        config: RunnerConfig,
        **kwargs: Any,
    ) -> DaemonRunner:
        return cls(
            database,
            instance_id,
            max_run_time=config.max_run_time,
            run_interval=config.run_interval,
            self_pinging=config.self_pinging,
            **kwargs,
        )

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def max_run_time(self) -> int:
        return self._max_run_time

    @property
    def run_interval(self) -> int:
        return self._run_interval

    @property
    def is_self_pinging(self) -> bool:
        return self._self_pinging

    def now(self) -> datetime:
        return truncate(self._clock())

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    async def snapshot(self) -> RunnerSnapshot:
        rows = await self._table.fetch(
            '"instance_id" = :instance_id', {"instance_id": self._instance_id}
        )
        if not rows:
            return RunnerSnapshot(instance_id=self._instance_id)
        row = rows[0]
        return RunnerSnapshot(
            instance_id=self._instance_id,
            state=RunnerState(row.state),
            last_run_at=parse_timestamp(row.last_run_at) if row.last_run_at else None,
            updated_at=parse_timestamp(row.updated_at) if row.updated_at else None,
        )

    async def get_state(self) -> RunnerState:
        return (await self.snapshot()).state

    async def set_state(self, state: RunnerState, now: datetime | None = None) -> None:
        now = now or self.now()
        await self._write(
            {"state": int(state), "updated_at": format_timestamp(now)}
        )
        logger.debug(
            "runner_state_changed",
            extra={"runner.instance_id": self._instance_id, "runner.state": state.name},
        )

    async def get_last_run_time(self) -> datetime | None:
        return (await self.snapshot()).last_run_at

    async def set_last_run_time(self, when: datetime | None = None) -> None:
        await self._write({"last_run_at": format_timestamp(when or self.now())})

    async def _write(self, fields: dict[str, Any]) -> None:
        updated = await self._table.update(
            fields, '"instance_id" = :instance_id', {"instance_id": self._instance_id}
        )
        if updated:
            return
        row: dict[str, Any] = {
            "instance_id": self._instance_id,
            "state": int(RunnerState.IDLE),
            "last_run_at": None,
            "updated_at": None,
        }
        row.update(fields)
        await self._table.insert(row)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def should_trigger(self, now: datetime, has_pending: bool = False) -> bool:
        """Whether an IDLE runner should be triggered at `now`.

        Requires IDLE, and either the run interval has passed since the last
        run (or there never was one) or jobs are already pending.
        """
        snap = await self.snapshot()
        if snap.state != RunnerState.IDLE:
            return False
        if has_pending or snap.last_run_at is None:
            return True
        return truncate(now) - snap.last_run_at >= timedelta(seconds=self._run_interval)

    async def prepare(self, now: datetime | None = None) -> bool:
        """IDLE -> PREPARING. Returns False if the runner was not idle."""
        if await self.get_state() != RunnerState.IDLE:
            return False
        await self.set_state(RunnerState.PREPARING, now)
        return True

    async def begin(self, now: datetime | None = None) -> None:
        """PREPARING -> RUNNING.

        Raises:
            StaleStateError: The state is IDLE, so this invocation was never
                confirmed by a trigger. Nothing is changed.
        """
        state = await self.get_state()
        if state < RunnerState.PREPARING:
            raise StaleStateError(
                f"Runner {self._instance_id} is {state.name}, not PREPARING; "
                "it should not have been invoked"
            )
        await self.set_state(RunnerState.RUNNING, now)

    async def continue_cycle(self, now: datetime | None = None) -> None:
        """RUNNING -> PREPARING between self-ping cycles."""
        await self.set_state(RunnerState.PREPARING, now)

    async def finish(self, now: datetime | None = None) -> None:
        """Force IDLE and stamp the last run time. Used by every exit path."""
        now = now or self.now()
        await self._write(
            {
                "state": int(RunnerState.IDLE),
                "updated_at": format_timestamp(now),
                "last_run_at": format_timestamp(now),
            }
        )
        logger.debug("runner_finished", extra={"runner.instance_id": self._instance_id})

    async def reset(self, now: datetime | None = None) -> None:
        """Force IDLE without touching the last run time."""
        await self.set_state(RunnerState.IDLE, now)

    async def recover_stale(self, now: datetime | None = None) -> bool:
        """Force IDLE when a non-idle state has outlived any possible run.

        A runner killed without a chance to clean up (SIGKILL, OOM) leaves its
        state behind. No live run can last longer than max_run_time plus one
        run interval, so anything older is abandoned.
        """
        now = truncate(now or self.now())
        snap = await self.snapshot()
        if snap.state == RunnerState.IDLE or snap.updated_at is None:
            return False
        limit = timedelta(seconds=self._max_run_time + self._run_interval)
        if now - snap.updated_at <= limit:
            return False
        logger.warning(
            "runner_state_stale",
            extra={
                "runner.instance_id": self._instance_id,
                "runner.state": snap.state.name,
                "runner.updated_at": snap.updated_at.isoformat(),
            },
        )
        await self.finish(now)
        return True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def has_budget_for_next_cycle(self, started_at: datetime, now: datetime) -> bool:
        """Whether sleeping one interval and running again fits in max_run_time."""
        elapsed = (truncate(now) - truncate(started_at)).total_seconds()
        return elapsed + self._run_interval < self._max_run_time

    async def run_loop(
        self,
        batch: Callable[[datetime], Awaitable[Any]],
        started_at: datetime | None = None,
    ) -> int:
        """Run batches until done; returns how many cycles ran.

        Without self-pinging this is exactly one cycle. With it, the budget is
        checked before each sleep so the process never starts a cycle it has
        no time to finish. The caller is responsible for finish().
        """
        started_at = started_at or self.now()
        cycles = 0
        while True:
            await self.begin()
            logger.info(
                "runner_cycle_started",
                extra={"runner.instance_id": self._instance_id, "runner.cycle": cycles + 1},
            )
            await batch(self.now())
            cycles += 1

            if not self._self_pinging:
                break
            now = self.now()
            if not self.has_budget_for_next_cycle(started_at, now):
                logger.info(
                    "runner_budget_exhausted",
                    extra={"runner.instance_id": self._instance_id, "runner.cycles": cycles},
                )
                break
            await self.continue_cycle(now)
            await self._sleep(self._run_interval)
        return cycles
