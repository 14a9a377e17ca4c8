"""Scheduling types.

Public types:
- Job: A scheduled hook invocation (one-shot or recurring)
- Found / NotFound / JobLookup: Result of a repository lookup
- RunnerState: Ordered runner states
- RunnerSnapshot: Persisted runner state record
- HandoffPayload: Data handed from the triggering process to the runner
- BatchResult: Outcome of one pass over the pending jobs
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import IntEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from offcron.scheduling.args import JobArgs, encode_args, normalize_args


def utc_now() -> datetime:
    """Current UTC time, truncated to whole seconds."""
    return truncate(datetime.now(UTC))


def truncate(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime at second resolution."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).replace(microsecond=0)


@dataclass
class Job:
    """A scheduled job.

    `args` maps original argument positions to values and is kept sorted by
    position. Identity for deduplication is (hook, args, recurrence); identity
    in storage is `id`.
    """

    due_at: datetime
    hook: str
    args: JobArgs = field(default_factory=dict)
    recurrence: int | None = None  # Seconds; None = one-shot
    id: int | None = None

    def __post_init__(self) -> None:
        if not self.hook:
            raise ValueError("Job hook cannot be empty")
        if self.recurrence is not None and (
            isinstance(self.recurrence, bool)
            or not isinstance(self.recurrence, int)
            or self.recurrence <= 0
        ):
            raise ValueError(
                f"recurrence must be a positive number of seconds, got {self.recurrence!r}"
            )
        self.due_at = truncate(self.due_at)
        self.args = normalize_args(self.args)

    @classmethod
    def create(
        cls,
        hook: str,
        args: Mapping[int, Any] | Sequence[Any] | None = None,
        *,
        due_at: datetime | None = None,
        delay: float = 0,
        recurrence: int | None = None,
    ) -> Job:
        """Build an unsaved job due at `due_at` or `delay` seconds from now."""
        when = due_at if due_at is not None else utc_now() + timedelta(seconds=delay)
        return cls(
            due_at=when,
            hook=hook,
            args=normalize_args(args),
            recurrence=recurrence,
        )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None

    @property
    def identity(self) -> tuple[str, str, int | None]:
        return (self.hook, encode_args(self.args), self.recurrence)

    def arg_values(self) -> list[Any]:
        """Argument values in position order, ready to splat into a handler."""
        return list(self.args.values())

    def next_occurrence(self, now: datetime) -> datetime | None:
        """Due time of the next run after executing at `now`."""
        if self.recurrence is None:
            return None
        return truncate(now) + timedelta(seconds=self.recurrence)

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= truncate(now)


@dataclass(frozen=True, slots=True)
class Found:
    """A lookup that matched a job."""

    job: Job


@dataclass(frozen=True, slots=True)
class NotFound:
    """A lookup that matched nothing."""

    reason: str


JobLookup = Found | NotFound


class RunnerState(IntEnum):
    """Runner states, ordered so `state >= PREPARING` reads naturally."""

    IDLE = 0
    PREPARING = 1
    RUNNING = 2


@dataclass(frozen=True, slots=True)
class RunnerSnapshot:
    """Persisted runner state for one scheduler instance."""

    instance_id: str
    state: RunnerState = RunnerState.IDLE
    last_run_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "state": self.state.name.lower(),
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class HandoffPayload(BaseModel):
    """The two strings the triggering process hands to the runner process.

    bootstrap_path: file that wires up the host (registers hooks and provides
        the scheduler under dispatch_key).
    dispatch_key: key the scheduler instance is provided under.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    bootstrap_path: str
    dispatch_key: str

    @field_validator("bootstrap_path", "dispatch_key")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def bootstrap_file(self) -> Path:
        return Path(self.bootstrap_path).expanduser()


@dataclass
class BatchResult:
    """What one run_batch pass did, by job id."""

    executed: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    rescheduled: list[int] = field(default_factory=list)
    deleted: list[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.executed) + len(self.failed)
