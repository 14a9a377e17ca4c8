"""Job repository backed by the `jobs` table."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.engine import Row

from offcron.db.engine import Database
from offcron.db.table import Table, format_timestamp, in_clause, parse_timestamp
from offcron.errors import JobNotFoundError
from offcron.scheduling.args import decode_args, encode_args
from offcron.scheduling.types import Found, Job, JobLookup, NotFound

logger = logging.getLogger(__name__)

JOBS_TABLE = "jobs"


def _row_to_job(row: Row) -> Job:
    """Convert a jobs row to a Job."""
    return Job(
        id=row.id,
        due_at=parse_timestamp(row.timestamp),
        hook=row.hook,
        args=decode_args(row.args),
        recurrence=row.recurrence,
    )


def _job_to_fields(job: Job) -> dict[str, Any]:
    return {
        "timestamp": format_timestamp(job.due_at),
        "hook": job.hook,
        "args": encode_args(job.args),
        "recurrence": job.recurrence,
    }


class JobRepository:
    """CRUD and query semantics over stored jobs.

    Every method propagates StorageError from the row store unchanged.
    """

    def __init__(self, database: Database, table_name: str = JOBS_TABLE) -> None:
        self._table = Table(database, table_name)

    @property
    def table(self) -> Table:
        return self._table

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def fetch_all(self) -> list[Job]:
        rows = await self._table.fetch()
        return [_row_to_job(row) for row in rows]

    async def fetch_pending(self, now: datetime) -> list[Job]:
        """Jobs due at or before `now`, in store order."""
        rows = await self._table.fetch(
            '"timestamp" <= :now', {"now": format_timestamp(now)}
        )
        return [_row_to_job(row) for row in rows]

    async def count(self) -> int:
        return await self._table.count()

    async def count_pending(self, now: datetime) -> int:
        return await self._table.count(
            '"timestamp" <= :now', {"now": format_timestamp(now)}
        )

    async def find_by_id(self, job_id: int) -> JobLookup:
        rows = await self._table.fetch('"id" = :id', {"id": job_id})
        if not rows:
            return NotFound(f'No job with ID "{job_id}" was found')
        return Found(_row_to_job(rows[0]))

    async def fetch_by_id(self, job_id: int) -> Job:
        """Like find_by_id, but raises JobNotFoundError on a miss."""
        match await self.find_by_id(job_id):
            case Found(job):
                return job
            case NotFound(reason):
                raise JobNotFoundError(reason)

    async def find_by_identity(
        self,
        hook: str,
        args: Mapping[int, Any] | Sequence[Any] | None = None,
        recurrence: int | None = None,
    ) -> JobLookup:
        """First job matching the (hook, args, recurrence) identity triple."""
        encoded = encode_args(args)
        where = '"hook" = :hook AND "args" = :args'
        params: dict[str, Any] = {"hook": hook, "args": encoded}
        # NULL never compares equal, so a one-shot identity needs IS NULL
        if recurrence is None:
            where += ' AND "recurrence" IS NULL'
        else:
            where += ' AND "recurrence" = :recurrence'
            params["recurrence"] = recurrence

        rows = await self._table.fetch(where, params)
        if not rows:
            return NotFound(
                f'No job is scheduled for hook "{hook}" with args "{encoded}"'
            )
        return Found(_row_to_job(rows[0]))

    async def get_scheduled(
        self,
        hook: str,
        args: Mapping[int, Any] | Sequence[Any] | None = None,
        recurrence: int | None = None,
    ) -> Job:
        """Like find_by_identity, but raises JobNotFoundError on a miss."""
        match await self.find_by_identity(hook, args, recurrence):
            case Found(job):
                return job
            case NotFound(reason):
                raise JobNotFoundError(reason)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def schedule(self, job: Job) -> int:
        """Insert the job, or update it in place when its id already exists.

        Upsert is keyed on id only: an unsaved job with the same identity as
        a stored one becomes a second row.
        """
        fields = _job_to_fields(job)

        if job.id is not None:
            match await self.find_by_id(job.id):
                case Found():
                    await self._table.update(fields, '"id" = :id', {"id": job.id})
                    logger.debug(
                        "job_updated",
                        extra={"job.id": job.id, "job.hook": job.hook},
                    )
                    return job.id
                case NotFound():
                    pass

        job_id = await self._table.insert(fields)
        logger.debug("job_inserted", extra={"job.id": job_id, "job.hook": job.hook})
        return job_id

    async def reschedule(self, job_id: int, due_at: datetime) -> bool:
        """Move an existing job to a new due time, in place.

        Returns False when the row is gone (cancelled while it ran); the job
        is not re-created in that case.
        """
        updated = await self._table.update(
            {"timestamp": format_timestamp(due_at)}, '"id" = :id', {"id": job_id}
        )
        return updated > 0

    async def cancel(
        self,
        hook: str,
        args: Mapping[int, Any] | Sequence[Any] | None = None,
        recurrence: int | None = None,
    ) -> bool:
        """Delete the first job with this identity. Missing jobs are a no-op."""
        match await self.find_by_identity(hook, args, recurrence):
            case Found(job) if job.id is not None:
                await self.delete_by_id(job.id)
                return True
            case _:
                return False

    async def delete_by_id(self, job_id: int) -> None:
        await self._table.delete('"id" = :id', {"id": job_id})

    async def delete_many(self, job_ids: Iterable[int]) -> None:
        ids = list(job_ids)
        if not ids:
            return
        where, params = in_clause("id", ids)
        await self._table.delete(where, params)

    async def clear(self) -> int:
        """Delete every job. Returns the number removed."""
        return await self._table.delete("1 = 1")
