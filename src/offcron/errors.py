"""Exception types shared across offcron."""


class SchedulerError(Exception):
    """Base class for scheduler errors."""


class JobNotFoundError(SchedulerError, LookupError):
    """Raised when a job lookup by id or by identity misses."""


class StorageError(SchedulerError):
    """Raised when the row store fails. Never retried internally."""


class HandlerError(SchedulerError):
    """A job's hook handler raised during execution."""

    def __init__(self, job_id: int | None, hook: str, cause: BaseException):
        super().__init__(f"Job {job_id} ({hook}) failed: {cause}")
        self.job_id = job_id
        self.hook = hook
        self.cause = cause


class RunnerError(SchedulerError):
    """Base class for unmet runner-process preconditions."""


class InvalidHandoffError(RunnerError):
    """Handoff data missing or unusable; the runner never entered PREPARING."""


class InvalidFacadeError(RunnerError):
    """The dispatch key did not resolve to a Scheduler instance."""


class StaleStateError(RunnerError):
    """The runner was invoked while the state was below PREPARING."""
