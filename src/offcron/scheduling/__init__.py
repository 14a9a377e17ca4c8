"""Scheduling subsystem: out-of-band job execution.

Public API:
- Scheduler: Facade host code and the runner process talk to
- JobRepository: CRUD and identity lookups over stored jobs
- DaemonRunner: Persisted runner state machine and self-ping loop
- HookRegistry: Hook name -> handler dispatch
- HttpTrigger: Fire-and-forget runner trigger

Types:
- Job: A scheduled hook invocation (one-shot or recurring)
- Found / NotFound: Lookup results
- RunnerState: IDLE < PREPARING < RUNNING
- HandoffPayload: Data handed to the runner process
"""

from offcron.scheduling.args import decode_args, encode_args, normalize_args
from offcron.scheduling.hooks import HookRegistry
from offcron.scheduling.repository import JobRepository
from offcron.scheduling.runner import DaemonRunner
from offcron.scheduling.scheduler import Scheduler
from offcron.scheduling.trigger import HttpTrigger, Trigger
from offcron.scheduling.types import (
    BatchResult,
    Found,
    HandoffPayload,
    Job,
    JobLookup,
    NotFound,
    RunnerSnapshot,
    RunnerState,
)

__all__ = [
    "BatchResult",
    "DaemonRunner",
    "Found",
    "HandoffPayload",
    "HookRegistry",
    "HttpTrigger",
    "Job",
    "JobLookup",
    "JobRepository",
    "NotFound",
    "RunnerSnapshot",
    "RunnerState",
    "Scheduler",
    "Trigger",
    "decode_args",
    "encode_args",
    "normalize_args",
]
