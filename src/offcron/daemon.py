"""Runner process entry point.

One invocation of run_daemon() is one runner process: it validates the
handoff, executes the host bootstrap, resolves the scheduler through the
dispatch registry, applies the max run time, and runs the runner loop.

Every way out of run_daemon() (success, bad handoff, bad facade, stale state,
exceptions, timeout, termination signals) goes through the same cleanup,
which forces the runner back to IDLE and stamps the last run time. Without
it a crashed run would leave the state at PREPARING/RUNNING and no trigger
would ever fire again.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import runpy
import signal
from collections.abc import Callable, Mapping
from contextlib import redirect_stdout
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from offcron import dispatch
from offcron.errors import InvalidFacadeError, InvalidHandoffError, StaleStateError
from offcron.scheduling.scheduler import Scheduler
from offcron.scheduling.types import HandoffPayload

logger = logging.getLogger(__name__)

# Signals that end the runner early; each still reaches cleanup
TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGHUP, signal.SIGUSR1)

BootstrapLoader = Callable[[Path], Any]


class DaemonOutcome(StrEnum):
    """How a runner invocation ended."""

    COMPLETED = "completed"
    INVALID_HANDOFF = "invalid_handoff"
    INVALID_FACADE = "invalid_facade"
    STALE_STATE = "stale_state"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


def load_bootstrap(path: Path) -> None:
    """Execute the host bootstrap file so it can register hooks and provide
    its scheduler."""
    runpy.run_path(str(path), run_name="__offcron_bootstrap__")


def validate_handoff(
    payload: HandoffPayload | Mapping[str, Any] | None,
) -> HandoffPayload:
    """Check the handoff before anything else happens.

    Raises:
        InvalidHandoffError: Payload missing or malformed, or the bootstrap
            file cannot be read.
    """
    if payload is None:
        raise InvalidHandoffError("No handoff payload")
    if not isinstance(payload, HandoffPayload):
        try:
            payload = HandoffPayload.model_validate(payload)
        except ValidationError as e:
            raise InvalidHandoffError(f"Malformed handoff payload: {e}") from e

    path = payload.bootstrap_file
    if not path.is_file() or not os.access(path, os.R_OK):
        raise InvalidHandoffError(f"Bootstrap file is not readable: {path}")
    return payload


def resolve_scheduler(dispatch_key: str) -> Scheduler:
    """Look up the live scheduler the bootstrap provided.

    Raises:
        InvalidFacadeError: Nothing, or something other than a Scheduler,
            is provided under the key.
    """
    instance = dispatch.resolve(dispatch_key)
    if not isinstance(instance, Scheduler):
        raise InvalidFacadeError(
            f"Invalid scheduler instance for key {dispatch_key!r}: "
            f"{type(instance).__name__}"
        )
    return instance


def _install_signal_handlers(task: asyncio.Task) -> list[Callable[[], None]]:
    """Turn termination signals into task cancellation. Returns removers."""
    loop = asyncio.get_running_loop()
    removers: list[Callable[[], None]] = []
    for sig in TERMINATION_SIGNALS:

        def handle_signal(sig: signal.Signals = sig) -> None:
            logger.warning("runner_signal_received", extra={"signal": sig.name})
            task.cancel()

        try:
            loop.add_signal_handler(sig, handle_signal)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not the main thread, or a platform without loop signal support
            continue
        removers.append(lambda sig=sig: loop.remove_signal_handler(sig))
    return removers


async def _cleanup(scheduler: Scheduler | None, *, close: bool) -> None:
    """Force IDLE and stamp the last run time, if a scheduler was reached.

    With `close`, the scheduler's database is disposed afterwards; that is
    the case when this invocation opened it.
    """
    if scheduler is not None:
        try:
            await scheduler.runner.finish()
        except Exception:
            logger.exception(
                "runner_cleanup_failed",
                extra={"runner.instance_id": scheduler.instance_id},
            )
        if close:
            try:
                await scheduler.close()
            except Exception:
                logger.exception(
                    "runner_close_failed",
                    extra={"runner.instance_id": scheduler.instance_id},
                )
    logger.info("runner_exiting")


async def run_daemon(
    payload: HandoffPayload | Mapping[str, Any] | None,
    *,
    bootstrap_loader: BootstrapLoader = load_bootstrap,
    install_signal_handlers: bool = False,
) -> DaemonOutcome:
    """Run one runner invocation to completion.

    Args:
        payload: The handoff from the triggering process.
        bootstrap_loader: Executes the bootstrap file.
        install_signal_handlers: Cancel the run on SIGTERM/SIGHUP/SIGUSR1.
            Only meaningful when this owns the process (`offcron run`).

    Returns:
        How the invocation ended. Cancellation is re-raised after cleanup.
    """
    scheduler: Scheduler | None = None
    opened_database = False
    removers: list[Callable[[], None]] = []
    outcome = DaemonOutcome.FAILED

    try:
        if install_signal_handlers and (task := asyncio.current_task()) is not None:
            removers = _install_signal_handlers(task)

        # Output from the bootstrap and from jobs has nowhere to go; drop it
        with redirect_stdout(io.StringIO()):
            handoff = validate_handoff(payload)
            bootstrap_loader(handoff.bootstrap_file)
            scheduler = resolve_scheduler(handoff.dispatch_key)
            opened_database = not scheduler.database.connected
            await scheduler.setup()
            runner = scheduler.runner

            async with asyncio.timeout(runner.max_run_time):
                logger.info(
                    "runner_started",
                    extra={"runner.instance_id": scheduler.instance_id},
                )
                cycles = await runner.run_loop(scheduler.run_batch)
        logger.info(
            "runner_completed",
            extra={"runner.instance_id": scheduler.instance_id, "runner.cycles": cycles},
        )
        outcome = DaemonOutcome.COMPLETED
    except InvalidHandoffError as e:
        logger.error("runner_invalid_handoff", extra={"error.message": str(e)})
        outcome = DaemonOutcome.INVALID_HANDOFF
    except InvalidFacadeError as e:
        logger.error("runner_invalid_scheduler", extra={"error.message": str(e)})
        outcome = DaemonOutcome.INVALID_FACADE
    except StaleStateError as e:
        logger.error("runner_stale_invocation", extra={"error.message": str(e)})
        outcome = DaemonOutcome.STALE_STATE
    except TimeoutError:
        max_run_time = scheduler.runner.max_run_time if scheduler else None
        logger.error(
            "runner_time_limit_exceeded",
            extra={"runner.max_run_time": max_run_time},
        )
        outcome = DaemonOutcome.TIMED_OUT
    except asyncio.CancelledError:
        logger.warning("runner_cancelled")
        outcome = DaemonOutcome.CANCELLED
        raise
    except Exception as e:
        logger.exception("runner_failed", extra={"error.message": str(e)})
        outcome = DaemonOutcome.FAILED
    finally:
        for remove in removers:
            remove()
        await _cleanup(scheduler, close=opened_database)

    return outcome
