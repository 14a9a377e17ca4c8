"""Runner endpoint: accepts a handoff and starts a run in the background."""

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from offcron.scheduling.types import HandoffPayload

logger = logging.getLogger(__name__)

router = APIRouter()


def _is_allowed(payload: HandoffPayload, allowed: list[HandoffPayload]) -> bool:
    """Same dispatch key and the same bootstrap file as a configured handoff."""
    path = Path(payload.bootstrap_path).expanduser().resolve()
    return any(
        payload.dispatch_key == expected.dispatch_key
        and path == Path(expected.bootstrap_path).expanduser().resolve()
        for expected in allowed
    )


@router.post("", status_code=status.HTTP_202_ACCEPTED)
async def start_runner(
    payload: HandoffPayload,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict[str, str]:
    """Queue a runner invocation and answer immediately.

    The trigger never waits on the run itself; the response goes out before
    the background task starts. Handoffs other than the configured ones are
    refused with 403 and nothing runs.
    """
    if not _is_allowed(payload, request.app.state.allowed_handoffs):
        logger.warning(
            "runner_handoff_refused",
            extra={
                "dispatch.key": payload.dispatch_key,
                "bootstrap.path": payload.bootstrap_path,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Handoff does not match this server's configuration",
        )
    daemon = request.app.state.run_daemon
    background_tasks.add_task(daemon, payload)
    logger.info("runner_accepted", extra={"dispatch.key": payload.dispatch_key})
    return {"status": "accepted"}


@router.get("/status")
async def runner_status(request: Request) -> dict[str, Any]:
    """Runner state of the scheduler this server was configured with."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=404, detail="No scheduler configured")
    snapshot = await scheduler.status()
    return snapshot.to_dict()
