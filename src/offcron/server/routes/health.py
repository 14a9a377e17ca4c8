"""Health check routes."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Health status.
    """
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(request: Request) -> dict[str, str]:
    """Readiness check endpoint.

    Ready once the configured scheduler's database is connected, or always
    when the server only relays runs to bootstrapped schedulers.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None and not scheduler.database.connected:
        return {"status": "starting"}
    return {"status": "ready"}
