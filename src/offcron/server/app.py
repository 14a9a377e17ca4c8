"""FastAPI application for the offcron runner server."""

import logging
from collections.abc import Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI

from offcron.server.routes import health, runner

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from offcron.scheduling import HandoffPayload, Scheduler

logger = logging.getLogger(__name__)

DaemonFn = Callable[..., Awaitable[Any]]


class OffcronServer:
    """Runner server application.

    Manages the FastAPI app. When built with a scheduler, its database is
    connected for the app's lifetime so /runner/status can report on it.

    Only handoffs listed in `allowed_handoffs` are run; by default that is
    the configured scheduler's own handoff. A server with none rejects every
    runner request, since the bootstrap file in a handoff gets executed.
    """

    def __init__(
        self,
        scheduler: "Scheduler | None" = None,
        daemon: DaemonFn | None = None,
        allowed_handoffs: "Iterable[HandoffPayload] | None" = None,
    ):
        if daemon is None:
            from offcron.daemon import run_daemon

            daemon = run_daemon
        if allowed_handoffs is None:
            allowed_handoffs = (
                [scheduler.handoff]
                if scheduler is not None and scheduler.handoff is not None
                else []
            )
        self._scheduler = scheduler
        self._allowed_handoffs = list(allowed_handoffs)
        self._daemon = daemon
        self._app = self._create_app()

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application."""
        return self._app

    def _create_app(self) -> FastAPI:
        """Create and configure the FastAPI app."""

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> "AsyncIterator[None]":
            logger.info("server_starting")
            if self._scheduler is not None:
                await self._scheduler.setup()

            yield

            logger.info("server_shutting_down")
            if self._scheduler is not None:
                await self._scheduler.close()

        app = FastAPI(
            title="offcron",
            description="Out-of-band job runner",
            version="0.1.0",
            lifespan=lifespan,
        )

        app.state.server = self
        app.state.scheduler = self._scheduler
        app.state.run_daemon = self._daemon
        app.state.allowed_handoffs = self._allowed_handoffs

        app.include_router(health.router, tags=["health"])
        app.include_router(runner.router, prefix="/runner", tags=["runner"])

        return app


def create_app(
    scheduler: "Scheduler | None" = None,
    daemon: DaemonFn | None = None,
    allowed_handoffs: "Iterable[HandoffPayload] | None" = None,
) -> FastAPI:
    """Create the FastAPI application."""
    server = OffcronServer(
        scheduler=scheduler, daemon=daemon, allowed_handoffs=allowed_handoffs
    )
    return server.app
