"""Fire-and-forget trigger that starts a runner over HTTP."""

import logging
from typing import Protocol

import httpx

from offcron.scheduling.types import HandoffPayload

logger = logging.getLogger(__name__)


class Trigger(Protocol):
    """Starts a runner for the given handoff. Returns False if not delivered."""

    async def fire(self, payload: HandoffPayload) -> bool: ...


class HttpTrigger:
    """POSTs the handoff payload to the runner endpoint without waiting on it.

    The runner endpoint answers as soon as it has queued the run, and the
    request carries a short timeout. A read timeout therefore still means the
    request reached the runner; only transport failures count as not
    delivered.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return self._url

    async def fire(self, payload: HandoffPayload) -> bool:
        timeout = httpx.Timeout(self._timeout, connect=max(self._timeout, 1.0))
        try:
            async with httpx.AsyncClient(
                timeout=timeout, transport=self._transport
            ) as client:
                response = await client.post(self._url, json=payload.model_dump())
        except httpx.ReadTimeout:
            logger.debug("runner_trigger_unanswered", extra={"http.url": self._url})
            return True
        except httpx.HTTPError as e:
            logger.error(
                "runner_trigger_failed",
                extra={"http.url": self._url, "error.message": str(e)},
            )
            return False

        if response.is_error:
            logger.error(
                "runner_trigger_rejected",
                extra={"http.url": self._url, "http.status_code": response.status_code},
            )
            return False
        logger.info("runner_triggered", extra={"http.url": self._url})
        return True
