"""Single-flight HTTP transport for signed envelopes.

Only one request is outstanding per transport. Sending a new envelope
supersedes the previous flight: its task is cancelled and its caller gets
``RequestCancelledError``, even when the response already arrived but has not
been handed back yet. This keeps a slow response for old inputs from
overwriting state derived from newer ones.

Thread-safety: safe under asyncio's single-threaded cooperative model. The
supersede-and-replace step in ``send`` has no await point between reading and
replacing the current flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from foundas.exceptions import (
    RequestCancelledError,
    TransientError,
    UnauthorizedError,
    UnclaimedError,
)
from foundas.services.envelope_service import encode_envelope

if TYPE_CHECKING:
    from foundas.config import Settings
    from foundas.services.envelope_service import SignedEnvelope

logger = logging.getLogger(__name__)


@dataclass
class _Flight:
    """Cancellation token for one request."""

    task: asyncio.Task[httpx.Response]
    superseded: bool = False

    def supersede(self) -> None:
        self.superseded = True
        if not self.task.done():
            self.task.cancel()


def raise_for_status(response: httpx.Response) -> None:
    """Map a non-2xx HTTP status onto the client's error taxonomy.

    Redirects are not followed, so a 3xx answer means nothing was read or
    written and is reported like a server error.
    """
    status = response.status_code
    if 200 <= status < 300:
        return
    detail = response.text
    if status == 404:
        raise UnclaimedError(status, detail)
    if 400 <= status < 500:
        raise UnauthorizedError(status, detail)
    raise TransientError(f"{status} ({detail})", status_code=status)


class SingleFlightTransport:
    """POSTs encoded envelopes to the API endpoint, one at a time."""

    def __init__(self, client: httpx.AsyncClient, endpoint: str = "/api") -> None:
        self._client = client
        self._endpoint = endpoint
        self._flight: _Flight | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> SingleFlightTransport:
        client = httpx.AsyncClient(timeout=settings.request_timeout)
        return cls(client, settings.api_url)

    @property
    def in_flight(self) -> bool:
        """Whether a request is currently outstanding."""
        return self._flight is not None and not self._flight.task.done()

    async def aclose(self) -> None:
        """Abandon any outstanding request and close the HTTP client."""
        if self._flight is not None:
            self._flight.supersede()
        await self._client.aclose()

    async def __aenter__(self) -> SingleFlightTransport:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def send(self, envelope: SignedEnvelope) -> bytes:
        """Send *envelope* and return the response body.

        Raises:
            RequestCancelledError: A newer request superseded this one.
            UnclaimedError: The server answered 404.
            UnauthorizedError: The server answered another 4xx.
            TransientError: Network failure, a 5xx or another unexpected status.
        """
        previous = self._flight
        if previous is not None and not previous.superseded:
            if not previous.task.done():
                logger.debug("Cancelling outstanding request")
            previous.supersede()

        body = encode_envelope(envelope)
        task = asyncio.ensure_future(self._client.post(self._endpoint, content=body))
        flight = _Flight(task)
        self._flight = flight
        try:
            response = await task
        except asyncio.CancelledError:
            if flight.superseded and not _current_task_cancelling():
                raise RequestCancelledError(f"Request {envelope.op_code.name} superseded") from None
            raise
        except httpx.RequestError as exc:
            logger.warning("Request %s failed: %s", envelope.op_code.name, exc)
            raise TransientError(f"Network error: {exc}") from exc
        finally:
            if self._flight is flight:
                self._flight = None

        if flight.superseded:
            raise RequestCancelledError(f"Request {envelope.op_code.name} superseded")
        raise_for_status(response)
        return response.content


def _current_task_cancelling() -> bool:
    """Whether the calling task itself has a pending cancellation request."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
