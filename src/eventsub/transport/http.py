"""
HTTP transport — GENA requests over httpx.

SUBSCRIBE and UNSUBSCRIBE are not standard HTTP verbs, but httpx passes any
method string through. ``stream`` requests open the response, look at the
status line and headers, and close it without reading the body.
"""

import logging
from collections.abc import Mapping

import httpx

from eventsub.core.types import Method, RequestKind
from eventsub.transport.base import (
    Transport,
    TransportError,
    TransportResponse,
    TransportTimeoutError,
    raise_for_status,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "eventsub/0.1.0 UPnP/1.0"


class HttpTransport(Transport):
    """Transport backed by a shared ``httpx.AsyncClient``."""

    name = "http"

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.user_agent},
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: Method,
        target: str,
        headers: Mapping[str, str],
        kind: RequestKind = RequestKind.STREAM,
    ) -> TransportResponse:
        verb = Method(method).value
        try:
            if kind == RequestKind.STREAM:
                async with self.client.stream(verb, target, headers=dict(headers)) as resp:
                    status, resp_headers, reason = resp.status_code, resp.headers, resp.reason_phrase
            else:
                resp = await self.client.request(verb, target, headers=dict(headers))
                status, resp_headers, reason = resp.status_code, resp.headers, resp.reason_phrase
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"{verb} timed out: {e}", target) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{verb} failed: {e}", target) from e

        raise_for_status(status, target, reason)
        logger.debug(f"{verb} {target} -> {status}")
        return TransportResponse(status_code=status, headers=resp_headers)
