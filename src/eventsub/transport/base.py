"""
Base transport — the one capability the renewal engine needs from the network.

A transport sends a single SUBSCRIBE / UNSUBSCRIBE request and either returns
the response headers or raises. Everything else (retries, renewals, error
correlation) lives above it.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field

import httpx

from eventsub.core.types import Method, RequestKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TransportError(Exception):
    def __init__(self, message: str, target: str, status_code: int | None = None):
        self.message = message
        self.target = target
        self.status_code = status_code
        super().__init__(f"[{target}] {message}")


class PreconditionFailedError(TransportError):
    """412 — the endpoint no longer knows the SID we sent."""


class TransportTimeoutError(TransportError):
    pass


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

@dataclass
class TransportResponse:
    """Status and headers of a successful request. Header lookup ignores case."""

    status_code: int = 200
    headers: httpx.Headers = field(default_factory=httpx.Headers)

    def __post_init__(self):
        if not isinstance(self.headers, httpx.Headers):
            self.headers = httpx.Headers(self.headers)

    @property
    def sid(self) -> str | None:
        return self.headers.get("sid")


def raise_for_status(status_code: int, target: str, reason: str = "") -> None:
    if status_code == 412:
        raise PreconditionFailedError("Precondition failed (unknown SID).", target, 412)
    if status_code >= 300:
        raise TransportError(reason or f"Unexpected status {status_code}.", target, status_code)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------

class Transport(ABC):
    """Abstract base for anything that can carry GENA requests."""

    name: str = "base"

    @abstractmethod
    async def request(
        self,
        method: Method,
        target: str,
        headers: Mapping[str, str],
        kind: RequestKind = RequestKind.STREAM,
    ) -> TransportResponse: ...

    async def close(self):
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
