from .base import (
    PreconditionFailedError,
    Transport,
    TransportError,
    TransportResponse,
    TransportTimeoutError,
    raise_for_status,
)
from .http import HttpTransport

__all__ = [
    "HttpTransport",
    "PreconditionFailedError",
    "Transport",
    "TransportError",
    "TransportResponse",
    "TransportTimeoutError",
    "raise_for_status",
]
