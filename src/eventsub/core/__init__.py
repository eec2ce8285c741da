"""eventsub core types — methods, kinds, states and GENA headers."""

from .types import (
    HEADER_CALLBACK,
    HEADER_NT,
    HEADER_SID,
    HEADER_TIMEOUT,
    NT_UPNP_EVENT,
    Method,
    RequestKind,
    SubscriptionState,
    callback_header,
    timeout_header,
)

__all__ = [
    "HEADER_CALLBACK",
    "HEADER_NT",
    "HEADER_SID",
    "HEADER_TIMEOUT",
    "NT_UPNP_EVENT",
    "Method",
    "RequestKind",
    "SubscriptionState",
    "callback_header",
    "timeout_header",
]
