"""
Shared vocabulary for the renewal engine.

Request methods, request kinds and subscription states, plus the UPnP GENA
header names the engine emits. Nothing here performs I/O.
"""

from enum import Enum

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Method(str, Enum):
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"


class RequestKind(str, Enum):
    STREAM = "stream"      # response body is never read
    BUFFERED = "buffered"


class SubscriptionState(str, Enum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    RETRYING = "retrying"
    DISPOSED = "disposed"


# ---------------------------------------------------------------------------
# GENA headers
# ---------------------------------------------------------------------------

HEADER_TIMEOUT = "TIMEOUT"
HEADER_SID = "SID"
HEADER_CALLBACK = "CALLBACK"
HEADER_NT = "NT"

NT_UPNP_EVENT = "upnp:event"


def timeout_header(seconds: int) -> str:
    return f"Second-{seconds}"


def callback_header(notification_url: str) -> str:
    return f"<{notification_url}>"
