"""
eventsub — keeps UPnP event subscriptions alive.

Each Subscription renews itself at half its timeout and retries failures on
a fixed delay. A shared ErrorWatcher and a ReconnectMonitor end the process
when a host keeps failing, so an external supervisor can restart it clean.

Quick start::

    supervisor = SubscriptionSupervisor(HttpTransport())
    supervisor.start()
    supervisor.subscribe(
        "http://192.168.1.20:1400/MediaRenderer/AVTransport/Event",
        "http://192.168.1.2:5006/notify",
    )
"""

__version__ = "0.1.0"

from eventsub.config import EventSubConfig, SubscriptionTarget, get_config, load_config
from eventsub.core.types import Method, RequestKind, SubscriptionState
from eventsub.resilience.error_watcher import ErrorWatcher, get_error_watcher
from eventsub.resilience.reconnect_monitor import ReconnectMonitor
from eventsub.subscription import Subscription
from eventsub.supervisor import SubscriptionSupervisor
from eventsub.transport.base import Transport, TransportError, TransportResponse
from eventsub.transport.http import HttpTransport

__all__ = [
    # Core types
    "Method",
    "RequestKind",
    "SubscriptionState",
    # Config
    "load_config",
    "get_config",
    "EventSubConfig",
    "SubscriptionTarget",
    # Engine
    "Subscription",
    "SubscriptionSupervisor",
    "ErrorWatcher",
    "ReconnectMonitor",
    "get_error_watcher",
    # Transport
    "Transport",
    "TransportError",
    "TransportResponse",
    "HttpTransport",
]
