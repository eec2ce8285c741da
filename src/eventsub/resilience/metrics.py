"""
Subscription metrics — per-host counters and the active-subscription gauge.
"""

from dataclasses import dataclass, field
from threading import Lock
from typing import Any


@dataclass
class HostCounter:
    """Running total with a per-host breakdown."""

    name: str
    description: str
    value: int = 0
    by_host: dict[str, int] = field(default_factory=dict)

    def inc(self, host: str):
        self.value += 1
        self.by_host[host] = self.by_host.get(host, 0) + 1

    def get(self, host: str) -> int:
        return self.by_host.get(host, 0)


class SubscriptionMetrics:
    """Thread-safe metrics collector."""

    def __init__(self):
        self._lock = Lock()
        self.subscribe_attempts = HostCounter("eventsub_subscribe_attempts_total", "SUBSCRIBE requests sent")
        self.subscribe_failures = HostCounter("eventsub_subscribe_failures_total", "Failed SUBSCRIBE requests")
        self.renewals = HostCounter("eventsub_renewals_total", "Successful renewals of an existing SID")
        self.dead = HostCounter("eventsub_dead_total", "Subscriptions that reached the dead threshold")
        self.active_subscriptions = 0

    def record_attempt(self, host: str):
        with self._lock:
            self.subscribe_attempts.inc(host)

    def record_failure(self, host: str):
        with self._lock:
            self.subscribe_failures.inc(host)

    def record_renewal(self, host: str):
        with self._lock:
            self.renewals.inc(host)

    def record_dead(self, host: str):
        with self._lock:
            self.dead.inc(host)

    def set_active_subscriptions(self, count: int):
        with self._lock:
            self.active_subscriptions = count

    def get_summary(self) -> dict[str, Any]:
        with self._lock:
            return {
                "subscribe_attempts": self.subscribe_attempts.value,
                "subscribe_failures": self.subscribe_failures.value,
                "renewals": self.renewals.value,
                "dead": self.dead.value,
                "active_subscriptions": self.active_subscriptions,
                "failures_by_host": dict(self.subscribe_failures.by_host),
            }


_metrics: SubscriptionMetrics | None = None


def get_metrics() -> SubscriptionMetrics:
    global _metrics
    if _metrics is None:
        _metrics = SubscriptionMetrics()
    return _metrics
