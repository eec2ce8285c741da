"""
Subscription supervisor — owns the shared pieces of one process.

One transport, one ErrorWatcher, one ReconnectMonitor, and every
Subscription created through it. Subscriptions share the watcher, so a host
that keeps failing across several of them trips the same streak.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from eventsub.config import EventSubConfig
from eventsub.resilience.error_watcher import ErrorWatcher
from eventsub.resilience.metrics import SubscriptionMetrics, get_metrics
from eventsub.resilience.reconnect_monitor import ReconnectMonitor
from eventsub.resilience.termination import Terminator, exit_process
from eventsub.subscription import DeadCallback, Subscription
from eventsub.transport.base import Transport
from eventsub.transport.http import HttpTransport

logger = logging.getLogger("eventsub.supervisor")


class SubscriptionSupervisor:
    """Creates, tracks and disposes the subscriptions of the process."""

    def __init__(
        self,
        transport: Transport,
        watcher: ErrorWatcher | None = None,
        subscription_interval: int | None = None,
        retry_interval: int | None = None,
        monitor_enabled: bool = True,
        terminate: Terminator = exit_process,
        metrics: SubscriptionMetrics | None = None,
    ):
        self.transport = transport
        self.watcher = watcher if watcher is not None else ErrorWatcher(terminate=terminate)
        self.monitor = ReconnectMonitor(self.watcher, terminate=terminate) if monitor_enabled else None
        self.subscription_interval = subscription_interval
        self.retry_interval = retry_interval
        self.metrics = metrics if metrics is not None else get_metrics()
        self._terminate = terminate
        self._subscriptions: dict[str, Subscription] = {}
        self._dead_callbacks: list[DeadCallback] = []

    @classmethod
    def from_config(cls, config: EventSubConfig, terminate: Terminator = exit_process) -> SubscriptionSupervisor:
        transport = HttpTransport(timeout=config.transport_timeout, user_agent=config.user_agent)
        return cls(
            transport,
            subscription_interval=config.subscription_interval,
            retry_interval=config.retry_interval_ms,
            monitor_enabled=config.monitor_enabled,
            terminate=terminate,
        )

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    def get(self, subscribe_url: str) -> Subscription | None:
        return self._subscriptions.get(subscribe_url)

    def on_dead(self, callback: DeadCallback):
        """Register a callback attached to every subscription created from now on."""
        self._dead_callbacks.append(callback)

    def start(self) -> None:
        if self.monitor:
            self.monitor.start()

    def subscribe(self, subscribe_url: str, notification_url: str) -> Subscription:
        existing = self._subscriptions.get(subscribe_url)
        if existing is not None:
            if existing.notification_url != notification_url:
                logger.warning(
                    f"{subscribe_url} already subscribed with callback {existing.notification_url}, "
                    f"ignoring {notification_url}"
                )
            return existing

        sub = Subscription(
            subscribe_url,
            notification_url,
            self.transport,
            watcher=self.watcher,
            subscription_interval=self.subscription_interval,
            retry_interval=self.retry_interval,
            terminate=self._terminate,
            metrics=self.metrics,
        )
        sub.on_dead(self._log_dead)
        for cb in self._dead_callbacks:
            sub.on_dead(cb)
        self._subscriptions[subscribe_url] = sub
        self.metrics.set_active_subscriptions(len(self._subscriptions))
        logger.info(f"Subscribing to {subscribe_url} (callback {notification_url})")
        return sub

    def unsubscribe(self, subscribe_url: str) -> asyncio.Task | None:
        sub = self._subscriptions.pop(subscribe_url, None)
        if sub is None:
            return None
        self.metrics.set_active_subscriptions(len(self._subscriptions))
        return sub.dispose()

    async def close(self) -> None:
        tasks = [sub.dispose() for sub in self._subscriptions.values()]
        self._subscriptions.clear()
        self.metrics.set_active_subscriptions(0)
        if tasks:
            await asyncio.gather(*tasks)
        if self.monitor:
            await self.monitor.stop()
        await self.transport.close()

    def _log_dead(self, sub: Subscription, message: str) -> None:
        logger.error(f"{sub.subscribe_url}: {message}")

    def get_summary(self) -> dict[str, Any]:
        return {
            "subscriptions": [s.to_dict() for s in self._subscriptions.values()],
            "errors": self.watcher.get_summary(),
            "monitor_running": bool(self.monitor and self.monitor.running),
        }
