"""
Subscription — keeps one UPnP event subscription alive forever.

Lifecycle::

    unsubscribed ──SUBSCRIBE──► subscribing ──ok──► active ──interval/2──┐
                                    ▲   │                                │
                                    │   └─fail──► retrying ──retry──┐    │
                                    └───────────────────────────────┴────┘
    any state ──dispose()──► disposed

A successful SUBSCRIBE stores the SID and schedules a renewal at half the
subscription timeout. A failure drops the SID (the next attempt is a fresh
subscription, not a renewal), reports the host to the ErrorWatcher and
retries after a fixed delay. After DEAD_THRESHOLD consecutive failures the
subscription fires ``dead`` and, shortly after, ends the process.

All methods must run on the event loop that created the subscription.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from eventsub.core.types import (
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
from eventsub.resilience.error_watcher import ErrorWatcher, get_error_watcher
from eventsub.resilience.metrics import SubscriptionMetrics, get_metrics
from eventsub.resilience.reconnect_monitor import ensure_process_monitor
from eventsub.resilience.termination import Terminator, exit_process
from eventsub.transport.base import Transport, TransportResponse

logger = logging.getLogger("eventsub.subscription")

DEFAULT_SUBSCRIPTION_INTERVAL = 600   # seconds, sent as TIMEOUT
DEFAULT_RETRY_INTERVAL = 5000         # milliseconds
DEAD_THRESHOLD = 5
DEAD_EXIT_DELAY = 0.15                # seconds between `dead` and exit
DEAD_MESSAGE = "Endpoint has probably died"

# Called with (subscription, message). May return an awaitable.
DeadCallback = Callable[["Subscription", str], Any]


class Subscription:
    """
    One self-renewing GENA subscription.

    Args:
        subscribe_url: Event subscription URL of the remote service.
        notification_url: Where the remote service should send NOTIFY requests.
        transport: Sends the SUBSCRIBE / UNSUBSCRIBE requests.
        watcher: Shared host error registry. Defaults to the process watcher,
            whose stale-error sweep is started on first use.
        subscription_interval: Requested timeout in seconds. Only tests
            should need to change it.
        retry_interval: Delay before retrying a failed subscribe, in ms.
        terminate: Called on the dead-threshold exit path.
    """

    def __init__(
        self,
        subscribe_url: str,
        notification_url: str,
        transport: Transport,
        watcher: ErrorWatcher | None = None,
        subscription_interval: int | None = None,
        retry_interval: int | None = None,
        terminate: Terminator = exit_process,
        metrics: SubscriptionMetrics | None = None,
    ):
        if not subscribe_url:
            raise ValueError("subscribe_url must be a non-empty string")
        if not notification_url:
            raise ValueError("notification_url must be a non-empty string")

        self.subscribe_url = subscribe_url
        self.notification_url = notification_url
        self.transport = transport
        if watcher is None:
            watcher = get_error_watcher()
            ensure_process_monitor()
        self.watcher = watcher
        self.subscription_interval = subscription_interval or DEFAULT_SUBSCRIPTION_INTERVAL
        self.retry_interval = retry_interval or DEFAULT_RETRY_INTERVAL
        self.metrics = metrics if metrics is not None else get_metrics()
        self._terminate = terminate

        self._loop = asyncio.get_running_loop()
        self._sid: str | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._error_count = 0
        self._state = SubscriptionState.UNSUBSCRIBED
        self._dead_emitted = False
        self._dead_callbacks: list[DeadCallback] = []
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe_task: asyncio.Task | None = None

        self._subscribe()

    # --- Read-only state ---

    @property
    def sid(self) -> str | None:
        return self._sid

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def disposed(self) -> bool:
        return self._state == SubscriptionState.DISPOSED

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None and not self._timer.cancelled()

    @property
    def host(self) -> str:
        return self.watcher.host_key(self.subscribe_url)

    def on_dead(self, callback: DeadCallback):
        """Register a callback fired once when the endpoint is considered dead."""
        self._dead_callbacks.append(callback)

    # --- Lifecycle ---

    def dispose(self) -> asyncio.Task:
        """
        Stop renewing and send a best-effort UNSUBSCRIBE.

        Never raises and never waits for the network. The returned task
        resolves once the UNSUBSCRIBE outcome has been logged.
        """
        if self._unsubscribe_task is not None:
            return self._unsubscribe_task

        self._cancel_timer()
        self._state = SubscriptionState.DISPOSED

        headers: dict[str, str] = {}
        if self._sid:
            headers[HEADER_SID] = self._sid
        self._unsubscribe_task = self._spawn(self._unsubscribe(self._sid, headers))
        return self._unsubscribe_task

    # --- Internals ---

    def _subscribe(self) -> None:
        self._cancel_timer()
        headers = {HEADER_TIMEOUT: timeout_header(self.subscription_interval)}
        renewal = bool(self._sid)
        if renewal:
            headers[HEADER_SID] = self._sid
        else:
            headers[HEADER_CALLBACK] = callback_header(self.notification_url)
            headers[HEADER_NT] = NT_UPNP_EVENT

        self._state = SubscriptionState.SUBSCRIBING
        self.metrics.record_attempt(self.host)
        self._spawn(self._attempt(headers, renewal))

    async def _attempt(self, headers: dict[str, str], renewal: bool) -> None:
        try:
            response = await self.transport.request(
                Method.SUBSCRIBE, self.subscribe_url, headers, kind=RequestKind.STREAM,
            )
        except Exception as e:
            self._on_failure(e)
        else:
            self._on_success(response, renewal)

    def _on_success(self, response: TransportResponse, renewal: bool) -> None:
        if self.disposed:
            logger.debug(f"ignoring subscribe response for disposed {self.subscribe_url}")
            return

        self._sid = response.sid
        if not self._sid:
            logger.warning(f"subscribe to {self.subscribe_url} succeeded without a SID")
        self._arm(self.subscription_interval * 500 / 1000)
        self._error_count = 0
        self._state = SubscriptionState.ACTIVE
        if renewal:
            self.metrics.record_renewal(self.host)
        self.watcher.clear_error(self.subscribe_url)

    def _on_failure(self, error: Exception) -> None:
        if self.disposed:
            logger.debug(f"ignoring subscribe failure for disposed {self.subscribe_url}: {error}")
            return

        self.watcher.record_error(self.subscribe_url)
        self._sid = None
        self._error_count += 1
        logger.warning(f"resubscribing to {self.subscribe_url} failed {self._error_count} times: {error}")
        self.metrics.record_failure(self.host)
        self._arm(self.retry_interval / 1000)
        self._state = SubscriptionState.RETRYING

        if self._error_count == DEAD_THRESHOLD and not self._dead_emitted:
            self._dead_emitted = True
            self.metrics.record_dead(self.host)
            self._emit_dead(DEAD_MESSAGE)
            self._loop.call_later(DEAD_EXIT_DELAY, self._exit_after_dead)

    def _emit_dead(self, message: str) -> None:
        for cb in self._dead_callbacks:
            try:
                result = cb(self, message)
                if inspect.isawaitable(result):
                    self._spawn(self._await_callback(result))
            except Exception as e:
                logger.error(f"dead callback error for {self.subscribe_url}: {e}")

    async def _await_callback(self, awaitable) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.error(f"dead callback error for {self.subscribe_url}: {e}")

    def _exit_after_dead(self) -> None:
        logger.error("subscribe failed too many times! exiting process, back soon")
        self._terminate(f"{self.subscribe_url} failed {DEAD_THRESHOLD} times in a row")

    async def _unsubscribe(self, sid: str | None, headers: dict[str, str]) -> None:
        try:
            await self.transport.request(
                Method.UNSUBSCRIBE, self.subscribe_url, headers, kind=RequestKind.STREAM,
            )
            logger.debug(f"successfully unsubscribed from {self.subscribe_url}")
        except Exception as e:
            logger.error(f"unsubscribe from sid {sid} failed: {e}")

    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = self._loop.call_later(delay, self._subscribe)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _spawn(self, coro) -> asyncio.Task:
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscribe_url": self.subscribe_url,
            "notification_url": self.notification_url,
            "host": self.host,
            "state": self._state.value,
            "sid": self._sid,
            "error_count": self._error_count,
            "subscription_interval": self.subscription_interval,
            "retry_interval": self.retry_interval,
        }

    def __repr__(self) -> str:
        return f"Subscription(subscribe_url={self.subscribe_url!r}, state={self._state.value}, sid={self._sid!r})"
