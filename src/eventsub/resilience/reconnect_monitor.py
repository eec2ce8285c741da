"""
Reconnect monitor — periodic sweep for errors nobody resolved.

The error watcher only re-evaluates a host when another error is recorded.
A host whose subscriptions stopped retrying would sit in the registry
forever, so this sweep terminates the process once any entry is older than
STALE_AFTER_SECONDS.
"""

import asyncio
import logging

from .error_watcher import ErrorWatcher, get_error_watcher
from .termination import Terminator, exit_process

logger = logging.getLogger("eventsub.reconnect_monitor")

SWEEP_INTERVAL_SECONDS = 10.0
STALE_AFTER_SECONDS = 20


class ReconnectMonitor:
    """Sweeps an ErrorWatcher every SWEEP_INTERVAL_SECONDS."""

    def __init__(
        self,
        watcher: ErrorWatcher,
        terminate: Terminator = exit_process,
        interval_seconds: float = SWEEP_INTERVAL_SECONDS,
    ):
        self.watcher = watcher
        self.interval_seconds = interval_seconds
        self._terminate = terminate
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> int:
        """Run one tick. Returns the number of entries older than the limit."""
        now = self.watcher.now()
        old_errors = 0
        for first_error in self.watcher.snapshot().values():
            if (now - first_error).total_seconds() > STALE_AFTER_SECONDS:
                old_errors += 1

        if old_errors > 0:
            logger.error(f"had {old_errors} errors over {STALE_AFTER_SECONDS} seconds ago, going away now")
            self._terminate(f"{old_errors} stale host errors")
        return old_errors

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        # a task left behind by a closed loop never reports done()
        if self.running and self._task.get_loop() is loop:
            return
        self._task = loop.create_task(self._run(), name="eventsub-reconnect-monitor")
        logger.info(f"Reconnect monitor started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Reconnect sweep error: {e}")


# ---------------------------------------------------------------------------
# Process default
# ---------------------------------------------------------------------------

_monitor: ReconnectMonitor | None = None


def ensure_process_monitor() -> ReconnectMonitor:
    """
    Keep a sweep running over ``get_error_watcher()``.

    Must be called from a running event loop. Safe to call repeatedly.
    """
    global _monitor
    watcher = get_error_watcher()
    if _monitor is None or _monitor.watcher is not watcher:
        _monitor = ReconnectMonitor(watcher)
    _monitor.start()
    return _monitor
