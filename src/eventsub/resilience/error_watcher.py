"""
Error watcher — correlates subscribe failures per host across subscriptions.

One registry per process maps a host key to the time of the first error in
its current unresolved streak:

    no entry          → first error, start a streak
    entry ≤ 5s old    → still inside the grace window, nothing to do
    entry 5s–45s old  → the host has been failing for a while: terminate
    entry > 45s old   → the old streak was transient, start a new one

A successful subscribe clears the host's entry.
"""

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from .termination import Terminator, exit_process

logger = logging.getLogger("eventsub.error_watcher")

# Thresholds in seconds since the first error of a streak.
GRACE_SECONDS = 5
STALE_SECONDS = 45

# Host key for subscriptions without an identifiable endpoint.
NO_HOST_KEY = "all-hosts"

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class ErrorWatcher:
    """Shared per-host error registry with a fatal sustained-failure check."""

    def __init__(self, terminate: Terminator = exit_process, clock: Clock = utcnow):
        self._lock = threading.Lock()
        self._errors: dict[str, datetime] = {}
        self._terminate = terminate
        self._clock = clock
        logger.warning(f"created error watcher at {clock().isoformat()}")

    @staticmethod
    def host_key(endpoint: str | None) -> str:
        """``http://10.0.0.5:1400/Event`` → ``10.0.0.5:1400``."""
        if endpoint:
            parts = endpoint.split("/")
            return parts[2] if len(parts) > 2 else endpoint
        return NO_HOST_KEY

    def record_error(self, endpoint: str | None) -> None:
        host = self.host_key(endpoint)
        fatal = False
        with self._lock:
            now = self._clock()
            first_error = self._errors.get(host)
            if first_error is None:
                self._errors[host] = now
                logger.warning(f"recording new error on {host}")
                return

            elapsed = (now - first_error).total_seconds()
            if elapsed > STALE_SECONDS:
                # could have been a transient error and it recovered
                self._errors[host] = now
                logger.warning(f"old error for {host} has been replaced with new one")
            elif elapsed > GRACE_SECONDS:
                fatal = True

        if fatal:
            logger.error(f"had errors for {GRACE_SECONDS} seconds on {host}, going away now")
            self._terminate(f"sustained errors on {host}")

    def clear_error(self, endpoint: str | None) -> None:
        host = self.host_key(endpoint)
        with self._lock:
            removed = self._errors.pop(host, None)
        if removed is not None:
            logger.warning(f"clearing error for `{host}`")

    def first_error_at(self, endpoint: str | None) -> datetime | None:
        with self._lock:
            return self._errors.get(self.host_key(endpoint))

    def snapshot(self) -> dict[str, datetime]:
        with self._lock:
            return dict(self._errors)

    def now(self) -> datetime:
        return self._clock()

    def get_summary(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "hosts": {
                host: {
                    "first_error": ts.isoformat(),
                    "age_seconds": round((now - ts).total_seconds(), 3),
                }
                for host, ts in self.snapshot().items()
            }
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    def __contains__(self, host: str) -> bool:
        with self._lock:
            return host in self._errors


# ---------------------------------------------------------------------------
# Process default
# ---------------------------------------------------------------------------

_watcher: ErrorWatcher | None = None
_watcher_lock = threading.Lock()


def get_error_watcher() -> ErrorWatcher:
    """The process-wide watcher for callers that don't pass their own."""
    global _watcher
    if _watcher is None:
        with _watcher_lock:
            if _watcher is None:
                _watcher = ErrorWatcher()
    return _watcher
