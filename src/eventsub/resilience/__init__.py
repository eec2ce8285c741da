"""Resilience layer — host error correlation, stale-error sweeps, fail-fast exit, metrics."""

from .error_watcher import ErrorWatcher, get_error_watcher
from .metrics import get_metrics
from .reconnect_monitor import ReconnectMonitor, ensure_process_monitor
from .termination import Terminator, exit_process

__all__ = [
    "ErrorWatcher",
    "ReconnectMonitor",
    "Terminator",
    "ensure_process_monitor",
    "exit_process",
    "get_error_watcher",
    "get_metrics",
]
