"""Shared fixtures for the eventsub test suite."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest

import eventsub.resilience.error_watcher as error_watcher_mod
import eventsub.resilience.reconnect_monitor as reconnect_monitor_mod
from eventsub.resilience.error_watcher import ErrorWatcher
from eventsub.resilience.metrics import SubscriptionMetrics
from eventsub.resilience.reconnect_monitor import ReconnectMonitor
from eventsub.transport.base import Transport, TransportError, TransportResponse


@dataclass
class Call:
    method: str
    target: str
    headers: dict
    kind: str


class FakeTransport(Transport):
    """
    Records every request and answers from ``results`` in order.

    Items may be a TransportResponse, an exception to raise, or an
    asyncio.Event to wait on before answering with ``default``. Once
    ``results`` runs out, ``default`` answers (None means fail).
    """

    name = "fake"

    def __init__(self):
        self.results: list = []
        self.default = None
        self.calls: list[Call] = []
        self.closed = False

    async def request(self, method, target, headers, kind="stream"):
        self.calls.append(Call(getattr(method, "value", method), target, dict(headers), getattr(kind, "value", kind)))
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, asyncio.Event):
            await result.wait()
            result = self.default
        if isinstance(result, BaseException):
            raise result
        if result is None:
            raise TransportError("connection refused", target)
        return result

    async def close(self):
        self.closed = True

    def calls_for(self, method: str) -> list[Call]:
        return [c for c in self.calls if c.method == method]

    async def wait_for_calls(self, n: int, timeout: float = 2.0):
        await wait_until(lambda: len(self.calls) >= n, timeout)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class RecordingTerminator:
    def __init__(self):
        self.reasons: list[str] = []

    def __call__(self, reason: str) -> None:
        self.reasons.append(reason)

    @property
    def called(self) -> bool:
        return bool(self.reasons)


async def wait_until(predicate, timeout: float = 2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def terminator():
    return RecordingTerminator()


@pytest.fixture
def watcher(clock, terminator):
    return ErrorWatcher(terminate=terminator, clock=clock)


@pytest.fixture
def metrics():
    return SubscriptionMetrics()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def ok():
    """Build a successful SUBSCRIBE response carrying a SID."""
    def _ok(sid: str = "uuid-123") -> TransportResponse:
        return TransportResponse(status_code=200, headers={"SID": sid, "TIMEOUT": "Second-600"})
    return _ok


@pytest.fixture
def until():
    return wait_until


@pytest.fixture
async def process_monitor(monkeypatch, watcher, terminator):
    """Swap the process-default watcher and sweep for recording ones."""
    monitor = ReconnectMonitor(watcher, terminate=terminator, interval_seconds=0.01)
    monkeypatch.setattr(error_watcher_mod, "_watcher", watcher)
    monkeypatch.setattr(reconnect_monitor_mod, "_monitor", monitor)
    yield monitor
    await monitor.stop()
