"""Tests for the self-renewing subscription state machine."""

import asyncio

import pytest

from eventsub.core.types import SubscriptionState
from eventsub.subscription import (
    DEAD_MESSAGE,
    DEAD_THRESHOLD,
    Subscription,
)
from eventsub.transport.base import TransportError

URL = "http://host1/sub"
CALLBACK = "http://10.0.0.2:5006/notify"


@pytest.fixture
async def make_sub(transport, watcher, terminator, metrics):
    created = []

    def _make(url=URL, callback=CALLBACK, **kwargs):
        sub = Subscription(
            url, callback, transport,
            watcher=watcher, terminate=terminator, metrics=metrics, **kwargs,
        )
        created.append(sub)
        return sub

    yield _make
    await asyncio.gather(*(s.dispose() for s in created))


class TestInitialSubscribe:
    async def test_subscribes_on_construction(self, make_sub, transport, ok):
        transport.results = [ok()]
        make_sub()
        await transport.wait_for_calls(1)
        call = transport.calls[0]
        assert call.method == "SUBSCRIBE"
        assert call.target == URL
        assert call.kind == "stream"

    async def test_initial_headers(self, make_sub, transport, ok):
        transport.results = [ok()]
        make_sub()
        await transport.wait_for_calls(1)
        assert transport.calls[0].headers == {
            "TIMEOUT": "Second-600",
            "CALLBACK": f"<{CALLBACK}>",
            "NT": "upnp:event",
        }

    async def test_custom_interval_in_timeout_header(self, make_sub, transport, ok):
        transport.results = [ok()]
        make_sub(subscription_interval=30)
        await transport.wait_for_calls(1)
        assert transport.calls[0].headers["TIMEOUT"] == "Second-30"

    async def test_state_is_subscribing_while_in_flight(self, make_sub, transport):
        gate = asyncio.Event()
        transport.results = [gate]
        sub = make_sub()
        await transport.wait_for_calls(1)
        assert sub.state == SubscriptionState.SUBSCRIBING
        assert sub.sid is None
        gate.set()

    def test_rejects_empty_urls(self, transport):
        with pytest.raises(ValueError):
            Subscription("", CALLBACK, transport)
        with pytest.raises(ValueError):
            Subscription(URL, "", transport)

    async def test_zero_intervals_fall_back_to_defaults(self, make_sub, transport, ok):
        transport.results = [ok()]
        sub = make_sub(subscription_interval=0, retry_interval=0)
        assert sub.subscription_interval == 600
        assert sub.retry_interval == 5000


class TestSuccess:
    async def test_stores_sid_and_becomes_active(self, make_sub, transport, ok, until):
        transport.results = [ok("uuid-123")]
        sub = make_sub()
        await until(lambda: sub.state == SubscriptionState.ACTIVE)
        assert sub.sid == "uuid-123"
        assert sub.error_count == 0
        assert sub.has_pending_timer

    async def test_renewal_armed_at_half_interval(self, make_sub, transport, ok, until):
        transport.results = [ok()]
        sub = make_sub()
        await until(lambda: sub.state == SubscriptionState.ACTIVE)
        remaining = sub._timer.when() - asyncio.get_running_loop().time()
        assert 299 <= remaining <= 300

    async def test_renewal_carries_sid_only(self, make_sub, transport, ok):
        transport.results = [ok("uuid-123"), ok("uuid-123")]
        make_sub(subscription_interval=1)   # renews after 500ms
        await transport.wait_for_calls(2)
        assert transport.calls[1].headers == {"TIMEOUT": "Second-1", "SID": "uuid-123"}

    async def test_success_clears_host_error(self, make_sub, transport, watcher, ok, until):
        transport.results = [TransportError("down", URL), ok()]
        sub = make_sub(retry_interval=1)
        await until(lambda: sub.state == SubscriptionState.ACTIVE)
        assert "host1" not in watcher

    async def test_renewal_counted_in_metrics(self, make_sub, transport, metrics, ok):
        transport.results = [ok(), ok()]
        make_sub(subscription_interval=1)
        await transport.wait_for_calls(2)
        await asyncio.sleep(0.01)
        assert metrics.renewals.get("host1") == 1
        assert metrics.subscribe_attempts.get("host1") == 2


class TestFailure:
    async def test_failure_records_host_error(self, make_sub, transport, watcher, until):
        sub = make_sub()
        await until(lambda: sub.error_count == 1)
        assert "host1" in watcher
        assert sub.state == SubscriptionState.RETRYING
        assert sub.has_pending_timer

    async def test_retry_armed_at_retry_interval(self, make_sub, until):
        sub = make_sub()
        await until(lambda: sub.error_count == 1)
        remaining = sub._timer.when() - asyncio.get_running_loop().time()
        assert 4.9 <= remaining <= 5.0

    async def test_failure_drops_sid(self, make_sub, transport, ok, until):
        transport.results = [ok("uuid-1"), TransportError("gone", URL), ok("uuid-2")]
        sub = make_sub(subscription_interval=1, retry_interval=1)
        await until(lambda: sub.sid == "uuid-2", timeout=3.0)
        # after the failure the next request is a fresh subscription again
        assert "SID" not in transport.calls[2].headers
        assert transport.calls[2].headers["CALLBACK"] == f"<{CALLBACK}>"

    async def test_error_count_increases_by_one_per_failure(self, make_sub, transport):
        seen = []
        holder = []
        original = transport.request

        async def spy(*args, **kwargs):
            if holder:
                seen.append(holder[0].error_count)
            return await original(*args, **kwargs)

        transport.request = spy
        holder.append(make_sub(retry_interval=1))
        await transport.wait_for_calls(4)
        assert seen[:4] == [0, 1, 2, 3]

    async def test_default_retry_second_failure_terminates_via_watcher(
        self, make_sub, watcher, clock, terminator, until,
    ):
        dead = []
        sub = make_sub()
        sub.on_dead(lambda s, msg: dead.append(msg))
        await until(lambda: sub.error_count == 1)
        assert sub.retry_interval == 5000

        # the retry lands just past the 5s grace window
        clock.advance(sub.retry_interval / 1000 + 0.5)
        sub._subscribe()
        await until(lambda: sub.error_count == 2)

        assert terminator.reasons == ["sustained errors on host1"]
        assert sub.error_count < DEAD_THRESHOLD
        assert dead == []

    async def test_success_resets_error_count(self, make_sub, transport, ok, until):
        transport.results = [TransportError("x", URL)] * 3 + [ok()]
        sub = make_sub(retry_interval=1)
        await until(lambda: sub.state == SubscriptionState.ACTIVE)
        assert sub.error_count == 0


class TestDead:
    async def test_dead_fires_once_at_threshold(self, make_sub, terminator, until):
        events = []
        sub = make_sub(retry_interval=1)
        sub.on_dead(lambda s, msg: events.append((s.error_count, msg, terminator.called)))

        await until(lambda: sub.error_count >= DEAD_THRESHOLD + 2)
        assert events == [(DEAD_THRESHOLD, DEAD_MESSAGE, False)]

    async def test_dead_message(self, make_sub, until):
        messages = []
        sub = make_sub(retry_interval=1)
        sub.on_dead(lambda s, msg: messages.append(msg))
        await until(lambda: messages)
        assert messages == ["Endpoint has probably died"]

    async def test_terminates_after_grace_delay(self, make_sub, terminator, until):
        fired_at = []
        loop = asyncio.get_running_loop()
        sub = make_sub(retry_interval=1)
        sub.on_dead(lambda s, msg: fired_at.append(loop.time()))

        await until(lambda: fired_at)
        assert not terminator.called
        await until(lambda: terminator.called, timeout=1.0)
        assert loop.time() - fired_at[0] >= 0.14
        assert len(terminator.reasons) == 1

    async def test_async_callback_awaited(self, make_sub, until):
        seen = []

        async def on_dead(sub, message):
            await asyncio.sleep(0)
            seen.append(message)

        sub = make_sub(retry_interval=1)
        sub.on_dead(on_dead)
        await until(lambda: seen)
        assert seen == [DEAD_MESSAGE]

    async def test_callback_error_does_not_break_retries(self, make_sub, until):
        def broken(sub, message):
            raise RuntimeError("listener bug")

        sub = make_sub(retry_interval=1)
        sub.on_dead(broken)
        await until(lambda: sub.error_count > DEAD_THRESHOLD)
        assert sub.has_pending_timer

    async def test_default_retry_waits_five_seconds(self, make_sub, transport, metrics, until):
        # default 5000ms retry: only the first attempt lands quickly
        sub = make_sub()
        await until(lambda: sub.error_count == 1)
        await asyncio.sleep(0.05)
        assert len(transport.calls) == 1
        assert metrics.dead.value == 0


class TestProcessDefaults:
    async def test_standalone_subscription_is_swept(
        self, process_monitor, transport, watcher, clock, terminator, metrics, until,
    ):
        sub = Subscription(URL, CALLBACK, transport, terminate=terminator, metrics=metrics)
        try:
            assert sub.watcher is watcher
            assert process_monitor.running
            await until(lambda: sub.error_count == 1)
            assert "host1" in watcher

            # no retry lands before the sweep notices the old entry
            clock.advance(25)
            await until(lambda: terminator.called)
            assert terminator.reasons[0] == "1 stale host errors"
        finally:
            await sub.dispose()

    async def test_explicit_watcher_skips_process_monitor(self, process_monitor, make_sub):
        make_sub()
        assert not process_monitor.running


class TestDispose:
    async def test_unsubscribe_carries_sid(self, make_sub, transport, ok, until):
        transport.results = [ok("uuid-123")]
        sub = make_sub()
        await until(lambda: sub.state == SubscriptionState.ACTIVE)
        transport.default = ok()

        await sub.dispose()

        unsubs = transport.calls_for("UNSUBSCRIBE")
        assert len(unsubs) == 1
        assert unsubs[0].headers == {"SID": "uuid-123"}
        assert unsubs[0].target == URL
        assert not sub.has_pending_timer
        assert sub.state == SubscriptionState.DISPOSED

    async def test_unsubscribe_without_sid_still_sent(self, make_sub, transport, until):
        sub = make_sub()
        await until(lambda: sub.error_count == 1)

        await sub.dispose()

        unsubs = transport.calls_for("UNSUBSCRIBE")
        assert len(unsubs) == 1
        assert "SID" not in unsubs[0].headers

    async def test_unsubscribe_failure_is_swallowed(self, make_sub, transport, watcher, clock, terminator, until):
        sub = make_sub()
        await until(lambda: sub.error_count == 1)
        first_error = watcher.first_error_at(URL)
        clock.advance(10)

        await sub.dispose()   # fails: default transport result is an error

        assert sub.error_count == 1
        assert watcher.first_error_at(URL) == first_error
        assert not terminator.called

    async def test_dispose_twice_sends_one_unsubscribe(self, make_sub, transport, ok, until):
        transport.results = [ok()]
        sub = make_sub()
        await until(lambda: sub.state == SubscriptionState.ACTIVE)
        await sub.dispose()
        await sub.dispose()
        assert len(transport.calls_for("UNSUBSCRIBE")) == 1

    async def test_late_response_after_dispose_ignored(self, make_sub, transport, ok):
        gate = asyncio.Event()
        transport.results = [gate]
        sub = make_sub()
        await transport.wait_for_calls(1)

        transport.default = ok("late-sid")
        await sub.dispose()
        gate.set()
        await asyncio.sleep(0.01)

        assert sub.sid is None
        assert not sub.has_pending_timer
        assert sub.state == SubscriptionState.DISPOSED

    async def test_to_dict(self, make_sub, transport, ok, until):
        transport.results = [ok("uuid-9")]
        sub = make_sub()
        await until(lambda: sub.state == SubscriptionState.ACTIVE)
        d = sub.to_dict()
        assert d["host"] == "host1"
        assert d["state"] == "active"
        assert d["sid"] == "uuid-9"
