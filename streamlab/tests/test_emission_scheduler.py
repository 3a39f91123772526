"""
Tests for the emission scheduler.

Branch-order tests drive ``attempt()`` directly with a scripted random
source and a fake clock. Timing tests run a real event loop with short
intervals.
"""

import asyncio
import random
import time

from streamlab.broadcast import BroadcastChannel
from streamlab.models import ActiveStream, StreamConfig, StreamState
from streamlab.tools.data_generators import BookDataGenerator
from streamlab.tools.emission_scheduler import EmissionScheduler, TickOutcome


class ScriptedRandom(random.Random):
    """Random source whose ``random()`` returns scripted values."""

    def __init__(self, draws=(), fallback=0.5):
        super().__init__(0)
        self.draws = list(draws)
        self.fallback = fallback

    def random(self):
        return self.draws.pop(0) if self.draws else self.fallback

    def getrandbits(self, k):
        return super().getrandbits(k)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance_ms(self, ms):
        self.now += ms / 1000


def make_scheduler(draws=(), clock=None, fallback=0.5, on_complete=None, **config):
    clock = clock or FakeClock()
    channel = BroadcastChannel()
    subscription = channel.subscribe()
    stream_config = StreamConfig(**config)
    stream = ActiveStream(stream_name=stream_config.stream_name, config=stream_config, start_time=clock())
    scheduler = EmissionScheduler(
        stream=stream,
        channel=channel,
        generator=BookDataGenerator(random.Random(1)),
        rng=ScriptedRandom(draws, fallback),
        clock=clock,
        on_complete=on_complete,
    )
    return scheduler, subscription, clock


async def collect_until(subscription, event, timeout=3.0):
    """Receive messages until ``event`` arrives; return them with arrival times."""
    loop = asyncio.get_running_loop()
    received = []
    while True:
        message = await subscription.receive(timeout=timeout)
        received.append((loop.time(), message))
        if message["event"] == event:
            return received


def test_fresh_emission():
    """Test that a tick with no injected fault emits a new payload."""
    scheduler, subscription, _ = make_scheduler(draws=[0.9, 0.9], error_rate=50, duplicate_rate=50)

    outcome = scheduler.attempt()

    assert outcome == TickOutcome.FRESH
    assert scheduler.stream.emission_count == 1
    messages = subscription.drain()
    assert len(messages) == 1
    assert messages[0]["event"] == "books"
    assert messages[0]["data"]["id"] == 1000
    assert scheduler.stream.last_payload is messages[0]["data"]


def test_error_tick_does_not_count():
    scheduler, subscription, _ = make_scheduler(draws=[0.2], error_rate=50)

    outcome = scheduler.attempt()

    assert outcome == TickOutcome.ERROR
    assert scheduler.stream.emission_count == 0
    assert scheduler.stream.last_payload is None
    assert scheduler.stream.error_count == 1
    [message] = subscription.drain()
    assert message["event"] == "books-error"
    assert message["data"]["error"] == "Simulated error"
    assert message["data"]["message"] == "Random error for teaching error handling operators"
    assert "timestamp" in message["data"]


def test_error_takes_precedence_over_duplicate():
    scheduler, subscription, _ = make_scheduler(fallback=0.0, error_rate=100, duplicate_rate=100)
    scheduler.stream.last_payload = {"id": 1000}

    assert scheduler.attempt() == TickOutcome.ERROR
    assert scheduler.stream.emission_count == 0
    assert [m["event"] for m in subscription.drain()] == ["books-error"]


def test_duplicate_needs_a_previous_payload():
    """Test that the first tick is fresh even at duplicateRate 100."""
    scheduler, subscription, _ = make_scheduler(fallback=0.0, duplicate_rate=100)

    assert scheduler.attempt() == TickOutcome.FRESH
    assert scheduler.attempt() == TickOutcome.DUPLICATE
    assert scheduler.stream.emission_count == 2


def test_duplicate_rate_100_replays_last_payload():
    scheduler, subscription, _ = make_scheduler(fallback=0.0, duplicate_rate=100)
    scheduler.attempt()
    [first] = subscription.drain()

    for _ in range(5):
        assert scheduler.attempt() == TickOutcome.DUPLICATE

    replays = subscription.drain()
    assert len(replays) == 5
    assert all(message["data"] == first["data"] for message in replays)
    assert scheduler.stream.emission_count == 6
    assert scheduler.stream.duplicate_count == 5


def test_error_rate_100_never_emits():
    scheduler, subscription, clock = make_scheduler(fallback=0.99, error_rate=100, duration=1000)

    for _ in range(10):
        assert scheduler.attempt() == TickOutcome.ERROR
        clock.advance_ms(50)

    assert scheduler.stream.emission_count == 0
    assert all(m["event"] == "books-error" for m in subscription.drain())


def test_zero_rates_never_inject():
    """Test that zero rates never fire even for a draw of exactly zero."""
    scheduler, _, _ = make_scheduler(fallback=0.0)
    scheduler.attempt()
    assert scheduler.attempt() == TickOutcome.FRESH


def test_completion_at_duration():
    completed = []
    scheduler, subscription, clock = make_scheduler(
        fallback=0.99, duration=3000, on_complete=completed.append
    )
    scheduler.attempt()
    clock.advance_ms(1000)
    scheduler.attempt()
    clock.advance_ms(1000)
    scheduler.attempt()
    clock.advance_ms(999)
    scheduler.attempt()
    subscription.drain()

    clock.advance_ms(1)
    outcome = scheduler.attempt()

    assert outcome == TickOutcome.COMPLETE
    assert scheduler.stream.state == StreamState.COMPLETE
    assert completed == [scheduler.stream]
    [message] = subscription.drain()
    assert message == {
        "event": "books-complete",
        "data": {"streamName": "books", "totalEmissions": 4, "duration": 3000},
    }


def test_completion_happens_once_and_freezes_count():
    completed = []
    scheduler, subscription, clock = make_scheduler(duration=100, on_complete=completed.append)
    clock.advance_ms(150)

    assert scheduler.attempt() == TickOutcome.COMPLETE
    assert scheduler.attempt() is None
    clock.advance_ms(1000)
    assert scheduler.attempt() is None

    assert len(completed) == 1
    assert scheduler.stream.emission_count == 0
    assert [m["event"] for m in subscription.drain()] == ["books-complete"]


def test_zero_duration_completes_on_first_tick():
    scheduler, subscription, _ = make_scheduler(duration=0)
    assert scheduler.attempt() == TickOutcome.COMPLETE
    assert subscription.drain()[0]["data"]["totalEmissions"] == 0


def test_stopped_stream_ignores_ticks():
    scheduler, subscription, _ = make_scheduler()
    scheduler.attempt()
    scheduler.stop()

    assert scheduler.stream.state == StreamState.STOPPED
    assert scheduler.attempt() is None
    assert scheduler.stream.emission_count == 1
    assert len(subscription.drain()) == 1


def test_stop_after_complete_keeps_complete_state():
    scheduler, _, clock = make_scheduler(duration=10)
    clock.advance_ms(20)
    scheduler.attempt()
    scheduler.stop()
    assert scheduler.stream.state == StreamState.COMPLETE


def _real_scheduler(channel, burst_stagger_ms=100, **config):
    stream_config = StreamConfig(**config)
    stream = ActiveStream(stream_name=stream_config.stream_name, config=stream_config, start_time=time.monotonic())
    return EmissionScheduler(
        stream=stream,
        channel=channel,
        generator=BookDataGenerator(),
        clock=time.monotonic,
        burst_stagger_ms=burst_stagger_ms,
    )


def test_normal_cadence_then_complete():
    """Test one immediate emission, one per interval, then completion."""
    async def scenario():
        channel = BroadcastChannel()
        subscription = channel.subscribe()
        scheduler = _real_scheduler(channel, interval=100, duration=250)

        scheduler.start()
        immediate = scheduler.stream.emission_count
        received = await collect_until(subscription, "books-complete")
        return scheduler, immediate, [message for _, message in received]

    scheduler, immediate, messages = asyncio.run(scenario())

    assert immediate == 1
    payloads = [m for m in messages if m["event"] == "books"]
    assert len(payloads) == 3
    complete = messages[-1]["data"]
    assert complete["totalEmissions"] == 3
    assert complete["duration"] >= 250
    assert scheduler.stream.state == StreamState.COMPLETE
    assert scheduler.pending_count == 0


def test_burst_attempts_are_staggered():
    """Test that each burst period fires burst_size attempts close together."""
    async def scenario():
        loop = asyncio.get_running_loop()
        channel = BroadcastChannel()
        subscription = channel.subscribe()
        scheduler = _real_scheduler(
            channel, burst_stagger_ms=20,
            burst_mode=True, burst_size=3, burst_interval=200, duration=350,
        )

        started = loop.time()
        scheduler.start()
        assert scheduler.stream.emission_count == 0
        received = await collect_until(subscription, "books-complete")
        return started, received

    started, received = asyncio.run(scenario())

    arrivals = [at - started for at, message in received if message["event"] == "books"]
    assert len(arrivals) == 3
    assert min(arrivals) >= 0.18
    assert max(arrivals) - min(arrivals) < 0.2
    assert received[-1][1]["data"]["totalEmissions"] == 3


def test_delayed_broadcast_counts_when_it_fires():
    async def scenario():
        channel = BroadcastChannel()
        subscription = channel.subscribe()
        scheduler = _real_scheduler(channel, interval=10000, duration=60000, delay_variation=80)

        scheduler.start()
        before = (scheduler.stream.emission_count, scheduler.pending_count, scheduler.stream.last_payload)
        message = await subscription.receive(timeout=1)
        after = scheduler.stream.emission_count
        scheduler.stop()
        return before, message, after

    (count, pending, last_payload), message, after = asyncio.run(scenario())

    assert count == 0
    assert pending == 1
    assert last_payload is not None
    assert message["data"] is last_payload
    assert after == 1


def test_stop_cancels_pending_burst_and_delayed_work():
    async def scenario():
        channel = BroadcastChannel()
        subscription = channel.subscribe()
        scheduler = _real_scheduler(
            channel, burst_stagger_ms=50,
            burst_mode=True, burst_size=3, burst_interval=100, delay_variation=30,
        )

        scheduler.start()
        await asyncio.sleep(0.13)
        scheduler.stop()
        stopped_with = scheduler.stream.emission_count
        pending = scheduler.pending_count
        subscription.drain()

        await asyncio.sleep(0.3)
        return stopped_with, pending, scheduler.stream.emission_count, subscription.drain()

    stopped_with, pending, final_count, late = asyncio.run(scenario())

    assert pending == 0
    assert final_count == stopped_with
    assert late == []
