"""
Timer-driven emission scheduler for a single stream.

Each ``EmissionScheduler`` owns the timers of exactly one ActiveStream and
is the only code that mutates its emission state. All callbacks run on the
asyncio event loop, so there is no locking: a tick runs to completion
before any other stream's tick can start.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Callable, Optional, Set

from streamlab.broadcast import BroadcastChannel
from streamlab.models import ActiveStream, StreamState
from streamlab.tools.data_generators import DataGenerator


logger = logging.getLogger(__name__)

DEFAULT_BURST_STAGGER_MS = 100

SIMULATED_ERROR = "Simulated error"
SIMULATED_ERROR_MESSAGE = "Random error for teaching error handling operators"


class TickOutcome(str, Enum):
    """What a single emission attempt did."""
    COMPLETE = "complete"
    ERROR = "error"
    DUPLICATE = "duplicate"
    FRESH = "fresh"


class EmissionScheduler:
    """
    Drives one stream through RUNNING -> COMPLETE | STOPPED.

    Normal mode fires an attempt immediately and then every ``interval``
    ms. Burst mode fires ``burst_size`` attempts, ``burst_stagger_ms``
    apart, every ``burst_interval`` ms. Period timers are re-armed against
    absolute deadlines so the cadence does not drift.

    Every timer handle the scheduler creates (period timer, intra-burst
    attempts, delayed broadcasts) is cancelled together by ``cancel()``.
    """

    def __init__(
        self,
        stream: ActiveStream,
        channel: BroadcastChannel,
        generator: DataGenerator,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        on_complete: Optional[Callable[[ActiveStream], None]] = None,
        burst_stagger_ms: float = DEFAULT_BURST_STAGGER_MS,
    ):
        """
        Initialize the scheduler.

        Args:
            stream: The stream record this scheduler drives
            channel: Broadcast channel for payload and lifecycle events
            generator: Payload generator for the stream kind
            rng: Random source for error/duplicate/delay draws
            clock: Monotonic clock in seconds, same base as ``stream.start_time``
            on_complete: Called once when the duration has elapsed
            burst_stagger_ms: Offset between attempts inside one burst
        """
        self.stream = stream
        self.channel = channel
        self.generator = generator
        self.rng = rng or random.Random()
        self.clock = clock
        self.on_complete = on_complete
        self.burst_stagger_ms = burst_stagger_ms

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._origin = 0.0
        self._periods = 0
        self._period_handle: Optional[asyncio.TimerHandle] = None
        self._pending: Set[asyncio.TimerHandle] = set()

    @property
    def name(self) -> str:
        return self.stream.stream_name

    @property
    def pending_count(self) -> int:
        """Number of one-shot timers (burst attempts, delayed broadcasts) not yet fired."""
        return len(self._pending)

    def start(self):
        """
        Begin scheduling on the running event loop.

        Must be called from a coroutine or callback on that loop.
        """
        config = self.stream.config
        self._loop = asyncio.get_running_loop()
        self._origin = self._loop.time()

        if config.burst_mode:
            self._arm_period(self._burst, config.burst_interval)
        else:
            self._arm_period(self.attempt, config.interval)
            self.attempt()

    def stop(self):
        """Explicit stop: move to STOPPED and cancel every pending timer."""
        if self.stream.state == StreamState.RUNNING:
            self.stream.state = StreamState.STOPPED
        self.cancel()

    def cancel(self):
        if self._period_handle is not None:
            self._period_handle.cancel()
            self._period_handle = None

        for handle in list(self._pending):
            handle.cancel()
        self._pending.clear()

    def elapsed_ms(self) -> int:
        return round((self.clock() - self.stream.start_time) * 1000)

    def attempt(self) -> Optional[TickOutcome]:
        """
        Run one emission attempt.

        Exactly one of duration-complete, error, duplicate or fresh
        emission happens. Does nothing once the stream has left RUNNING.
        """
        stream = self.stream
        if not stream.is_running:
            return None

        config = stream.config
        elapsed = self.elapsed_ms()

        if elapsed >= config.duration:
            self._complete(elapsed)
            return TickOutcome.COMPLETE

        if self.rng.random() * 100 < config.error_rate:
            stream.error_count += 1
            self.channel.publish(f"{self.name}-error", {
                "error": SIMULATED_ERROR,
                "message": SIMULATED_ERROR_MESSAGE,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
            logger.debug(f"{self.name}: injected error at {elapsed}ms")
            return TickOutcome.ERROR

        if self.rng.random() * 100 < config.duplicate_rate and stream.last_payload is not None:
            self.channel.publish(self.name, stream.last_payload)
            stream.emission_count += 1
            stream.duplicate_count += 1
            logger.debug(f"{self.name}: duplicate emission #{stream.emission_count}")
            return TickOutcome.DUPLICATE

        payload = self.generator.generate(stream.emission_count)
        stream.last_payload = payload

        if config.delay_variation > 0:
            delay_ms = self.rng.random() * config.delay_variation
            self._call_later(delay_ms / 1000, self._deliver, payload)
            logger.debug(f"{self.name}: fresh emission delayed {delay_ms:.0f}ms")
        else:
            self._deliver(payload)
        return TickOutcome.FRESH

    def _deliver(self, payload: Dict[str, Any]):
        if not self.stream.is_running:
            return
        self.channel.publish(self.name, payload)
        self.stream.emission_count += 1
        logger.debug(f"{self.name}: emission #{self.stream.emission_count}")

    def _complete(self, elapsed: int):
        stream = self.stream
        stream.state = StreamState.COMPLETE
        self.cancel()

        logger.info(f"■ {self.name}: {stream.emission_count} emissions in {elapsed / 1000:.1f}s")

        if self.on_complete is not None:
            self.on_complete(stream)

        self.channel.publish(f"{self.name}-complete", {
            "streamName": self.name,
            "totalEmissions": stream.emission_count,
            "duration": elapsed,
        })

    def _burst(self):
        stagger = self.burst_stagger_ms / 1000
        for i in range(self.stream.config.burst_size):
            self._call_later(i * stagger, self.attempt)

    def _arm_period(self, callback: Callable[[], Any], period_ms: float):
        self._periods += 1
        when = self._origin + self._periods * period_ms / 1000
        self._period_handle = self._loop.call_at(when, self._on_period, callback, period_ms)

    def _on_period(self, callback: Callable[[], Any], period_ms: float):
        if not self.stream.is_running:
            return
        self._arm_period(callback, period_ms)
        callback()

    def _call_later(self, delay: float, callback: Callable[..., Any], *args):
        handle = None

        def fire():
            self._pending.discard(handle)
            callback(*args)

        loop = self._loop or asyncio.get_running_loop()
        handle = loop.call_later(delay, fire)
        self._pending.add(handle)
