"""
Stream registry for streamlab.

This module owns the set of active streams: it enforces at most one stream
per name, starts and stops their schedulers, and answers configuration
queries from newly connected listeners.
"""

import logging
import random
import time
from types import MappingProxyType
from typing import Dict, Any, Callable, List, Mapping, Optional

from streamlab.broadcast import BroadcastChannel
from streamlab.models import ActiveStream, StreamConfig
from streamlab.tools.data_generators import get_generator
from streamlab.tools.emission_scheduler import EmissionScheduler, DEFAULT_BURST_STAGGER_MS


logger = logging.getLogger(__name__)


class StreamRegistry:
    """
    Manages every active stream of one server.

    All mutations of the registry map happen synchronously, without
    yielding to the event loop, so nothing can observe a half-replaced
    stream.
    """

    def __init__(
        self,
        channel: BroadcastChannel,
        rng_factory: Callable[[], random.Random] = random.Random,
        clock: Callable[[], float] = time.monotonic,
        burst_stagger_ms: float = DEFAULT_BURST_STAGGER_MS,
    ):
        """
        Initialize the registry.

        Args:
            channel: Broadcast channel shared with all listeners
            rng_factory: Builds the random source for each new stream
            clock: Monotonic clock in seconds
            burst_stagger_ms: Offset between attempts inside one burst
        """
        self.channel = channel
        self.rng_factory = rng_factory
        self.clock = clock
        self.burst_stagger_ms = burst_stagger_ms
        self._schedulers: Dict[str, EmissionScheduler] = {}

    def __contains__(self, stream_name: str) -> bool:
        return stream_name in self._schedulers

    def __len__(self) -> int:
        return len(self._schedulers)

    def start(self, config: StreamConfig) -> ActiveStream:
        """
        Start a stream, replacing any stream already running under its name.

        The previous stream is fully stopped (same path as ``stop``) before
        the new one is created. Returns without waiting for an emission.

        Args:
            config: Stream configuration

        Returns:
            The new ActiveStream
        """
        name = config.stream_name
        self.stop(name)

        logger.info(f"▶ {name}: {config.interval:g}ms interval, {config.duration / 1000:g}s duration")

        rng = self.rng_factory()
        stream = ActiveStream(stream_name=name, config=config, start_time=self.clock())
        scheduler = EmissionScheduler(
            stream=stream,
            channel=self.channel,
            generator=get_generator(name, rng),
            rng=rng,
            clock=self.clock,
            on_complete=self._on_complete,
            burst_stagger_ms=self.burst_stagger_ms,
        )

        self._schedulers[name] = scheduler
        self.channel.publish("stream-started", {"streamName": name, "config": config.to_dict()})
        scheduler.start()

        return stream

    def stop(self, stream_name: str) -> bool:
        """
        Stop a stream. No-op if the name is not registered.

        Returns:
            True if a stream was stopped
        """
        scheduler = self._schedulers.get(stream_name)
        if scheduler is None:
            return False

        scheduler.stop()
        self._release(scheduler)
        logger.info(f"Stopped stream {stream_name} after {scheduler.stream.emission_count} emissions")
        return True

    def stop_all(self) -> List[str]:
        """
        Stop every registered stream.

        Returns:
            Names of the streams that were stopped
        """
        names = list(self._schedulers.keys())
        for name in names:
            self.stop(name)
        return names

    def get_configs(self) -> Mapping[str, StreamConfig]:
        """Read-only snapshot of stream name -> StreamConfig."""
        return MappingProxyType({
            name: scheduler.stream.config
            for name, scheduler in self._schedulers.items()
        })

    def get_stream(self, stream_name: str) -> Optional[ActiveStream]:
        scheduler = self._schedulers.get(stream_name)
        return scheduler.stream if scheduler else None

    def active_names(self) -> List[str]:
        return list(self._schedulers.keys())

    def get_status(self) -> Dict[str, Dict[str, Any]]:
        """
        Get status for all active streams.

        Returns:
            Dictionary of stream name -> status view
        """
        now = self.clock()
        return {
            name: scheduler.stream.to_dict(now)
            for name, scheduler in self._schedulers.items()
        }

    def _on_complete(self, stream: ActiveStream):
        scheduler = self._schedulers.get(stream.stream_name)
        # Only the stream that is still registered under this name
        if scheduler is not None and scheduler.stream is stream:
            self._release(scheduler)

    def _release(self, scheduler: EmissionScheduler):
        name = scheduler.name
        scheduler.cancel()
        del self._schedulers[name]
        self.channel.publish("stream-stopped", {"streamName": name})
