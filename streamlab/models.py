"""
Data models for the streamlab emission engine.

This module defines the stream configuration snapshot, the per-stream
runtime record owned by the registry, and their serialization methods.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from enum import Enum


class ConfigurationError(ValueError):
    """Raised when a stream configuration is invalid."""
    pass


class StreamState(str, Enum):
    """Lifecycle state of an active stream."""
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"
    STOPPED = "STOPPED"


# Wire name -> (attribute, default, coercion)
_CONFIG_FIELDS = {
    "streamName": ("stream_name", "books", str),
    "interval": ("interval", 3000, float),
    "duration": ("duration", 120000, float),
    "errorRate": ("error_rate", 0, float),
    "duplicateRate": ("duplicate_rate", 0, float),
    "delayVariation": ("delay_variation", 0, float),
    "burstMode": ("burst_mode", False, bool),
    "burstSize": ("burst_size", 3, int),
    "burstInterval": ("burst_interval", 10000, float),
}


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_number(value: float):
    """Render whole floats as ints so the wire form stays readable."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass(frozen=True)
class StreamConfig:
    """
    Immutable configuration snapshot for one stream start.

    All times are in milliseconds; rates are percentages and are used as
    given (no clamping).

    Attributes:
        stream_name: Registry key and payload event name
        interval: Period between emission attempts in normal mode
        duration: Lifetime of the stream before it completes
        error_rate: Chance per attempt of an injected error event
        duplicate_rate: Chance per attempt of replaying the last payload
        delay_variation: Upper bound of the random delay before a fresh broadcast
        burst_mode: Emit in bursts instead of at a fixed interval
        burst_size: Attempts per burst
        burst_interval: Period between bursts
    """
    stream_name: str = "books"
    interval: float = 3000
    duration: float = 120000
    error_rate: float = 0
    duplicate_rate: float = 0
    delay_variation: float = 0
    burst_mode: bool = False
    burst_size: int = 3
    burst_interval: float = 10000

    def __post_init__(self):
        if not isinstance(self.stream_name, str) or not self.stream_name:
            raise ConfigurationError("streamName must be a non-empty string")
        for wire_name, (attr, _, kind) in _CONFIG_FIELDS.items():
            if kind in (int, float) and not math.isfinite(getattr(self, attr)):
                raise ConfigurationError(f"{wire_name} must be finite, got {getattr(self, attr)}")
        if self.interval <= 0:
            raise ConfigurationError(f"interval must be > 0, got {self.interval}")
        if self.duration < 0:
            raise ConfigurationError(f"duration must be >= 0, got {self.duration}")
        if self.delay_variation < 0:
            raise ConfigurationError(f"delayVariation must be >= 0, got {self.delay_variation}")
        if self.burst_size < 1:
            raise ConfigurationError(f"burstSize must be >= 1, got {self.burst_size}")
        if self.burst_interval <= 0:
            raise ConfigurationError(f"burstInterval must be > 0, got {self.burst_interval}")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase wire form."""
        return {
            "streamName": self.stream_name,
            "interval": _as_number(self.interval),
            "duration": _as_number(self.duration),
            "errorRate": _as_number(self.error_rate),
            "duplicateRate": _as_number(self.duplicate_rate),
            "delayVariation": _as_number(self.delay_variation),
            "burstMode": self.burst_mode,
            "burstSize": self.burst_size,
            "burstInterval": _as_number(self.burst_interval),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamConfig":
        """
        Deserialize from the camelCase wire form.

        Missing keys take their defaults and unknown keys are ignored.

        Raises:
            ConfigurationError: If a value cannot be coerced or is out of range
        """
        if not isinstance(data, dict):
            raise ConfigurationError("stream config must be a JSON object")

        kwargs = {}
        for wire_name, (attr, default, kind) in _CONFIG_FIELDS.items():
            value = data.get(wire_name)
            if value is None:
                kwargs[attr] = default
                continue

            if kind is str:
                if not isinstance(value, str):
                    raise ConfigurationError(f"{wire_name} must be a string")
                kwargs[attr] = value
            elif kind is bool:
                kwargs[attr] = _coerce_bool(value)
            else:
                if isinstance(value, bool):
                    raise ConfigurationError(f"{wire_name} must be a number")
                try:
                    number = float(value)
                except (TypeError, ValueError, OverflowError):
                    raise ConfigurationError(f"{wire_name} must be a number, got {value!r}")
                if not math.isfinite(number):
                    raise ConfigurationError(f"{wire_name} must be finite, got {value!r}")
                if kind is int:
                    if not number.is_integer():
                        raise ConfigurationError(f"{wire_name} must be a whole number, got {value!r}")
                    number = int(number)
                kwargs[attr] = number

        return cls(**kwargs)


@dataclass
class ActiveStream:
    """
    Runtime record of a running stream.

    Owned by the registry entry for ``stream_name``. ``emission_count`` and
    ``last_payload`` are only mutated by the stream's own scheduler.
    """
    stream_name: str
    config: StreamConfig
    start_time: float
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    emission_count: int = 0
    last_payload: Optional[Dict[str, Any]] = None
    state: StreamState = StreamState.RUNNING
    error_count: int = 0
    duplicate_count: int = 0

    @property
    def is_running(self) -> bool:
        return self.state == StreamState.RUNNING

    def to_dict(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Serialize a status view of the stream."""
        status = {
            "streamName": self.stream_name,
            "state": self.state.value,
            "startedAt": self.started_at.isoformat(),
            "emissionCount": self.emission_count,
            "errorCount": self.error_count,
            "duplicateCount": self.duplicate_count,
            "config": self.config.to_dict(),
        }
        if now is not None:
            status["uptimeMs"] = round((now - self.start_time) * 1000)
        return status
