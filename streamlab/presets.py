"""
Named preset catalog.

A preset bundles one or more stream configurations that are started
together, each one tuned to demonstrate a family of reactive operators.
"""

from dataclasses import dataclass, field
from typing import Dict, Any


class UnknownPresetError(KeyError):
    """Raised when a preset name is not in the catalog."""

    def __init__(self, preset_name: str):
        super().__init__(preset_name)
        self.preset_name = preset_name

    def __str__(self) -> str:
        return f"Preset not found: {self.preset_name}"


@dataclass(frozen=True)
class Preset:
    """
    A fixed bundle of stream configurations.

    Attributes:
        key: Catalog key used in URLs
        name: Display name
        description: What the preset is meant to demonstrate
        streams: Sub-stream key -> config dict (camelCase wire form)
    """
    key: str
    name: str
    description: str
    streams: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "description": self.description}
        for stream_key, config in self.streams.items():
            data[stream_key] = dict(config)
        return data


_CATALOG = [
    Preset(
        key="basic",
        name="Basic Stream",
        description="Simple stream for teaching map, filter, tap",
        streams={
            "books": {"streamName": "books", "interval": 2000, "duration": 60000},
            "issues": {"streamName": "issues", "interval": 3000, "duration": 60000},
        },
    ),
    Preset(
        key="throttleDebounce",
        name="Throttle vs Debounce",
        description="Fast bursts to demonstrate throttle/debounce",
        streams={
            "books": {
                "streamName": "books", "interval": 500, "duration": 60000,
                "burstMode": True, "burstSize": 5, "burstInterval": 8000,
            },
        },
    ),
    Preset(
        key="errorHandling",
        name="Error Handling",
        description="Random errors for catchError, retry operators",
        streams={
            "books": {"streamName": "books", "interval": 2000, "duration": 90000, "errorRate": 20},
        },
    ),
    Preset(
        key="distinctDuplicates",
        name="Distinct & Duplicates",
        description="Duplicate data for distinctUntilChanged",
        streams={
            "books": {"streamName": "books", "interval": 2000, "duration": 60000, "duplicateRate": 30},
        },
    ),
    Preset(
        key="combination",
        name="Combination Operators",
        description="Two streams for combineLatest, merge, zip",
        streams={
            "books": {"streamName": "books", "interval": 3000, "duration": 120000},
            "issues": {"streamName": "issues", "interval": 2000, "duration": 120000},
        },
    ),
    Preset(
        key="switching",
        name="Switching Operators",
        description="Variable delays for switchMap, mergeMap, concatMap",
        streams={
            "books": {"streamName": "books", "interval": 4000, "duration": 90000, "delayVariation": 2000},
            "issues": {"streamName": "issues", "interval": 1500, "duration": 90000, "delayVariation": 1000},
        },
    ),
    Preset(
        key="buffering",
        name="Buffering & Windowing",
        description="Fast stream for buffer operators",
        streams={
            "books": {"streamName": "books", "interval": 800, "duration": 60000},
        },
    ),
    Preset(
        key="timing",
        name="Timing Operators",
        description="Variable timing for delay, timeout, sample",
        streams={
            "books": {"streamName": "books", "interval": 3000, "duration": 120000, "delayVariation": 3000},
        },
    ),
]

PRESETS: Dict[str, Preset] = {preset.key: preset for preset in _CATALOG}


def get_preset(preset_name: str, presets: Dict[str, Preset] = PRESETS) -> Preset:
    """
    Look up a preset by catalog key.

    Raises:
        UnknownPresetError: If the name is not in the catalog
    """
    try:
        return presets[preset_name]
    except KeyError:
        raise UnknownPresetError(preset_name)
