"""
Control surface shared by the session channel and the HTTP routes.

Both entry points call the same ``StreamControl`` instance, which in turn
calls the one injected ``StreamRegistry``, so state seen through either
path is always the same.
"""

import logging
from typing import Dict, Any, List, Optional

from streamlab.models import ActiveStream, ConfigurationError, StreamConfig
from streamlab.presets import PRESETS, Preset, get_preset
from streamlab.tools.stream_registry import StreamRegistry


logger = logging.getLogger(__name__)


class StreamControl:
    """Thin command layer over a StreamRegistry."""

    def __init__(self, registry: StreamRegistry, presets: Optional[Dict[str, Preset]] = None):
        self.registry = registry
        self.presets = presets if presets is not None else PRESETS

    def start(self, config: Dict[str, Any], require_name: bool = False) -> ActiveStream:
        """
        Start a stream from a wire-form config.

        Args:
            config: camelCase config dict
            require_name: Reject configs without ``streamName`` instead of
                defaulting it (request/response surface)

        Raises:
            ConfigurationError: If the config is invalid
        """
        if require_name and (not isinstance(config, dict) or not config.get("streamName")):
            raise ConfigurationError("streamName is required")

        stream_config = StreamConfig.from_dict(config)
        return self.registry.start(stream_config)

    def stop(self, stream_name: str) -> bool:
        return self.registry.stop(stream_name)

    def stop_all(self) -> List[str]:
        stopped = self.registry.stop_all()
        logger.info(f"Stopped all streams ({len(stopped)})")
        return stopped

    def list_configs(self) -> Dict[str, Dict[str, Any]]:
        """Active stream name -> config, in wire form."""
        return {
            name: config.to_dict()
            for name, config in self.registry.get_configs().items()
        }

    def list_streams(self) -> Dict[str, Any]:
        active = self.registry.active_names()
        return {
            "activeStreams": active,
            "configs": self.list_configs(),
            "totalActive": len(active),
        }

    def list_presets(self) -> Dict[str, Dict[str, Any]]:
        return {key: preset.to_dict() for key, preset in self.presets.items()}

    def start_preset(self, preset_name: str) -> Preset:
        """
        Start every stream of a preset.

        Raises:
            UnknownPresetError: If the preset is not in the catalog
        """
        preset = get_preset(preset_name, self.presets)
        logger.info(f"Starting preset '{preset_name}' ({len(preset.streams)} streams)")

        for config in preset.streams.values():
            self.start(config)

        return preset
