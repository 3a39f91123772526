"""
Streamlab - configurable synthetic event streams for teaching reactive operators
"""

__version__ = "0.1.0"

from streamlab.models import StreamConfig, ActiveStream, StreamState, ConfigurationError
from streamlab.broadcast import BroadcastChannel, Subscription

__all__ = [
    "StreamConfig",
    "ActiveStream",
    "StreamState",
    "ConfigurationError",
    "BroadcastChannel",
    "Subscription",
]
