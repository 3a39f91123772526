"""
Streamlab Tools Module

Contains the emission engine:
- Data generators
- Emission scheduler
- Stream registry
"""

from streamlab.tools.data_generators import (
    BookDataGenerator,
    IssueDataGenerator,
    get_generator,
)

from streamlab.tools.emission_scheduler import (
    EmissionScheduler,
    TickOutcome,
)

from streamlab.tools.stream_registry import StreamRegistry

__all__ = [
    # Generators
    "BookDataGenerator",
    "IssueDataGenerator",
    "get_generator",
    # Scheduling
    "EmissionScheduler",
    "TickOutcome",
    "StreamRegistry",
]
