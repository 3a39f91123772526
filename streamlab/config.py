"""Runtime settings for the streamlab server."""

import os
import random
from dataclasses import dataclass
from typing import Callable, Optional

from dotenv import load_dotenv

from streamlab.models import ConfigurationError


@dataclass
class Settings:
    """Server settings, read from the environment."""
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    burst_stagger_ms: float = 100
    seed: Optional[int] = None

    def rng_factory(self) -> Callable[[], random.Random]:
        """
        Build the per-stream random source factory.

        With a seed, the n-th stream started gets ``Random(seed + n)`` so a
        demo can be replayed.
        """
        if self.seed is None:
            return random.Random

        counter = {"next": self.seed}

        def seeded() -> random.Random:
            rng = random.Random(counter["next"])
            counter["next"] += 1
            return rng

        return seeded


def _env_number(name: str, default, kind=int):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Load settings from environment variables (and a .env file if present).

    Variables:
        STREAMLAB_HOST, STREAMLAB_PORT, STREAMLAB_LOG_LEVEL,
        STREAMLAB_BURST_STAGGER_MS, STREAMLAB_SEED
    """
    load_dotenv(env_file)

    return Settings(
        host=os.getenv("STREAMLAB_HOST", "0.0.0.0"),
        port=_env_number("STREAMLAB_PORT", 3001),
        log_level=os.getenv("STREAMLAB_LOG_LEVEL", "INFO").upper(),
        burst_stagger_ms=_env_number("STREAMLAB_BURST_STAGGER_MS", 100, float),
        seed=_env_number("STREAMLAB_SEED", None),
    )
