"""
Configuration - Step timing and environment settings.

One step duration drives every suspension point of a run:
- arrival delay: the first 20% of a step, before collection is checked
- settle delay: the remaining 80%, before the next instruction starts
- post-run settle: a fixed pause before the outcome is shown

The 20/80 split and the 500 ms post-run settle are product-tuned constants.
"""

from __future__ import annotations
from dataclasses import dataclass
import os

# Environment configuration
CUBEBOT_CACHE_DIR = os.getenv("CUBEBOT_CACHE_DIR", None)
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

DEFAULT_STEP_MS = 800
DEFAULT_POST_RUN_MS = 500
DEFAULT_RESET_MS = 100


@dataclass(frozen=True)
class EngineConfig:
    """
    Timing for the run loop, in seconds.

    Usage:
        config = EngineConfig(step_duration=0.4)
        config.arrival_delay  # 0.08
    """
    step_duration: float = DEFAULT_STEP_MS / 1000
    arrival_fraction: float = 0.2
    post_run_settle: float = DEFAULT_POST_RUN_MS / 1000
    reset_settle: float = DEFAULT_RESET_MS / 1000
    jump_fraction: float = 0.95

    def __post_init__(self):
        for name in ("step_duration", "post_run_settle", "reset_settle"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        for name in ("arrival_fraction", "jump_fraction"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1")

    @property
    def arrival_delay(self) -> float:
        return self.step_duration * self.arrival_fraction

    @property
    def settle_delay(self) -> float:
        return self.step_duration * (1.0 - self.arrival_fraction)

    @property
    def jump_duration(self) -> float:
        """How long a renderer should keep the jump arc up."""
        return self.step_duration * self.jump_fraction

    @classmethod
    def instant(cls) -> EngineConfig:
        """No suspensions at all. For tests, the CLI and synchronous API runs."""
        return cls(step_duration=0.0, post_run_settle=0.0, reset_settle=0.0)

    @classmethod
    def from_env(cls) -> EngineConfig:
        """
        Read timing from the environment.

        CUBEBOT_STEP_MS, CUBEBOT_POST_RUN_MS, CUBEBOT_RESET_MS (milliseconds).
        """
        return cls(
            step_duration=int(os.getenv("CUBEBOT_STEP_MS", DEFAULT_STEP_MS)) / 1000,
            post_run_settle=int(os.getenv("CUBEBOT_POST_RUN_MS", DEFAULT_POST_RUN_MS)) / 1000,
            reset_settle=int(os.getenv("CUBEBOT_RESET_MS", DEFAULT_RESET_MS)) / 1000,
        )
