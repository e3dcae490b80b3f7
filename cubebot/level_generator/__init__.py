"""
Level Generator - Designs levels from text prompts.

The level generator:
1. Takes a free-text request
2. Uses an LLM to draft a level document
3. Produces a validated, solvable LevelSpec
4. Caches results by prompt hash

The LLM never takes part in running a program.
"""

from .generator import (
    LevelGenerator,
    LevelDesignClient,
    LevelGenerationError,
    GenerationResult,
    GenerationStatus,
    generate_level,
)
from .cache import LevelCache, CacheEntry
from .prompts import LevelPrompts

__all__ = [
    "LevelGenerator",
    "LevelDesignClient",
    "LevelGenerationError",
    "GenerationResult",
    "GenerationStatus",
    "generate_level",
    "LevelCache",
    "CacheEntry",
    "LevelPrompts",
]
