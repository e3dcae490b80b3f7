"""
Level Generator - Designs new levels from a text prompt using an LLM.

The generator:
1. Accepts a free-text request ("a spiral maze with two gaps")
2. Asks the LLM for a level document as strict JSON
3. Parses and validates it, including a solvability check
4. Caches accepted levels by prompt hash

The LLM is a collaborator: any failure on its side becomes a FAILED
result, never an exception, and the current level stays playable.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import hashlib
import json
import logging
import time

from ..engine_core.grid import InvalidLevel
from ..level_schema import LevelSpec, level_from_dict, validate_level
from ..level_schema.validation import ValidationResult
from .cache import LevelCache
from .prompts import LevelPrompts

logger = logging.getLogger(__name__)


class GenerationStatus(Enum):
    """Status of level generation."""
    SUCCESS = "success"
    PARTIAL = "partial"  # Valid, but with warnings
    FAILED = "failed"
    CACHED = "cached"  # Retrieved from cache


class LevelGenerationError(Exception):
    """Raised by LLM clients when the model call itself fails."""


class LevelDesignClient(ABC):
    """
    Interface to the model that designs levels.

    Implementations wrap a concrete LLM SDK and must return the raw
    JSON text of the response.
    """

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system_instruction: str,
        response_schema: dict[str, Any],
    ) -> str:
        """Return a JSON level document for the prompt."""
        pass


@dataclass
class GenerationResult:
    """
    Result of generating a level.
    """
    status: GenerationStatus
    level: LevelSpec | None = None
    validation: ValidationResult | None = None

    # Issues encountered
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    # Metadata
    prompt_hash: str = ""
    generation_time_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status != GenerationStatus.FAILED and self.level is not None


class LevelGenerator:
    """
    Generates levels from prompts.

    Usage:
        generator = LevelGenerator(llm_client=client)
        result = generator.generate("a long corridor with three gaps")
        if result.success:
            level = result.level
    """

    def __init__(
        self,
        llm_client: LevelDesignClient | None = None,
        cache_dir: str | None = None,
        use_cache: bool = True,
    ):
        self.llm_client = llm_client
        self.cache: LevelCache | None = LevelCache(cache_dir=cache_dir) if use_cache else None

    def generate(self, prompt: str, force_regenerate: bool = False) -> GenerationResult:
        """
        Generate a level for a prompt.

        Args:
            prompt: Free-text description of the wanted level
            force_regenerate: Skip cache lookup

        Returns:
            GenerationResult with status and level
        """
        start_time = time.time()
        prompt_hash = self._hash_prompt(prompt)

        if not prompt or not prompt.strip():
            return GenerationResult(
                status=GenerationStatus.FAILED,
                errors=["Prompt is empty"],
                prompt_hash=prompt_hash,
            )

        if self.cache and not force_regenerate:
            cached_level = self.cache.get(prompt)
            if cached_level:
                return GenerationResult(
                    status=GenerationStatus.CACHED,
                    level=cached_level,
                    prompt_hash=prompt_hash,
                )

        if self.llm_client is None:
            return GenerationResult(
                status=GenerationStatus.FAILED,
                errors=["No level design model configured"],
                prompt_hash=prompt_hash,
            )

        try:
            raw = self.llm_client.generate(
                LevelPrompts.level_request(prompt),
                system_instruction=LevelPrompts.system_instruction(),
                response_schema=LevelPrompts.response_schema(),
            )
        except Exception as e:
            logger.warning("Level generation call failed: %s", e)
            return GenerationResult(
                status=GenerationStatus.FAILED,
                errors=[f"Level generation failed: {e}"],
                prompt_hash=prompt_hash,
            )

        try:
            level = self._parse_level(raw)
        except InvalidLevel as e:
            logger.warning("Generated level rejected: %s", e)
            return GenerationResult(
                status=GenerationStatus.FAILED,
                errors=list(e.errors),
                prompt_hash=prompt_hash,
            )

        validation = validate_level(level)
        errors = list(validation.errors)
        if validation.valid and validation.solution_length is None:
            errors.append("Generated level cannot be solved")

        if errors:
            status = GenerationStatus.FAILED
        elif validation.warnings:
            status = GenerationStatus.PARTIAL
        else:
            status = GenerationStatus.SUCCESS

        if status != GenerationStatus.FAILED and self.cache:
            self.cache.put(prompt, level, metadata={"prompt": prompt})

        generation_time = int((time.time() - start_time) * 1000)
        logger.info("Generated level %s (%s)", level.level_id, status.value)

        return GenerationResult(
            status=status,
            level=level if status != GenerationStatus.FAILED else None,
            validation=validation,
            warnings=validation.warnings,
            errors=errors,
            prompt_hash=prompt_hash,
            generation_time_ms=generation_time,
        )

    def _parse_level(self, raw: str) -> LevelSpec:
        """Parse the model's JSON into a level with a fresh generated id."""
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise InvalidLevel(f"Response is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise InvalidLevel("Response is not a JSON object")

        data["id"] = f"gen-{int(time.time() * 1000)}"
        data.setdefault("description", "")
        return level_from_dict(data)

    def _hash_prompt(self, prompt: str) -> str:
        content = (prompt or "").strip().lower().encode("utf-8")
        return hashlib.sha256(content).hexdigest()[:16]


def generate_level(
    prompt: str,
    llm_client: LevelDesignClient,
    cache_dir: str | None = None,
) -> GenerationResult:
    """
    Convenience function to generate a level.
    """
    generator = LevelGenerator(llm_client=llm_client, cache_dir=cache_dir)
    return generator.generate(prompt)
