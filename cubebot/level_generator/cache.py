"""
Level Cache - Caches generated levels by prompt hash.

The cache:
- Uses prompt hash + generator version as key
- Stores level documents as JSON on local disk
- Is optional (a level can always be regenerated)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
import hashlib
import json
import logging
import shutil
import time

from ..engine_core.grid import InvalidLevel
from ..level_schema import LevelSpec, level_from_dict, level_to_dict

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """
    A cached level entry.
    """
    cache_key: str
    prompt_hash: str
    generator_version: str
    level: LevelSpec
    metadata: dict[str, Any] = field(default_factory=dict)

    # Cache metadata
    created_at: float = 0.0
    last_accessed: float = 0.0
    access_count: int = 0


class LevelCache:
    """
    File-based cache for generated levels.

    Usage:
        cache = LevelCache(cache_dir="~/.cubebot/cache")

        level = cache.get(prompt)
        if level is None:
            level = generate(prompt)
            cache.put(prompt, level)
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        generator_version: str = "1.0.0",
    ):
        if cache_dir is None:
            cache_dir = Path.home() / ".cubebot" / "cache"
        self.cache_dir = Path(cache_dir)
        self.generator_version = generator_version

        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def get(self, prompt: str) -> LevelSpec | None:
        """
        Get cached level for a prompt.

        Returns None if not cached or the entry is unreadable.
        """
        cache_path = self._get_cache_path(self._make_cache_key(self._hash_prompt(prompt)))

        if not cache_path.exists():
            return None

        try:
            entry = self._load_entry(cache_path)
        except (OSError, ValueError, KeyError, InvalidLevel) as e:
            logger.warning("Dropping unreadable cache entry %s: %s", cache_path.name, e)
            cache_path.unlink(missing_ok=True)
            return None

        if entry.generator_version != self.generator_version:
            return None

        entry.last_accessed = time.time()
        entry.access_count += 1
        self._save_entry(cache_path, entry)
        return entry.level

    def put(
        self,
        prompt: str,
        level: LevelSpec,
        metadata: dict[str, Any] | None = None,
    ):
        """
        Cache a generated level.
        """
        prompt_hash = self._hash_prompt(prompt)
        cache_key = self._make_cache_key(prompt_hash)
        now = time.time()

        entry = CacheEntry(
            cache_key=cache_key,
            prompt_hash=prompt_hash,
            generator_version=self.generator_version,
            level=level,
            metadata=metadata or {},
            created_at=now,
            last_accessed=now,
            access_count=1,
        )
        self._save_entry(self._get_cache_path(cache_key), entry)

    def invalidate(self, prompt: str):
        """
        Remove cached level for a prompt.
        """
        cache_path = self._get_cache_path(self._make_cache_key(self._hash_prompt(prompt)))
        cache_path.unlink(missing_ok=True)

    def clear(self):
        """
        Clear entire cache.
        """
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    def list_cached(self) -> list[str]:
        """
        List all cached keys.
        """
        if not self.cache_dir.exists():
            return []
        return [f.stem for f in self.cache_dir.glob("*.json")]

    def _hash_prompt(self, prompt: str) -> str:
        """
        Create hash of the prompt.

        Uses SHA-256 truncated to 16 chars. Case and surrounding
        whitespace do not change the hash.
        """
        content = prompt.strip().lower().encode("utf-8")
        return hashlib.sha256(content).hexdigest()[:16]

    def _make_cache_key(self, prompt_hash: str) -> str:
        version_hash = hashlib.sha256(
            self.generator_version.encode()
        ).hexdigest()[:8]
        return f"{prompt_hash}_{version_hash}"

    def _get_cache_path(self, cache_key: str) -> Path:
        return self.cache_dir / f"{cache_key}.json"

    def _load_entry(self, path: Path) -> CacheEntry:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return CacheEntry(
            cache_key=data["cache_key"],
            prompt_hash=data["prompt_hash"],
            generator_version=data["generator_version"],
            level=level_from_dict(data["level"]),
            metadata=data.get("metadata", {}),
            created_at=data.get("created_at", 0.0),
            last_accessed=data.get("last_accessed", 0.0),
            access_count=data.get("access_count", 0),
        )

    def _save_entry(self, path: Path, entry: CacheEntry):
        data = {
            "cache_key": entry.cache_key,
            "prompt_hash": entry.prompt_hash,
            "generator_version": entry.generator_version,
            "level": level_to_dict(entry.level),
            "metadata": entry.metadata,
            "created_at": entry.created_at,
            "last_accessed": entry.last_accessed,
            "access_count": entry.access_count,
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
