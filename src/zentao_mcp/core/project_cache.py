"""Two-tier cache for the project list: process memory over a JSON file.

File format::

    {"updatedAt": <epoch millis>, "projects": [...]}
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from zentao_mcp.core.models import Project

logger = logging.getLogger("zentao_mcp.project_cache")

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass
class CacheEntry:
    projects: list[Project]
    updated_at: float
    expires_at: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return self.expires_at > now and now - self.updated_at < ttl_seconds


class TieredProjectCache:
    def __init__(self, path: Path, clock: Callable[[], float] = time.time) -> None:
        self.path = Path(path)
        self.clock = clock
        self._memory: Optional[CacheEntry] = None

    def resolve(
        self,
        fetch: Callable[[], list[Project]],
        refresh: bool = False,
        ttl_seconds: float | None = None,
    ) -> list[Project]:
        """Return projects from memory, then file, then ``fetch``.

        ``refresh`` skips both tiers. A fresh fetch overwrites both.
        """
        ttl = ttl_seconds if ttl_seconds and ttl_seconds > 0 else DEFAULT_TTL_SECONDS
        now = self.clock()

        if not refresh:
            if self._memory and self._memory.is_fresh(now, ttl):
                logger.debug("Projects served from memory cache")
                return self._memory.projects
            entry = self.read_file(now, ttl)
            if entry:
                logger.debug("Projects served from file cache %s", self.path)
                self._memory = entry
                return entry.projects

        projects = fetch()
        now = self.clock()
        self._memory = CacheEntry(projects=projects, updated_at=now, expires_at=now + ttl)
        self.write_file(projects, now)
        return projects

    def read_file(self, now: float, ttl_seconds: float) -> Optional[CacheEntry]:
        """Load the persisted entry; any problem counts as a miss."""
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(raw, dict):
            return None
        projects = raw.get("projects")
        updated_ms = raw.get("updatedAt")
        if not isinstance(projects, list) or isinstance(updated_ms, bool) or not isinstance(updated_ms, (int, float)):
            return None
        updated_at = updated_ms / 1000.0
        if now - updated_at >= ttl_seconds:
            return None
        # Expiry stays anchored to the file's timestamp
        return CacheEntry(projects=projects, updated_at=updated_at, expires_at=updated_at + ttl_seconds)

    def write_file(self, projects: list[Project], now: float) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = {"updatedAt": int(now * 1000), "projects": projects}
            self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to write project cache %s: %s", self.path, exc)
