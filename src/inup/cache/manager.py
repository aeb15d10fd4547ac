"""In-memory TTL cache in front of the persistent disk cache."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from inup.cache.persistent import PersistentCache
from inup.constants import Constants
from inup.versioning.models import PackageVersionData

logger = logging.getLogger(__name__)


class CacheManager:
    """Cache-aside facade used by the registry clients.

    Reads check memory first, then disk (backfilling memory on a disk hit).
    Writes go to both tiers. The memory tier lives as long as this object.
    """

    def __init__(
        self,
        persistent: PersistentCache,
        ttl_seconds: float = Constants.MEMORY_CACHE_TTL_SEC,
    ):
        """Initialize the cache manager.

        Args:
            persistent: Disk tier shared with other managers, if any
            ttl_seconds: Memory tier time-to-live (default: 5 minutes)
        """
        self._persistent = persistent
        self._ttl_seconds = ttl_seconds
        self._memory: Dict[str, Tuple[PackageVersionData, float]] = {}

    @property
    def persistent(self) -> PersistentCache:
        return self._persistent

    def get(self, key: str) -> Optional[PackageVersionData]:
        entry = self._memory.get(key)
        if entry is not None:
            value, timestamp = entry
            if time.time() - timestamp < self._ttl_seconds:
                return value
            del self._memory[key]

        cached = self._persistent.get(key)
        if cached is not None:
            logger.debug("Disk cache hit for %s", key)
            self._memory[key] = (cached, time.time())
        return cached

    def set(self, key: str, value: PackageVersionData) -> None:
        self._memory[key] = (value, time.time())
        self._persistent.set(key, value)

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Optional[PackageVersionData]]],
    ) -> Optional[PackageVersionData]:
        """Return the cached value, or fetch, store and return a fresh one.

        A fetcher result of None is returned without being cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        data = await fetcher()
        if data is not None:
            self.set(key, data)
        return data

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        """Drop the memory tier only; the disk tier is untouched."""
        self._memory.clear()

    def flush(self) -> None:
        self._persistent.flush()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "memory_entries": len(self._memory),
            "disk": self._persistent.get_stats(),
        }
