"""Composition root wiring caches and registry clients together."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from inup.cache.manager import CacheManager
from inup.cache.persistent import PersistentCache
from inup.common.retry import RetryPolicy
from inup.config import RegistryConfig
from inup.constants import RegistrySource
from inup.registry.jsdelivr import JsdelivrRegistryClient
from inup.registry.notify import BatchCallback, BatchEntry, GuardedCallback, ProgressCallback
from inup.registry.npm import NpmRegistryClient
from inup.versioning.models import PackageVersionData

logger = logging.getLogger(__name__)


class RegistryService:
    """Owns one cache stack and both registry clients for a process.

    Use as an async context manager, or call ``close()`` once at shutdown.
    """

    def __init__(self, config: Optional[RegistryConfig] = None):
        self._config = config or RegistryConfig.from_constants()
        cfg = self._config
        self.persistent_cache = PersistentCache(
            cfg.cache_dir,
            ttl_seconds=cfg.disk_ttl,
            max_entries=cfg.max_disk_entries,
        )
        self.cache = CacheManager(self.persistent_cache, ttl_seconds=cfg.memory_ttl)
        self.npm = NpmRegistryClient(self.cache, base_url=cfg.npm_url, timeout=cfg.request_timeout)
        self.jsdelivr = JsdelivrRegistryClient(
            self.cache,
            self.npm,
            base_url=cfg.cdn_url,
            manifest_path=cfg.manifest_path,
            retry_policy=RetryPolicy(cfg.retry_timeouts, cfg.retry_delays),
            max_connections=cfg.max_connections,
            keepalive_timeout=cfg.keepalive_timeout,
            batch_size=cfg.batch_size,
            batch_idle_timeout=cfg.batch_idle_timeout,
        )
        self._closed = False

    @property
    def config(self) -> RegistryConfig:
        return self._config

    async def get_all_package_data(
        self,
        package_names: Sequence[str],
        current_versions: Optional[Mapping[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_batch_ready: Optional[BatchCallback] = None,
    ) -> Dict[str, PackageVersionData]:
        """Resolve packages through the configured primary registry.

        The npm path has no batch-ready stream; when npm is primary,
        ``on_batch_ready`` receives the whole result once at the end.
        """
        if self._config.default_registry == RegistrySource.NPM.value:
            results = await self.npm.resolve_all(package_names, on_progress=on_progress)
            if on_batch_ready is not None and results:
                GuardedCallback(on_batch_ready, "batch-ready")(
                    [BatchEntry(name, results[name]) for name in package_names if name in results]
                )
            return results
        return await self.jsdelivr.resolve_all(
            package_names,
            current_versions=current_versions,
            on_progress=on_progress,
            on_batch_ready=on_batch_ready,
        )

    def clear_memory_cache(self) -> None:
        self.cache.clear()

    def clear_disk_cache(self) -> None:
        self.persistent_cache.clear_cache()
        self.persistent_cache.flush()

    def flush(self) -> None:
        self.cache.flush()

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    async def close(self) -> None:
        """Flush the disk cache and close both connection pools, once."""
        if self._closed:
            return
        self._closed = True
        self.flush()
        await self.jsdelivr.close()
        await self.npm.close()

    async def __aenter__(self) -> "RegistryService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
