"""Resolved runtime configuration for the registry layer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Tuple

from inup.constants import Constants, default_cache_dir


@dataclass(frozen=True)
class RegistryConfig:
    """Snapshot of every tunable the resolvers and caches read.

    Built once at startup and shared read-only.
    """

    default_registry: str = Constants.DEFAULT_REGISTRY
    npm_url: str = Constants.REGISTRY_URL_NPM
    cdn_url: str = Constants.CDN_URL_JSDELIVR
    manifest_path: str = Constants.CDN_MANIFEST_PATH
    request_timeout: float = Constants.REQUEST_TIMEOUT
    retry_timeouts: Tuple[float, ...] = Constants.CDN_RETRY_TIMEOUTS
    retry_delays: Tuple[float, ...] = Constants.CDN_RETRY_DELAYS
    max_connections: int = Constants.MAX_CONCURRENT_REQUESTS
    keepalive_timeout: float = Constants.POOL_KEEPALIVE_TIMEOUT
    memory_ttl: float = Constants.MEMORY_CACHE_TTL_SEC
    disk_ttl: float = Constants.DISK_CACHE_TTL_SEC
    max_disk_entries: int = Constants.DISK_CACHE_MAX_ENTRIES
    cache_dir: Path = field(default_factory=lambda: default_cache_dir() / "registry")
    batch_size: int = Constants.BATCH_SIZE
    batch_idle_timeout: float = Constants.BATCH_IDLE_TIMEOUT

    def __post_init__(self) -> None:
        if self.default_registry not in Constants.SUPPORTED_REGISTRIES:
            raise ValueError(
                f"Unknown registry '{self.default_registry}' "
                f"(expected one of {', '.join(Constants.SUPPORTED_REGISTRIES)})"
            )
        if not self.retry_timeouts:
            raise ValueError("At least one CDN retry timeout is required")
        if any(t <= 0 for t in self.retry_timeouts) or any(d < 0 for d in self.retry_delays):
            raise ValueError("CDN retry timeouts must be positive and delays non-negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.memory_ttl <= 0 or self.disk_ttl <= 0:
            raise ValueError("Cache TTLs must be positive")
        if self.max_disk_entries < 1 or self.max_connections < 1:
            raise ValueError("max_disk_entries and max_connections must be at least 1")

    @classmethod
    def from_constants(cls) -> "RegistryConfig":
        """Create config from the current (possibly overridden) Constants."""
        cache_dir = Path(Constants.DISK_CACHE_DIR) if Constants.DISK_CACHE_DIR else default_cache_dir() / "registry"
        return cls(
            default_registry=Constants.DEFAULT_REGISTRY,
            npm_url=Constants.REGISTRY_URL_NPM,
            cdn_url=Constants.CDN_URL_JSDELIVR,
            manifest_path=Constants.CDN_MANIFEST_PATH,
            request_timeout=Constants.REQUEST_TIMEOUT,
            retry_timeouts=tuple(Constants.CDN_RETRY_TIMEOUTS),
            retry_delays=tuple(Constants.CDN_RETRY_DELAYS),
            max_connections=Constants.MAX_CONCURRENT_REQUESTS,
            keepalive_timeout=Constants.POOL_KEEPALIVE_TIMEOUT,
            memory_ttl=Constants.MEMORY_CACHE_TTL_SEC,
            disk_ttl=Constants.DISK_CACHE_TTL_SEC,
            max_disk_entries=Constants.DISK_CACHE_MAX_ENTRIES,
            cache_dir=cache_dir,
            batch_size=Constants.BATCH_SIZE,
            batch_idle_timeout=Constants.BATCH_IDLE_TIMEOUT,
        )

    @classmethod
    def from_args(cls, args: Any, base: Optional["RegistryConfig"] = None) -> "RegistryConfig":
        """Apply CLI arguments (highest precedence) on top of ``base``.

        Args:
            args: Parsed CLI arguments namespace.
            base: Starting config (default: ``from_constants()``).
        """
        config = base or cls.from_constants()
        overrides = {}
        if getattr(args, "REGISTRY", None):
            overrides["default_registry"] = args.REGISTRY
        if getattr(args, "CACHE_DIR", None):
            overrides["cache_dir"] = Path(args.CACHE_DIR)
        if getattr(args, "TIMEOUT", None) is not None:
            overrides["request_timeout"] = float(args.TIMEOUT)
        return replace(config, **overrides) if overrides else config
