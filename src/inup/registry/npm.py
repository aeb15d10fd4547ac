"""NPM registry client: full version listings from the authoritative registry."""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from typing import Dict, List, Optional, Sequence, Tuple

import aiohttp
import yarl

from inup.cache.manager import CacheManager
from inup.common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from inup.constants import Constants
from inup.registry.http import ConnectionPool, RegistryError, is_transient_error
from inup.registry.notify import ProgressCallback
from inup.resolver import ResolutionOrchestrator
from inup.versioning import semver
from inup.versioning.models import PackageVersionData

logger = logging.getLogger(__name__)

# Abbreviated packument when available; plain JSON otherwise
PACKUMENT_ACCEPT = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"


def extract_release_versions(packument: object) -> List[str]:
    """Plain ``X.Y.Z`` versions from a packument, newest first.

    Pre-releases and build-tagged versions are excluded.
    """
    if not isinstance(packument, dict):
        return []
    versions = packument.get("versions")
    if not isinstance(versions, dict):
        return []
    releases = [v for v in versions if isinstance(v, str) and semver.is_strict_release(v)]
    return semver.sort_descending(releases)


class NpmRegistryClient:
    """Resolver backed by the npm registry's package metadata endpoint.

    Used directly when npm is the primary source, and as the fallback for
    packages the CDN cannot answer. Failures never propagate: a package
    that cannot be fetched resolves to the unknown sentinel.
    """

    def __init__(
        self,
        cache: CacheManager,
        *,
        base_url: str = Constants.REGISTRY_URL_NPM,
        timeout: float = Constants.REQUEST_TIMEOUT,
        pool: Optional[ConnectionPool] = None,
    ):
        """Initialize the npm registry client.

        Args:
            cache: Cache manager shared with the other resolvers
            base_url: Registry base URL
            timeout: Hard per-request timeout in seconds
            pool: Connection pool (default: a private pool closed by ``close()``)
        """
        self._cache = cache
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_pool = pool is None
        self._pool = pool or ConnectionPool(limit=0, total_timeout=timeout)
        self._orchestrator = ResolutionOrchestrator(self.resolve_package, name="npm")

    @property
    def base_url(self) -> str:
        return self._base_url

    def package_url(self, package_name: str) -> str:
        return f"{self._base_url}/{urllib.parse.quote(package_name, safe='')}"

    async def _request(self, url: str) -> Tuple[int, bytes]:
        """GET ``url`` and return ``(status, body)``."""
        session = await self._pool.session()
        async with session.get(
            yarl.URL(url, encoded=True),
            headers={"Accept": PACKUMENT_ACCEPT},
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        ) as response:
            return response.status, await response.read()

    async def fetch_package(self, package_name: str) -> PackageVersionData:
        """Fetch and filter the version list of one package (no caching)."""
        url = self.package_url(package_name)
        with Timer() as timer:
            try:
                status, body = await self._request(url)
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError, RegistryError) as exc:
                level = logging.INFO if is_transient_error(exc) else logging.WARNING
                logger.log(
                    level,
                    "npm request for %s failed: %s: %s",
                    package_name,
                    type(exc).__name__,
                    exc,
                    extra=extra_context(
                        event="http_exception",
                        component="npm",
                        outcome=type(exc).__name__,
                        target=safe_url(url),
                    ),
                )
                return PackageVersionData.unknown()

        if status != 200:
            logger.info(
                "npm registry returned HTTP %d for %s",
                status,
                package_name,
                extra=extra_context(
                    event="http_response",
                    component="npm",
                    outcome="handled_non_2xx",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    target=safe_url(url),
                ),
            )
            return PackageVersionData.unknown()

        try:
            packument = json.loads(body)
        except ValueError:
            logger.warning("Couldn't decode npm metadata for %s", package_name)
            return PackageVersionData.unknown()

        releases = extract_release_versions(packument)
        if not releases:
            return PackageVersionData.unknown()

        if is_debug_enabled(logger):
            logger.debug(
                "npm resolved %s to %s (%d releases)",
                package_name,
                releases[0],
                len(releases),
                extra=extra_context(
                    event="http_response",
                    component="npm",
                    outcome="success",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                ),
            )
        return PackageVersionData.of(releases[0], releases)

    async def resolve_package(self, package_name: str) -> PackageVersionData:
        """Cached lookup; the unknown sentinel is cached like any result."""
        data = await self._cache.get_or_fetch(package_name, lambda: self.fetch_package(package_name))
        return data if data is not None else PackageVersionData.unknown()

    async def resolve_all(
        self,
        package_names: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
        *,
        flush: bool = True,
    ) -> Dict[str, PackageVersionData]:
        """Resolve every package concurrently.

        Args:
            package_names: Names to resolve
            on_progress: Called as ``(name, completed, total)`` once per name,
                in completion order
            flush: Persist the disk cache index when done

        Returns:
            Mapping covering every input name
        """
        results = await self._orchestrator.run(package_names, on_progress=on_progress)
        if flush and package_names:
            self._cache.flush()
        return results

    async def close(self) -> None:
        if self._owns_pool:
            await self._pool.close()
