"""jsDelivr CDN client: fast ``latest``/major lookups with npm fallback.

The CDN serves a package's manifest at ``<cdn>/<name>@<tag>/package.json``.
Only the ``latest`` tag (and, when the installed major differs, that
major's tag) is fetched, so a package resolves with one or two small
requests instead of a full registry packument.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
from typing import Dict, Mapping, NamedTuple, Optional, Sequence

import aiohttp
import yarl

from inup.cache.manager import CacheManager
from inup.common.logging_utils import extra_context, is_debug_enabled, safe_url
from inup.common.retry import RetryableStatus, RetryPolicy, parse_retry_after
from inup.constants import Constants
from inup.registry.http import ConnectionPool, is_retryable_status, is_transient_error
from inup.registry.notify import BatchCallback, ProgressCallback
from inup.registry.npm import NpmRegistryClient
from inup.resolver import ResolutionOrchestrator
from inup.versioning import semver
from inup.versioning.models import PackageVersionData

logger = logging.getLogger(__name__)

LATEST_TAG = "latest"


class TagResponse(NamedTuple):
    """Raw outcome of one CDN request."""

    status: int
    body: bytes
    retry_after: Optional[str] = None


def parse_manifest_version(body: bytes) -> Optional[str]:
    """The trimmed ``version`` field of a manifest body, or None."""
    try:
        manifest = json.loads(body)
    except ValueError:
        return None
    if not isinstance(manifest, dict):
        return None
    version = manifest.get("version")
    if not isinstance(version, str) or not version.strip():
        return None
    return version.strip()


class JsdelivrRegistryClient:
    """Primary resolver using the jsDelivr CDN.

    A tag lookup is retried per the retry policy; when ``latest`` cannot be
    obtained the whole package is delegated to the npm fallback client.
    """

    def __init__(
        self,
        cache: CacheManager,
        fallback: NpmRegistryClient,
        *,
        base_url: str = Constants.CDN_URL_JSDELIVR,
        manifest_path: str = Constants.CDN_MANIFEST_PATH,
        retry_policy: Optional[RetryPolicy] = None,
        max_connections: int = Constants.MAX_CONCURRENT_REQUESTS,
        keepalive_timeout: float = Constants.POOL_KEEPALIVE_TIMEOUT,
        batch_size: int = Constants.BATCH_SIZE,
        batch_idle_timeout: float = Constants.BATCH_IDLE_TIMEOUT,
        pool: Optional[ConnectionPool] = None,
    ):
        """Initialize the jsDelivr client.

        Args:
            cache: Cache manager shared with the fallback client
            fallback: Authoritative client used when the CDN has no answer
            base_url: CDN base URL (``.../npm``)
            manifest_path: Manifest file requested under each tag
            retry_policy: Per-attempt timeouts and delays
            max_connections: Connection pool size
            keepalive_timeout: Idle keep-alive in seconds
            batch_size: Entries per batch-ready notification
            batch_idle_timeout: Seconds before a partial batch is delivered
            pool: Connection pool (default: a private pool closed by ``close()``)
        """
        self._cache = cache
        self._fallback = fallback
        self._base_url = base_url.rstrip("/")
        self._manifest_path = manifest_path.lstrip("/")
        self._retry = retry_policy or RetryPolicy(Constants.CDN_RETRY_TIMEOUTS, Constants.CDN_RETRY_DELAYS)
        # Connection setup must fit inside the smallest attempt budget
        self._connect_timeout = self._retry.shortest_timeout
        self._batch_size = batch_size
        self._batch_idle_timeout = batch_idle_timeout
        self._owns_pool = pool is None
        self._pool = pool or ConnectionPool(
            limit=max_connections,
            keepalive_timeout=keepalive_timeout,
            connect_timeout=self._connect_timeout,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    def tag_url(self, package_name: str, tag: str) -> str:
        name = urllib.parse.quote(package_name, safe="")
        return f"{self._base_url}/{name}@{tag}/{self._manifest_path}"

    async def _request(self, url: str, timeout: float) -> TagResponse:
        """GET ``url`` with ``timeout`` bounding header wait and body reads."""
        session = await self._pool.session()
        async with session.get(
            yarl.URL(url, encoded=True),
            timeout=aiohttp.ClientTimeout(
                total=None,
                sock_connect=self._connect_timeout,
                sock_read=timeout,
            ),
        ) as response:
            body = await response.read()
            return TagResponse(response.status, body, response.headers.get("Retry-After"))

    async def fetch_tag(self, package_name: str, tag: str) -> Optional[str]:
        """Version published under ``tag``, or None if unavailable.

        Retryable statuses and transient network faults are retried; a 200
        without a usable ``version`` is a definitive miss. Never raises.
        """
        url = self.tag_url(package_name, tag)

        async def _attempt(attempt_index: int, timeout: float) -> Optional[str]:
            response = await self._request(url, timeout)
            if response.status == 200:
                version = parse_manifest_version(response.body)
                if version is None:
                    logger.debug("No version in CDN manifest for %s@%s", package_name, tag)
                return version
            if is_retryable_status(response.status):
                raise RetryableStatus(response.status, parse_retry_after(response.retry_after))
            if is_debug_enabled(logger):
                logger.debug(
                    "CDN returned HTTP %d for %s@%s",
                    response.status,
                    package_name,
                    tag,
                    extra=extra_context(
                        event="http_response",
                        component="jsdelivr",
                        outcome="not_found",
                        status_code=response.status,
                        target=safe_url(url),
                        attempt=attempt_index + 1,
                    ),
                )
            return None

        return await self._retry.attempt(
            _attempt,
            is_transient_error,
            context=f"jsDelivr request for {package_name}@{tag}",
        )

    async def _fallback_resolve(self, package_name: str) -> PackageVersionData:
        logger.info("Falling back to npm registry for %s", package_name)
        results = await self._fallback.resolve_all([package_name], flush=False)
        return results.get(package_name) or PackageVersionData.unknown()

    async def resolve_package(
        self, package_name: str, current_version: Optional[str] = None
    ) -> PackageVersionData:
        """Resolve one package, consulting the cache first.

        Args:
            package_name: npm package name
            current_version: Installed version specifier; when its major
                differs from latest's, that major's tag is fetched too

        Returns:
            PackageVersionData (the unknown sentinel if every source failed)
        """
        cached = self._cache.get(package_name)
        if cached is not None:
            return cached

        latest = await self.fetch_tag(package_name, LATEST_TAG)
        if latest is None:
            data = await self._fallback_resolve(package_name)
            self._cache.set(package_name, data)
            return data

        others = []
        current_major = semver.major(current_version) if current_version else None
        if current_major is not None and current_major != semver.major(latest):
            major_version = await self.fetch_tag(package_name, str(current_major))
            if major_version is not None:
                others.append(major_version)

        data = PackageVersionData.of(latest, semver.compose_version_list(latest, others))
        self._cache.set(package_name, data)
        return data

    async def resolve_all(
        self,
        package_names: Sequence[str],
        current_versions: Optional[Mapping[str, str]] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_batch_ready: Optional[BatchCallback] = None,
    ) -> Dict[str, PackageVersionData]:
        """Resolve every package concurrently via the CDN.

        Args:
            package_names: Names to resolve; duplicates share one lookup
            current_versions: Optional installed specifier per name
            on_progress: Called as ``(name, completed, total)`` once per input name
            on_batch_ready: Called with lists of ``BatchEntry`` as results arrive

        Returns:
            Mapping covering every input name
        """
        if not package_names:
            return {}

        current = dict(current_versions or {})
        orchestrator = ResolutionOrchestrator(
            lambda name: self.resolve_package(name, current.get(name)),
            batch_size=self._batch_size,
            batch_idle_timeout=self._batch_idle_timeout,
            name="jsdelivr",
        )
        try:
            return await orchestrator.run(
                package_names, on_progress=on_progress, on_batch_ready=on_batch_ready
            )
        finally:
            self._cache.flush()

    async def close(self) -> None:
        if self._owns_pool:
            await self._pool.close()
