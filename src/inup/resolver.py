"""Concurrent batch resolution with coalescing and progressive delivery."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Sequence

from inup.common.logging_utils import Timer, extra_context
from inup.common.singleflight import SingleFlight
from inup.constants import Constants
from inup.registry.notify import BatchBuffer, BatchCallback, GuardedCallback, ProgressCallback
from inup.versioning.models import PackageVersionData

logger = logging.getLogger(__name__)

ResolveOne = Callable[[str], Awaitable[PackageVersionData]]


class ResolutionOrchestrator:
    """Fan a batch of package names out to a per-package resolver.

    Every name runs concurrently on the current event loop. Duplicate names
    share one resolution, yet each occurrence gets its own progress and
    batch notification. The call never raises for per-package failures.
    """

    def __init__(
        self,
        resolve_one: ResolveOne,
        *,
        batch_size: int = Constants.BATCH_SIZE,
        batch_idle_timeout: float = Constants.BATCH_IDLE_TIMEOUT,
        name: str = "resolver",
    ):
        self._resolve_one = resolve_one
        self._batch_size = batch_size
        self._batch_idle_timeout = batch_idle_timeout
        self._name = name

    async def _resolve_guarded(self, package_name: str) -> PackageVersionData:
        try:
            return await self._resolve_one(package_name)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.error(
                "Unexpected error resolving %s; reporting it as unknown",
                package_name,
                exc_info=True,
                extra=extra_context(event="resolve_error", component=self._name, package=package_name),
            )
            return PackageVersionData.unknown()

    async def run(
        self,
        package_names: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
        on_batch_ready: Optional[BatchCallback] = None,
    ) -> Dict[str, PackageVersionData]:
        """Resolve every name and return ``{name: PackageVersionData}``."""
        results: Dict[str, PackageVersionData] = {}
        if not package_names:
            return results

        total = len(package_names)
        completed = 0
        flight: SingleFlight[str, PackageVersionData] = SingleFlight()
        progress = GuardedCallback(on_progress, "progress")
        batches = BatchBuffer(
            GuardedCallback(on_batch_ready, "batch-ready"),
            size=self._batch_size,
            idle_timeout=self._batch_idle_timeout,
        )

        async def _one(package_name: str) -> None:
            nonlocal completed
            data = await flight.do(package_name, lambda: self._resolve_guarded(package_name))
            results[package_name] = data
            completed += 1
            progress(package_name, completed, total)
            batches.add(package_name, data)

        with Timer() as timer:
            try:
                await asyncio.gather(*(_one(name) for name in package_names))
            finally:
                batches.close()

        logger.debug(
            "%s resolved %d packages (%d unique) in %dms",
            self._name,
            total,
            len(flight),
            timer.duration_ms(),
            extra=extra_context(event="batch_complete", component=self._name, duration_ms=timer.duration_ms()),
        )
        return results
