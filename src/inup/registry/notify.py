"""Progress and batch notification sinks for resolution callers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, NamedTuple, Optional

from inup.common.logging_utils import extra_context
from inup.versioning.models import PackageVersionData

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int], Any]


class BatchEntry(NamedTuple):
    """One resolved package as delivered to a batch-ready callback."""

    name: str
    data: PackageVersionData


BatchCallback = Callable[[List[BatchEntry]], Any]


class GuardedCallback:
    """Caller-supplied callback that cannot break resolution.

    The first exception it raises is logged and the callback is disabled
    for the remainder of the call.
    """

    def __init__(self, callback: Optional[Callable[..., Any]], name: str):
        self._callback = callback
        self._name = name
        self._disabled = False

    @property
    def active(self) -> bool:
        return self._callback is not None and not self._disabled

    def __call__(self, *args: Any) -> None:
        if not self.active:
            return
        try:
            self._callback(*args)  # type: ignore[misc]
        except Exception:  # pylint: disable=broad-exception-caught
            self._disabled = True
            logger.error(
                "%s callback raised; disabling it for this call",
                self._name,
                exc_info=True,
                extra=extra_context(event="callback_error", component=self._name),
            )


class BatchBuffer:
    """Buffer results and hand them to a sink in small batches.

    A batch is flushed when ``size`` entries are buffered, or
    ``idle_timeout`` seconds after the first unflushed entry arrived,
    whichever comes first. ``close()`` flushes whatever is left.
    """

    def __init__(self, sink: GuardedCallback, size: int = 5, idle_timeout: float = 0.5):
        self._sink = sink
        self._size = max(1, size)
        self._idle_timeout = idle_timeout
        self._pending: List[BatchEntry] = []
        self._timer: Optional[asyncio.TimerHandle] = None

    def add(self, name: str, data: PackageVersionData) -> None:
        if not self._sink.active:
            return
        self._pending.append(BatchEntry(name, data))
        if len(self._pending) >= self._size:
            self.flush()
        elif self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._idle_timeout, self.flush)

    def flush(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        self._sink(batch)

    def close(self) -> None:
        self.flush()
