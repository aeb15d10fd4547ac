"""Request coalescing: one in-flight producer per key."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class SingleFlight(Generic[K, T]):
    """Share one producer run between every caller asking for the same key.

    Completed runs stay registered, so an instance should live only as long
    as the batch it serves. Not thread-safe; use from one event loop.
    """

    def __init__(self) -> None:
        self._tasks: Dict[K, "asyncio.Task[T]"] = {}
        self._calls: Dict[K, int] = {}

    async def do(self, key: K, producer: Callable[[], Awaitable[T]]) -> T:
        """Await the shared result for ``key``, starting ``producer`` if needed."""
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(producer())
            self._tasks[key] = task
        self._calls[key] = self._calls.get(key, 0) + 1
        # One caller being cancelled must not cancel the shared run
        return await asyncio.shield(task)

    def calls(self, key: K) -> int:
        """Number of callers that asked for ``key``."""
        return self._calls.get(key, 0)

    def __len__(self) -> int:
        return len(self._tasks)
