"""Bounded retry with per-attempt timeouts and backoff delays.

A policy is an ordered sequence of per-attempt timeouts (one attempt per
entry) plus a table of inter-attempt delays. It is built once from
configuration and shared read-only by every caller.
"""

from __future__ import annotations

import asyncio
import email.utils
import logging
import time
from typing import Awaitable, Callable, Optional, Sequence, Tuple, TypeVar

from inup.common.logging_utils import extra_context

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableStatus(Exception):
    """Raised by an attempt that got a retryable HTTP status."""

    def __init__(self, status: int, retry_after: Optional[float] = None):
        self.status = status
        self.retry_after = retry_after
        super().__init__(f"HTTP {status}")


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header (delta-seconds or HTTP-date) to seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    current = time.time() if now is None else now
    return max(0.0, when.timestamp() - current)


class RetryPolicy:
    """Sequential attempts with per-attempt timeouts and backoff."""

    def __init__(
        self,
        timeouts: Sequence[float],
        delays: Sequence[float] = (),
        max_delay: Optional[float] = None,
    ):
        """Initialize the retry policy.

        Args:
            timeouts: Per-attempt timeouts in seconds; one attempt per entry
            delays: Sleep before attempt i+1 is ``delays[i]``; the last entry
                is reused when the table is shorter than the attempts
            max_delay: Upper bound for any sleep (default: the longest timeout)

        Raises:
            ValueError: If no timeouts are given or a value is negative
        """
        if not timeouts:
            raise ValueError("retry policy needs at least one timeout")
        if any(t <= 0 for t in timeouts) or any(d < 0 for d in delays):
            raise ValueError("retry timeouts must be positive and delays non-negative")
        self._timeouts: Tuple[float, ...] = tuple(float(t) for t in timeouts)
        self._delays: Tuple[float, ...] = tuple(float(d) for d in delays)
        self._max_delay = float(max_delay) if max_delay is not None else max(self._timeouts)

    @property
    def timeouts(self) -> Tuple[float, ...]:
        return self._timeouts

    @property
    def delays(self) -> Tuple[float, ...]:
        return self._delays

    @property
    def attempts(self) -> int:
        return len(self._timeouts)

    @property
    def shortest_timeout(self) -> float:
        return min(self._timeouts)

    def delay_for(self, attempt_index: int, retry_after: Optional[float] = None) -> float:
        """Sleep before the attempt following ``attempt_index``."""
        if attempt_index < len(self._delays):
            delay = self._delays[attempt_index]
        else:
            delay = self._delays[-1] if self._delays else 0.0
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, self._max_delay)

    async def attempt(
        self,
        operation: Callable[[int, float], Awaitable[Optional[T]]],
        is_retryable_exception: Callable[[BaseException], bool],
        context: str = "operation",
    ) -> Optional[T]:
        """Run ``operation`` until it returns, or the attempt budget is spent.

        ``operation(attempt_index, timeout)`` returns a value (None means a
        definitive miss and is returned without retrying) or raises
        ``RetryableStatus``. Exceptions accepted by ``is_retryable_exception``
        are retried; anything else ends the loop. Never raises.
        """
        last_index = self.attempts - 1
        for index, timeout in enumerate(self._timeouts):
            try:
                return await operation(index, timeout)
            except RetryableStatus as exc:
                if index == last_index:
                    logger.warning(
                        "%s gave up after %d attempts (HTTP %d)",
                        context,
                        self.attempts,
                        exc.status,
                        extra=extra_context(event="retry_exhausted", status_code=exc.status),
                    )
                    return None
                delay = self.delay_for(index, exc.retry_after)
                reason = f"HTTP {exc.status}"
            except Exception as exc:  # pylint: disable=broad-exception-caught
                if index == last_index or not is_retryable_exception(exc):
                    logger.warning(
                        "%s failed on attempt %d/%d: %s: %s",
                        context,
                        index + 1,
                        self.attempts,
                        type(exc).__name__,
                        exc,
                        extra=extra_context(event="retry_failed", outcome=type(exc).__name__),
                    )
                    return None
                delay = self.delay_for(index)
                reason = type(exc).__name__

            logger.debug(
                "%s attempt %d/%d failed (%s); retrying in %.2fs",
                context,
                index + 1,
                self.attempts,
                reason,
                delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)
        return None
