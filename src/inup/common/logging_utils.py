"""Centralized logging helpers.

All modules log through ``logging.getLogger(__name__)``; this module owns
root configuration and the small helpers used to attach structured context
to records without leaking credentials into log output.
"""

from __future__ import annotations

import logging
import os
import time
import urllib.parse
from typing import Any, Dict, Optional

from inup.constants import Constants

_HANDLER_FLAG = "_inup_handler"
_REDACTED = "[REDACTED]"


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    Safe to call repeatedly; only the level is updated on later calls.
    Level precedence: explicit argument, ``INUP_LOG_LEVEL``, Constants.LOG_LEVEL.
    """
    level_name = (level or os.environ.get("INUP_LOG_LEVEL") or Constants.LOG_LEVEL).upper()
    level_value = getattr(logging, level_name, logging.WARNING)

    root = logging.getLogger()
    if not any(getattr(h, _HANDLER_FLAG, False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        setattr(handler, _HANDLER_FLAG, True)
        root.addHandler(handler)
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True if DEBUG records would be emitted by ``logger``."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping for structured log fields.

    ``None`` values are dropped so records only carry meaningful keys.
    """
    return {key: value for key, value in fields.items() if value is not None}


def safe_url(url: str) -> str:
    """Strip userinfo and query string from a URL before logging it."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return url
    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{_REDACTED}@{netloc.rsplit('@', 1)[1]}"
    query = _REDACTED if parts.query else ""
    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, ""))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds; live value while the block is still running."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
