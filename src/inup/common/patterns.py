"""Glob-style package name matching for ignore lists."""

from __future__ import annotations

import re
from typing import Iterable


def _compile(pattern: str) -> "re.Pattern[str]":
    # Only * and ? are wildcards; everything else matches literally
    regex = "".join(
        ".*" if ch == "*" else "." if ch == "?" else re.escape(ch) for ch in pattern
    )
    return re.compile(f"^{regex}$")


def matches_pattern(name: str, pattern: str) -> bool:
    """Exact match, or glob match where ``*`` is any run and ``?`` one char."""
    if pattern == name:
        return True
    return bool(_compile(pattern).match(name))


def is_package_ignored(package_name: str, ignore_patterns: Iterable[str]) -> bool:
    """True if ``package_name`` matches any of ``ignore_patterns``.

    Scoped wildcards work as expected: ``@babel/*`` matches ``@babel/core``.
    """
    return any(matches_pattern(package_name, pattern) for pattern in ignore_patterns)
