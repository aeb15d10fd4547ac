"""Version comparison helpers built on ``semantic_version``.

Pure functions, no I/O. Versions are compared by their *identity*: the
npm-style coerced ``major.minor.patch`` form, so ``"1.0"`` and ``"1.0.0"``
(or ``"^1.0.0"``) are the same version.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

import semantic_version

from inup.versioning.models import UNKNOWN_VERSION

# First run of up to three dot-separated numbers anywhere in the string
_COERCE_RE = re.compile(r"(?:^|[^\d])(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?:$|[^\d])")
_STRICT_RELEASE_RE = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+")


def coerce(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Coerce a loose version or range string into a release Version.

    Returns None when the string contains no version number.
    """
    if not value or not isinstance(value, str):
        return None
    match = _COERCE_RE.search(value)
    if not match:
        return None
    major, minor, patch = (int(part) if part else 0 for part in match.groups())
    return semantic_version.Version(major=major, minor=minor, patch=patch)


def identity(value: Optional[str]) -> Optional[str]:
    """Normalized identity string of a version, or None if not coercible."""
    coerced = coerce(value)
    return str(coerced) if coerced is not None else None


def major(value: Optional[str]) -> Optional[int]:
    coerced = coerce(value)
    return coerced.major if coerced is not None else None


def parse(value: str) -> Optional[semantic_version.Version]:
    """Strict semver parse; None for anything that is not valid semver."""
    try:
        return semantic_version.Version(value)
    except (TypeError, ValueError):
        return None


def is_strict_release(value: str) -> bool:
    """True for plain ``X.Y.Z`` releases (no pre-release or build suffix)."""
    return bool(_STRICT_RELEASE_RE.fullmatch(value or ""))


def sort_descending(versions: Iterable[str]) -> List[str]:
    """Sort coercible versions newest first, dropping the rest."""
    keyed = [(coerce(v), v) for v in versions]
    keyed = [(key, v) for key, v in keyed if key is not None]
    keyed.sort(key=lambda item: item[0], reverse=True)
    return [v for _, v in keyed]


def compose_version_list(latest: str, others: Iterable[str] = ()) -> Tuple[str, ...]:
    """Merge ``latest`` with extra versions into a descending list.

    Entries are deduplicated by identity and the literal ``latest`` string is
    always first. A non-coercible ``latest`` is kept as-is in front of the
    coercible entries.
    """
    latest_key = coerce(latest)
    by_identity: Dict[semantic_version.Version, str] = {}
    if latest_key is not None:
        by_identity[latest_key] = latest
    for version in others:
        key = coerce(version)
        if key is None or key in by_identity:
            continue
        by_identity[key] = version

    ordered = [by_identity[key] for key in sorted(by_identity, reverse=True)]
    if latest_key is not None:
        ordered.remove(latest)
    return (latest, *ordered)


def satisfies(version: str, range_spec: str) -> bool:
    """npm range satisfaction; invalid versions or ranges never satisfy."""
    parsed = parse(version)
    if parsed is None:
        return False
    try:
        spec = semantic_version.NpmSpec(range_spec)
    except ValueError:
        return False
    return spec.match(parsed)


def is_version_outdated(current: str, latest: str) -> bool:
    """True when ``latest`` is newer than the version ``current`` pins.

    Range prefixes (``^``, ``~``, ``>=``) are ignored via coercion.
    """
    if not latest or latest == UNKNOWN_VERSION:
        return False
    current_key = coerce(current)
    latest_key = coerce(latest)
    if current_key is None or latest_key is None:
        return False
    return latest_key > current_key


def get_optimized_range_version(current_range: str, all_versions: Iterable[str], latest: str) -> str:
    """Highest known version satisfying ``current_range``, else ``latest``."""
    matching = [v for v in all_versions if satisfies(v, current_range)]
    if not matching:
        return latest
    return sort_descending(matching)[0]


def find_closest_minor_version(installed: str, all_versions: Iterable[str]) -> Optional[str]:
    """Best non-major upgrade for ``installed``.

    Prefers the highest minor in the same major; falls back to the highest
    patch in the same major.minor. None if neither exists.
    """
    base = coerce(installed)
    if base is None:
        return None

    candidates = [(parse(v), v) for v in all_versions]
    candidates = [(ver, raw) for ver, raw in candidates if ver is not None]

    best_minor: Optional[Tuple[semantic_version.Version, str]] = None
    for ver, raw in candidates:
        if ver.major != base.major or ver.minor <= base.minor:
            continue
        if best_minor is None or ver.minor > best_minor[0].minor:
            best_minor = (ver, raw)
    if best_minor is not None:
        return best_minor[1]

    best_patch: Optional[Tuple[semantic_version.Version, str]] = None
    for ver, raw in candidates:
        if (ver.major, ver.minor) != (base.major, base.minor) or ver.patch <= base.patch:
            continue
        if best_patch is None or ver > best_patch[0]:
            best_patch = (ver, raw)
    return best_patch[1] if best_patch is not None else None
