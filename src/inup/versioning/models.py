"""Data models for resolved package versions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from inup.constants import Constants

UNKNOWN_VERSION = Constants.UNKNOWN_VERSION


@dataclass(frozen=True)
class PackageVersionData:
    """Resolved version facts about one package.

    ``all_versions`` is ordered newest first and, when non-empty, starts
    with ``latest_version``. Instances are never mutated; a refresh
    produces a new instance.
    """

    latest_version: str
    all_versions: Tuple[str, ...] = ()

    @classmethod
    def unknown(cls) -> "PackageVersionData":
        """The sentinel for a package no source could resolve."""
        return cls(latest_version=UNKNOWN_VERSION, all_versions=())

    @classmethod
    def of(cls, latest_version: str, all_versions: Iterable[str]) -> "PackageVersionData":
        return cls(latest_version=latest_version, all_versions=tuple(all_versions))

    @property
    def is_unknown(self) -> bool:
        return self.latest_version == UNKNOWN_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the on-disk (camelCase) field names."""
        return {
            "latestVersion": self.latest_version,
            "allVersions": list(self.all_versions),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PackageVersionData":
        """Parse the on-disk representation.

        Raises:
            ValueError: If the payload does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError("package data must be an object")
        latest = data.get("latestVersion")
        versions = data.get("allVersions")
        if not isinstance(latest, str) or not isinstance(versions, list):
            raise ValueError("package data is missing latestVersion/allVersions")
        if not all(isinstance(v, str) for v in versions):
            raise ValueError("allVersions must contain only strings")
        return cls(latest_version=latest, all_versions=tuple(versions))
