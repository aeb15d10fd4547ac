"""Disk-backed cache of resolved package version data.

Cache structure:
    cache_dir/
        index.json            {"formatVersion": N, "entries": {name: {file, timestamp}}}
        packages/
            <safe-name>.json  {"latestVersion", "allVersions", "timestamp"}

The cache is a performance optimization only: every disk operation is
guarded and a failure degrades to a miss for that one key.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from inup.constants import Constants, default_cache_dir
from inup.versioning.models import PackageVersionData

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
DATA_DIRNAME = "packages"


def cache_filename(package_name: str) -> str:
    """Filesystem-safe data file name: ``@scope/name`` -> ``scope__name.json``."""
    safe_name = package_name[1:] if package_name.startswith("@") else package_name
    return f"{safe_name.replace('/', '__')}.json"


class PersistentCache:
    """Durable key -> PackageVersionData store with TTL and bounded size."""

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        ttl_seconds: float = Constants.DISK_CACHE_TTL_SEC,
        max_entries: int = Constants.DISK_CACHE_MAX_ENTRIES,
        format_version: int = Constants.DISK_CACHE_FORMAT_VERSION,
    ):
        """Initialize the persistent cache.

        Args:
            cache_dir: Directory holding the index and data files
                (default: platform cache dir + ``registry``)
            ttl_seconds: Entry lifetime in seconds (default: 24 hours)
            max_entries: Maximum tracked entries before eviction
            format_version: Storage format tag; a mismatch wipes the cache
        """
        self._cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir() / "registry"
        self._index_path = self._cache_dir / INDEX_FILENAME
        self._data_dir = self._cache_dir / DATA_DIRNAME
        self._ttl_seconds = ttl_seconds
        self._max_entries = max(1, int(max_entries))
        self._format_version = format_version
        self._entries: Optional[Dict[str, Dict[str, Any]]] = None
        self._dirty = False

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def _ensure_cache_dir(self) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)

    def _ensure_data_dir(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _load_index(self) -> Dict[str, Dict[str, Any]]:
        """Lazily load the index; invalid or outdated indexes start fresh."""
        if self._entries is not None:
            return self._entries

        try:
            if self._index_path.exists():
                with open(self._index_path, encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict) or data.get("formatVersion") != self._format_version:
                    logger.info(
                        "Disk cache format changed (found %r, expected %d); clearing %s",
                        data.get("formatVersion") if isinstance(data, dict) else None,
                        self._format_version,
                        self._cache_dir,
                    )
                    self.clear_cache()
                    return self._entries  # type: ignore[return-value]
                entries = data.get("entries")
                self._entries = entries if isinstance(entries, dict) else {}
                return self._entries
        except (OSError, ValueError) as exc:
            logger.debug("Disk cache index unreadable, starting fresh: %s", exc)

        self._entries = {}
        return self._entries

    def _save_index(self) -> None:
        if not self._dirty or self._entries is None:
            return
        payload = {"formatVersion": self._format_version, "entries": self._entries}
        try:
            self._ensure_cache_dir()
            with open(self._index_path, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            self._dirty = False
        except OSError as exc:
            logger.debug("Failed to write disk cache index: %s", exc)

    def _is_expired(self, timestamp: Any) -> bool:
        if not isinstance(timestamp, (int, float)):
            return True
        return time.time() - timestamp > self._ttl_seconds

    def _delete_file(self, filename: Any) -> None:
        if not isinstance(filename, str):
            return
        try:
            (self._data_dir / filename).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.debug("Failed to delete cache file %s: %s", filename, exc)

    def _purge(self, key: str, entry: Dict[str, Any], delete_file: bool) -> None:
        entries = self._load_index()
        entries.pop(key, None)
        self._dirty = True
        if delete_file:
            self._delete_file(entry.get("file"))

    def get(self, key: str) -> Optional[PackageVersionData]:
        """Get cached data for a package.

        Args:
            key: Package name

        Returns:
            PackageVersionData if a fresh entry exists, None otherwise
        """
        entries = self._load_index()
        entry = entries.get(key)
        if not isinstance(entry, dict):
            return None

        if self._is_expired(entry.get("timestamp")):
            logger.debug("Disk cache entry expired for %s", key)
            self._purge(key, entry, delete_file=True)
            return None

        filename = entry.get("file")
        if not isinstance(filename, str):
            self._purge(key, entry, delete_file=False)
            return None

        try:
            with open(self._data_dir / filename, encoding="utf-8") as f:
                return PackageVersionData.from_dict(json.load(f))
        except FileNotFoundError:
            logger.debug("Disk cache entry orphaned (file missing) for %s", key)
            self._purge(key, entry, delete_file=False)
        except (OSError, ValueError) as exc:
            logger.debug("Disk cache entry corrupt for %s: %s", key, exc)
            self._purge(key, entry, delete_file=True)
        return None

    def set(self, key: str, data: PackageVersionData) -> None:
        """Store data for a package; the index is persisted on ``flush()``."""
        entries = self._load_index()

        if key not in entries and len(entries) >= self._max_entries:
            self._evict_oldest(max(1, self._max_entries // 10))

        filename = cache_filename(key)
        now = time.time()
        payload = dict(data.to_dict(), timestamp=now)
        try:
            self._ensure_data_dir()
            with open(self._data_dir / filename, "w", encoding="utf-8") as f:
                json.dump(payload, f)
        except OSError as exc:
            logger.debug("Failed to write disk cache entry for %s: %s", key, exc)
            return

        entries[key] = {"file": filename, "timestamp": now}
        self._dirty = True

    def get_many(self, keys: Iterable[str]) -> Dict[str, PackageVersionData]:
        """Return the fresh entries among ``keys``."""
        results: Dict[str, PackageVersionData] = {}
        for key in keys:
            cached = self.get(key)
            if cached is not None:
                results[key] = cached
        return results

    def set_many(self, items: Mapping[str, PackageVersionData]) -> None:
        """Store several entries and persist the index once."""
        for key, data in items.items():
            self.set(key, data)
        self.flush()

    def _evict_oldest(self, count: int) -> None:
        entries = self._load_index()
        oldest = sorted(
            entries.items(),
            key=lambda item: item[1].get("timestamp", 0) if isinstance(item[1], dict) else 0,
        )[:count]
        logger.debug("Evicting %d oldest disk cache entries", len(oldest))
        for key, entry in oldest:
            if isinstance(entry, dict):
                self._delete_file(entry.get("file"))
            entries.pop(key, None)
        self._dirty = True

    def flush(self) -> None:
        """Persist the index if it changed since the last flush."""
        self._save_index()

    def clear_cache(self) -> None:
        """Delete every cache file and reset the index."""
        for directory in (self._data_dir, self._cache_dir):
            try:
                if not directory.is_dir():
                    continue
                for item in directory.iterdir():
                    if item.is_file():
                        try:
                            item.unlink()
                        except OSError as exc:
                            logger.debug("Failed to delete %s: %s", item, exc)
            except OSError as exc:
                logger.debug("Failed to list cache directory %s: %s", directory, exc)

        self._entries = {}
        self._dirty = True

    def get_stats(self) -> Dict[str, Any]:
        """Entry count and storage location."""
        return {
            "entries": len(self._load_index()),
            "storage_location": str(self._cache_dir),
        }
