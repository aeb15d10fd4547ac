"""Constants and runtime tunables used in the project.

Defaults live on :class:`Constants`. They can be overridden, in increasing
order of precedence, by a YAML config file (``inup.yml``), by ``INUP_*``
environment variables, and finally by CLI flags (see ``inup.config``).
"""

from __future__ import annotations

import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    USAGE_ERROR = 3


class RegistrySource(Enum):
    """Registry backends that can serve as the primary resolution path.

    Args:
        Enum (string): Registry source identifiers.
    """

    JSDELIVR = "jsdelivr"
    NPM = "npm"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    APP_NAME = "inup"

    REGISTRY_URL_NPM = "https://registry.npmjs.org"
    CDN_URL_JSDELIVR = "https://cdn.jsdelivr.net/npm"
    CDN_MANIFEST_PATH = "package.json"
    DEFAULT_REGISTRY = RegistrySource.JSDELIVR.value
    SUPPORTED_REGISTRIES = [
        RegistrySource.JSDELIVR.value,
        RegistrySource.NPM.value,
    ]

    REQUEST_TIMEOUT = 30  # Timeout in seconds for authoritative registry requests
    CDN_RETRY_TIMEOUTS: Tuple[float, ...] = (4.0, 8.0)  # One entry per CDN attempt
    CDN_RETRY_DELAYS: Tuple[float, ...] = (0.25, 0.75)
    MAX_CONCURRENT_REQUESTS = 80
    POOL_KEEPALIVE_TIMEOUT = 30

    MEMORY_CACHE_TTL_SEC = 300
    DISK_CACHE_TTL_SEC = 24 * 60 * 60
    DISK_CACHE_MAX_ENTRIES = 5000
    DISK_CACHE_FORMAT_VERSION = 2  # 2: data files under packages/
    DISK_CACHE_DIR: Optional[str] = None  # None -> platform default

    BATCH_SIZE = 5
    BATCH_IDLE_TIMEOUT = 0.5

    UNKNOWN_VERSION = "unknown"
    USER_AGENT = "inup-resolver/0.4"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL = "WARNING"


def default_cache_dir() -> Path:
    """Return the platform-conventional per-application cache directory."""
    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA") or os.path.join(
            os.path.expanduser("~"), "AppData", "Local"
        )
        return Path(base) / Constants.APP_NAME / "Cache"
    if sys.platform == "darwin":
        return Path(os.path.expanduser("~")) / "Library" / "Caches" / Constants.APP_NAME
    xdg = os.environ.get("XDG_CACHE_HOME")
    base = Path(xdg) if xdg else Path(os.path.expanduser("~")) / ".cache"
    return base / Constants.APP_NAME


def _config_candidates() -> list:
    """Config file locations in lookup order."""
    candidates = []
    explicit = os.environ.get("INUP_CONFIG")
    if explicit:
        candidates.append(Path(explicit))
    candidates.append(Path.cwd() / "inup.yml")
    candidates.append(Path.cwd() / "inup.yaml")
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        candidates.append(Path(xdg) / Constants.APP_NAME / "inup.yml")
    candidates.append(Path(os.path.expanduser("~")) / ".config" / Constants.APP_NAME / "inup.yml")
    return candidates


def load_yaml_config() -> Dict[str, Any]:
    """Load the first readable YAML config file, or an empty dict."""
    import yaml  # pylint: disable=import-outside-toplevel

    for path in _config_candidates():
        if not path.is_file():
            continue
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", path, exc)
            continue
        if not isinstance(data, dict):
            logger.warning("Ignoring config file %s: top level must be a mapping", path)
            continue
        logger.debug("Loaded configuration from %s", path)
        return data
    return {}


def _as_float_tuple(value: Any) -> Tuple[float, ...]:
    if isinstance(value, str):
        value = [part for part in value.split(",") if part.strip()]
    return tuple(float(item) for item in value)


# YAML key -> (Constants attribute, converter)
_REGISTRY_KEYS = {
    "default": ("DEFAULT_REGISTRY", str),
    "npm_url": ("REGISTRY_URL_NPM", str),
    "cdn_url": ("CDN_URL_JSDELIVR", str),
    "manifest_path": ("CDN_MANIFEST_PATH", str),
    "request_timeout": ("REQUEST_TIMEOUT", float),
    "retry_timeouts": ("CDN_RETRY_TIMEOUTS", _as_float_tuple),
    "retry_delays": ("CDN_RETRY_DELAYS", _as_float_tuple),
    "max_connections": ("MAX_CONCURRENT_REQUESTS", int),
    "keepalive_timeout": ("POOL_KEEPALIVE_TIMEOUT", float),
}
_CACHE_KEYS = {
    "memory_ttl": ("MEMORY_CACHE_TTL_SEC", float),
    "disk_ttl": ("DISK_CACHE_TTL_SEC", float),
    "max_entries": ("DISK_CACHE_MAX_ENTRIES", int),
    "directory": ("DISK_CACHE_DIR", str),
}
_ENV_KEYS = {
    "INUP_REGISTRY": ("DEFAULT_REGISTRY", str),
    "INUP_NPM_REGISTRY_URL": ("REGISTRY_URL_NPM", str),
    "INUP_CDN_URL": ("CDN_URL_JSDELIVR", str),
    "INUP_REQUEST_TIMEOUT": ("REQUEST_TIMEOUT", float),
    "INUP_CDN_RETRY_TIMEOUTS": ("CDN_RETRY_TIMEOUTS", _as_float_tuple),
    "INUP_CDN_RETRY_DELAYS": ("CDN_RETRY_DELAYS", _as_float_tuple),
    "INUP_CACHE_DIR": ("DISK_CACHE_DIR", str),
    "INUP_LOG_LEVEL": ("LOG_LEVEL", str),
}


def _apply(section: Dict[str, Any], mapping: Dict[str, Any], origin: str) -> None:
    for key, raw in section.items():
        target = mapping.get(key)
        if target is None:
            logger.debug("Unknown %s key ignored: %s", origin, key)
            continue
        attr, convert = target
        try:
            setattr(Constants, attr, convert(raw))
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid value for %s '%s': %s", origin, key, exc)


def apply_yaml_overrides(config: Optional[Dict[str, Any]] = None) -> None:
    """Apply ``registry:`` and ``cache:`` sections of the YAML config."""
    cfg = load_yaml_config() if config is None else config
    registry = cfg.get("registry")
    if isinstance(registry, dict):
        _apply(registry, _REGISTRY_KEYS, "registry config")
    cache = cfg.get("cache")
    if isinstance(cache, dict):
        _apply(cache, _CACHE_KEYS, "cache config")


def apply_env_overrides(environ: Optional[Dict[str, str]] = None) -> None:
    """Apply ``INUP_*`` environment variable overrides."""
    env = os.environ if environ is None else environ
    present = {name: env[name] for name in _ENV_KEYS if env.get(name, "").strip()}
    _apply(present, _ENV_KEYS, "environment")
