"""Two-tier (memory + disk) cache for resolved package versions."""

from .persistent import PersistentCache
from .manager import CacheManager

__all__ = [
    "PersistentCache",
    "CacheManager",
]
