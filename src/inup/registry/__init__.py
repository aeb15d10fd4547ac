"""Registry clients: jsDelivr CDN (primary) and npm registry (authoritative).

Clients live in ``inup.registry.npm`` and ``inup.registry.jsdelivr``.
"""

from .http import ConnectionPool, RegistryError
from .notify import BatchEntry

__all__ = [
    "ConnectionPool",
    "RegistryError",
    "BatchEntry",
]
