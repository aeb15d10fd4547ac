"""inup: registry resolution and caching for an interactive dependency upgrader."""

from inup.versioning.models import PackageVersionData, UNKNOWN_VERSION

__version__ = "0.4.0"

__all__ = [
    "PackageVersionData",
    "UNKNOWN_VERSION",
    "__version__",
]
