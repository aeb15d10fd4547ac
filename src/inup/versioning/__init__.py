"""Version data model and semantic-version helpers."""

from .models import PackageVersionData, UNKNOWN_VERSION

__all__ = [
    "PackageVersionData",
    "UNKNOWN_VERSION",
]
