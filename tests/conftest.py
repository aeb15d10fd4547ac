"""Shared fixtures for the test suite."""

import pytest

from inup.constants import Constants


@pytest.fixture
def restore_constants():
    """Undo any Constants overrides a test applies."""
    saved = {name: value for name, value in vars(Constants).items() if name.isupper()}
    yield Constants
    for name, value in saved.items():
        setattr(Constants, name, value)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run with no config file or INUP_* variables from the real environment."""
    for name in (
        "INUP_CONFIG",
        "INUP_REGISTRY",
        "INUP_NPM_REGISTRY_URL",
        "INUP_CDN_URL",
        "INUP_REQUEST_TIMEOUT",
        "INUP_CDN_RETRY_TIMEOUTS",
        "INUP_CDN_RETRY_DELAYS",
        "INUP_CACHE_DIR",
        "INUP_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    return tmp_path
