"""Tests for the registry service composition root."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from inup.config import RegistryConfig
from inup.registry.notify import BatchEntry
from inup.service import RegistryService
from inup.versioning.models import PackageVersionData

REACT = PackageVersionData.of("18.2.0", ("18.2.0",))


@pytest.fixture
def config(tmp_path):
    return RegistryConfig(cache_dir=tmp_path / "cache", retry_timeouts=(1.0,), retry_delays=(0.0,))


class TestRegistryService:
    """Tests for RegistryService routing and lifecycle."""

    def test_wires_shared_cache(self, config):
        service = RegistryService(config)
        assert service.persistent_cache.cache_dir == config.cache_dir
        assert service.jsdelivr.retry_policy.timeouts == (1.0,)

    def test_routes_to_jsdelivr_by_default(self, config):
        service = RegistryService(config)
        service.jsdelivr.resolve_all = AsyncMock(return_value={"react": REACT})
        service.npm.resolve_all = AsyncMock()

        result = asyncio.run(service.get_all_package_data(["react"], {"react": "17.0.0"}))

        assert result == {"react": REACT}
        service.jsdelivr.resolve_all.assert_awaited_once_with(
            ["react"], current_versions={"react": "17.0.0"}, on_progress=None, on_batch_ready=None
        )
        service.npm.resolve_all.assert_not_awaited()

    def test_routes_to_npm_when_configured(self, tmp_path):
        service = RegistryService(RegistryConfig(default_registry="npm", cache_dir=tmp_path))
        service.npm.resolve_all = AsyncMock(return_value={"react": REACT})
        service.jsdelivr.resolve_all = AsyncMock()
        batches = []

        result = asyncio.run(service.get_all_package_data(["react"], on_batch_ready=batches.append))

        assert result == {"react": REACT}
        assert batches == [[BatchEntry("react", REACT)]]
        service.jsdelivr.resolve_all.assert_not_awaited()

    def test_clear_disk_cache(self, config):
        service = RegistryService(config)
        service.cache.set("react", REACT)
        service.flush()

        service.clear_disk_cache()

        assert service.cache_stats()["disk"]["entries"] == 0

    def test_close_is_idempotent(self, config):
        service = RegistryService(config)
        service.jsdelivr.close = AsyncMock()
        service.npm.close = AsyncMock()

        async def scenario():
            async with service:
                pass
            await service.close()

        asyncio.run(scenario())
        service.jsdelivr.close.assert_awaited_once()
        service.npm.close.assert_awaited_once()
