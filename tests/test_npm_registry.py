"""Tests for the npm registry client."""

import asyncio
import json

import aiohttp
import pytest

from inup.cache.manager import CacheManager
from inup.cache.persistent import PersistentCache
from inup.registry.npm import NpmRegistryClient, extract_release_versions
from inup.versioning.models import PackageVersionData


def _packument(*versions):
    return json.dumps({"name": "pkg", "versions": {v: {} for v in versions}}).encode()


class FakeRegistry:
    """Async stand-in for NpmRegistryClient._request."""

    def __init__(self, responses):
        self.responses = responses
        self.urls = []

    async def __call__(self, url):
        self.urls.append(url)
        response = self.responses[url.rsplit("/", 1)[1]]
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def client(tmp_path):
    cache = CacheManager(PersistentCache(tmp_path / "cache"))
    return NpmRegistryClient(cache, base_url="https://registry.example.test/")


class TestExtractReleaseVersions:
    """Tests for packument filtering."""

    def test_keeps_plain_releases_newest_first(self):
        packument = {"versions": {v: {} for v in ["1.0.0", "2.0.0-beta.1", "1.5.0", "2.0.0+build", "0.9.0", "3.0.0\n"]}}
        assert extract_release_versions(packument) == ["1.5.0", "1.0.0", "0.9.0"]

    @pytest.mark.parametrize("packument", [None, [], {}, {"versions": []}])
    def test_malformed_packument(self, packument):
        assert extract_release_versions(packument) == []


class TestNpmRegistryClient:
    """Tests for NpmRegistryClient resolution."""

    def test_package_url_encodes_scoped_names(self, client):
        assert client.package_url("@babel/core") == "https://registry.example.test/%40babel%2Fcore"

    def test_resolves_latest_and_all_versions(self, client):
        client._request = FakeRegistry({"react": (200, _packument("17.0.2", "18.2.0", "18.3.0-rc.0"))})
        result = asyncio.run(client.resolve_all(["react"]))
        assert result == {"react": PackageVersionData.of("18.2.0", ("18.2.0", "17.0.2"))}

    @pytest.mark.parametrize(
        "response",
        [
            (404, b"{}"),
            (500, b"oops"),
            (200, b"not json"),
            (200, _packument("1.0.0-alpha.1")),
            asyncio.TimeoutError(),
            aiohttp.ClientPayloadError("truncated"),
        ],
    )
    def test_failures_resolve_to_unknown(self, client, response):
        client._request = FakeRegistry({"pkg": response})
        result = asyncio.run(client.resolve_all(["pkg"]))
        assert result["pkg"].is_unknown
        assert result["pkg"].all_versions == ()

    def test_one_failure_does_not_affect_others(self, client):
        client._request = FakeRegistry({
            "good": (200, _packument("1.0.0")),
            "bad": asyncio.TimeoutError(),
        })
        result = asyncio.run(client.resolve_all(["good", "bad"]))
        assert result["good"].latest_version == "1.0.0"
        assert result["bad"].is_unknown

    def test_cached_results_skip_the_network(self, client):
        fake = FakeRegistry({"react": (200, _packument("18.2.0"))})
        client._request = fake
        asyncio.run(client.resolve_all(["react"]))
        asyncio.run(client.resolve_all(["react"]))
        assert len(fake.urls) == 1

    def test_unknown_is_cached(self, client):
        fake = FakeRegistry({"gone": (404, b"{}")})
        client._request = fake
        asyncio.run(client.resolve_all(["gone"]))
        asyncio.run(client.resolve_all(["gone"]))
        assert len(fake.urls) == 1

    def test_progress_once_per_name(self, client):
        client._request = FakeRegistry({
            "a": (200, _packument("1.0.0")),
            "b": (200, _packument("2.0.0")),
        })
        progress = []
        asyncio.run(client.resolve_all(["a", "b"], on_progress=lambda *args: progress.append(args)))
        assert sorted(name for name, _, _ in progress) == ["a", "b"]
        assert [completed for _, completed, _ in progress] == [1, 2]
        assert {total for _, _, total in progress} == {2}

    def test_resolve_all_flushes_disk_index(self, client, tmp_path):
        client._request = FakeRegistry({"react": (200, _packument("18.2.0"))})
        asyncio.run(client.resolve_all(["react"]))
        assert (tmp_path / "cache" / "index.json").exists()

    def test_close_is_idempotent(self, client):
        async def scenario():
            await client.close()
            await client.close()

        asyncio.run(scenario())
