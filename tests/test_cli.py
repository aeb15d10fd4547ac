"""Tests for the command-line interface."""

import json

import pytest

from inup import cli
from inup.versioning.models import PackageVersionData


class FakeService:
    """Stands in for RegistryService inside the CLI."""

    instances = []

    def __init__(self, config):
        self.config = config
        self.requested = None
        self.cleared = False
        FakeService.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    def clear_disk_cache(self):
        self.cleared = True

    async def get_all_package_data(self, names, current_versions=None, on_progress=None, on_batch_ready=None):
        self.requested = (list(names), dict(current_versions or {}))
        return {name: PackageVersionData.of("2.0.0", ("2.0.0", "1.9.0")) for name in names}


@pytest.fixture
def fake_service(monkeypatch, isolated_config, restore_constants):
    FakeService.instances = []
    monkeypatch.setattr(cli, "RegistryService", FakeService)
    return FakeService


class TestSplitSpec:
    """Tests for NAME[@CURRENT] parsing."""

    @pytest.mark.parametrize(
        "spec,expected",
        [
            ("react", ("react", None)),
            ("react@18.2.0", ("react", "18.2.0")),
            ("@babel/core", ("@babel/core", None)),
            ("@babel/core@^7.0.0", ("@babel/core", "^7.0.0")),
            ("react@", ("react", None)),
        ],
    )
    def test_split(self, spec, expected):
        assert cli.split_spec(spec) == expected


class TestParseArgs:
    """Tests for argument parsing."""

    def test_resolve_arguments(self):
        args = cli.parse_args(["resolve", "react", "-r", "npm", "-t", "5", "-i", "@types/*", "--json"])
        assert args.command == "resolve"
        assert args.packages == ["react"]
        assert args.REGISTRY == "npm"
        assert args.TIMEOUT == 5.0
        assert args.IGNORE == ["@types/*"]
        assert args.JSON

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])

    def test_unknown_registry_is_rejected(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["resolve", "react", "-r", "yarn"])

    def test_no_cache_help_says_it_clears(self, capsys, monkeypatch):
        monkeypatch.setenv("COLUMNS", "200")
        with pytest.raises(SystemExit):
            cli.parse_args(["resolve", "--help"])
        assert "Clear the disk cache before resolving" in capsys.readouterr().out


class TestRenderTable:
    """Tests for table output."""

    def test_columns_are_aligned(self):
        table = cli._render_table([
            {"package": "react", "current": "17.0.0", "latest": "18.2.0", "outdated": True},
            {"package": "@babel/core", "current": None, "latest": "7.24.0", "outdated": False},
        ])
        lines = table.splitlines()
        assert lines[0].split() == ["package", "current", "latest", "outdated"]
        assert lines[2].split() == ["@babel/core", "-", "7.24.0", "False"]
        assert lines[1].index("18.2.0") == lines[0].index("latest")


class TestMain:
    """Tests for cli.main end to end with a fake service."""

    def test_resolve_json(self, fake_service, capsys, tmp_path):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--cache-dir", str(tmp_path / "c"), "resolve", "react@1.0.0", "lodash", "--json"])

        assert exc.value.code == 0
        rows = json.loads(capsys.readouterr().out)
        assert [row["package"] for row in rows] == ["react", "lodash"]
        assert rows[0]["outdated"] is True
        assert rows[1]["outdated"] is False
        assert rows[0]["versions"] == ["2.0.0", "1.9.0"]
        service = fake_service.instances[0]
        assert service.requested == (["react", "lodash"], {"react": "1.0.0"})
        assert service.config.cache_dir == tmp_path / "c"

    def test_ignored_packages_are_skipped(self, fake_service, capsys, tmp_path):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--cache-dir", str(tmp_path), "resolve", "react", "@types/node", "-i", "@types/*", "--json"])

        assert exc.value.code == 0
        assert fake_service.instances[0].requested[0] == ["react"]

    def test_no_cache_clears_disk(self, fake_service, tmp_path):
        with pytest.raises(SystemExit):
            cli.main(["--cache-dir", str(tmp_path), "resolve", "react", "--no-cache", "--json"])
        assert fake_service.instances[0].cleared

    def test_cache_stats(self, isolated_config, restore_constants, capsys, tmp_path):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--cache-dir", str(tmp_path / "cache"), "cache", "stats"])

        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "entries: 0" in out
        assert str(tmp_path / "cache") in out

    def test_invalid_config_is_a_usage_error(self, isolated_config, restore_constants, monkeypatch):
        monkeypatch.setenv("INUP_CDN_RETRY_TIMEOUTS", "0")
        with pytest.raises(SystemExit) as exc:
            cli.main(["cache", "stats"])
        assert exc.value.code == 3
