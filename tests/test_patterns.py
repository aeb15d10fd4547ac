"""Tests for ignore pattern matching."""

import pytest

from inup.common.patterns import is_package_ignored, matches_pattern


class TestMatchesPattern:
    """Tests for glob matching of package names."""

    @pytest.mark.parametrize(
        "name,pattern",
        [
            ("react", "react"),
            ("@babel/core", "@babel/*"),
            ("eslint-plugin-react", "eslint-*"),
            ("vue2", "vue?"),
            ("anything", "*"),
        ],
    )
    def test_matches(self, name, pattern):
        assert matches_pattern(name, pattern)

    @pytest.mark.parametrize(
        "name,pattern",
        [
            ("react-dom", "react"),
            ("@types/node", "@babel/*"),
            ("vue", "vue?"),
            ("lodashXmerge", "lodash.merge"),
        ],
    )
    def test_does_not_match(self, name, pattern):
        assert not matches_pattern(name, pattern)


class TestIsPackageIgnored:
    """Tests for ignore lists."""

    def test_any_pattern_matches(self):
        assert is_package_ignored("@types/node", ["react", "@types/*"])

    def test_empty_list(self):
        assert not is_package_ignored("react", [])
