"""
Tests for version comparison (check_kit/versions.py).
"""

import pytest

from check_kit.versions import compare_versions, is_newer


class TestCompareVersions:
    """Tests for compare_versions."""

    @pytest.mark.parametrize("v1, v2, expected", [
        ("1.2.3", "1.5.0", -1),
        ("1.5.0", "1.2.3", 1),
        ("1.2.3", "1.2.3", 0),
        ("1.10.0", "1.9.9", 1),
        ("2.0.0-beta.1", "2.0.0", -1),
        ("2.0.0-rc.1", "2.0.0-beta.3", 1),
    ])
    def test_semver_ordering(self, v1, v2, expected):
        """Test numeric and pre-release ordering."""
        assert compare_versions(v1, v2) == expected

    def test_unparseable_prerelease(self):
        """Test npm pre-release tags packaging rejects still compare."""
        assert compare_versions("2.0.0-canary.3", "2.0.0-canary.2") == 1
        assert compare_versions("2.0.0-canary.3", "2.0.0") == -1
        assert compare_versions("3.0.0-canary.1", "2.9.9") == 1

    def test_numeric_prerelease_identifiers(self):
        """Test numeric pre-release fields compare as numbers."""
        assert compare_versions("2.0.0-canary.10", "2.0.0-canary.9") == 1
        assert compare_versions("2.0.0-canary.9", "2.0.0-canary.10") == -1
        assert compare_versions("1.0.0-1", "1.0.0") == -1

    @pytest.mark.parametrize("lower, higher", [
        ("1.0.0-alpha", "1.0.0-alpha.1"),
        ("1.0.0-alpha.1", "1.0.0-alpha.beta"),
        ("1.0.0-alpha.beta", "1.0.0-beta"),
        ("1.0.0-beta", "1.0.0-beta.2"),
        ("1.0.0-beta.2", "1.0.0-beta.11"),
        ("1.0.0-beta.11", "1.0.0-rc.1"),
        ("1.0.0-rc.1", "1.0.0"),
    ])
    def test_semver_precedence_chain(self, lower, higher):
        """Test the precedence example from semver 2.0 section 11."""
        assert compare_versions(lower, higher) == -1
        assert compare_versions(higher, lower) == 1

    def test_build_metadata_ignored(self):
        """Test build metadata does not affect precedence."""
        assert compare_versions("1.0.0+build.5", "1.0.0") == 0
        assert compare_versions("1.0.0-rc.1+sha.abc", "1.0.0-rc.1") == 0

    def test_leading_v(self):
        """Test a leading v is accepted."""
        assert compare_versions("v1.2.4", "1.2.3") == 1

    def test_non_semver_falls_back_to_pep440(self):
        """Test versions outside semver still order sensibly."""
        assert compare_versions("1.10", "1.9") == 1
        assert compare_versions("1.2", "1.2.0") == 0


class TestIsNewer:
    """Tests for is_newer."""

    def test_newer(self):
        """Test a greater latest version."""
        assert is_newer("1.5.0", "1.2.3") is True

    def test_same_or_older(self):
        """Test equal and older versions are not updates."""
        assert is_newer("1.2.3", "1.2.3") is False
        assert is_newer("1.0.0", "1.2.3") is False

    def test_unknown_latest(self):
        """Test an unknown latest version is never an update."""
        assert is_newer(None, "1.2.3") is False

    def test_numbered_prerelease_update(self):
        """Test a later canary build counts as an update."""
        assert is_newer("2.0.0-canary.10", "2.0.0-canary.9") is True

    def test_prerelease_and_build_not_newer_than_release(self):
        """Test a pre-release or build-tagged release is not an update."""
        assert is_newer("1.0.0-1", "1.0.0") is False
        assert is_newer("1.0.0+build.5", "1.0.0") is False
