"""Tests for semantic version parsing and tag selection."""

from __future__ import annotations

import pytest

from skills_pkg import semver


class TestParse:
    """Tests for semver.parse."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1.2.3", (1, 2, 3, ())),
            ("v1.2.3", (1, 2, 3, ())),
            ("v1", (1, 0, 0, ())),
            ("v1.2", (1, 2, 0, ())),
            ("v2.0.0-rc.1", (2, 0, 0, ("rc", "1"))),
            ("1.0.0-alpha+build.5", (1, 0, 0, ("alpha",))),
        ],
    )
    def test_valid(self, value: str, expected: tuple) -> None:
        version = semver.parse(value)
        assert version is not None
        assert (version.major, version.minor, version.patch, version.prerelease) == expected

    @pytest.mark.parametrize(
        "value", ["", "latest", "main", "1.2.3.4", "01.2.3", "1.0.0-01", "v1.2.x"]
    )
    def test_invalid(self, value: str) -> None:
        assert semver.parse(value) is None
        assert semver.is_valid(value) is False

    def test_build_metadata_ignored_for_ordering(self) -> None:
        """Test build metadata does not affect precedence."""
        assert semver.parse("1.0.0+a") == semver.parse("1.0.0+b")


class TestOrdering:
    """Tests for version precedence."""

    def test_numeric_components(self) -> None:
        assert semver.parse("1.10.0") > semver.parse("1.9.0")

    def test_release_after_prerelease(self) -> None:
        assert semver.parse("1.0.0") > semver.parse("1.0.0-rc.1")

    def test_prerelease_identifiers(self) -> None:
        """Test the precedence chain from the semver documentation."""
        chain = [
            "1.0.0-alpha",
            "1.0.0-alpha.1",
            "1.0.0-alpha.beta",
            "1.0.0-beta",
            "1.0.0-beta.2",
            "1.0.0-beta.11",
            "1.0.0-rc.1",
            "1.0.0",
        ]
        parsed = [semver.parse(v) for v in chain]
        assert parsed == sorted(parsed)


class TestSelectLatest:
    """Tests for semver.select_latest."""

    def test_highest_release(self) -> None:
        tags = ["v1.0.0", "v1.10.0", "v1.2.0", "nightly"]
        assert semver.select_latest(tags) == "v1.10.0"

    def test_release_preferred_over_newer_prerelease(self) -> None:
        tags = ["v1.2.0", "v2.0.0-rc.1"]
        assert semver.select_latest(tags) == "v1.2.0"

    def test_prerelease_when_no_release(self) -> None:
        tags = ["v2.0.0-beta", "v2.0.0-rc.1", "junk"]
        assert semver.select_latest(tags) == "v2.0.0-rc.1"

    def test_no_valid_tags(self) -> None:
        assert semver.select_latest(["main", "stable"]) is None
        assert semver.select_latest([]) is None
