"""Tests for shared data types and the adapter registry."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from skills_pkg.errors import HashMismatchError, InvalidSourceError, SkillOperationError
from skills_pkg.pkgmanagers import (
    GoModulePackageManager,
    NpmPackageManager,
    PackageManagerRegistry,
    create_package_managers,
)
from skills_pkg.protocols import PackageManager
from skills_pkg.settings import Settings
from skills_pkg.types import (
    SOURCE_KINDS,
    InstallOutcome,
    ResolvedDownload,
    Source,
    UpdateResult,
    VerifyResult,
    VerifySummary,
    is_latest,
)


class TestSource:
    """Tests for Source."""

    def test_is_latest(self) -> None:
        assert is_latest("")
        assert is_latest(None)
        assert is_latest("latest")
        assert not is_latest("v1.0.0")

    def test_option(self) -> None:
        source = Source(kind="npm", locator="x", options={"registry": "", "tag": "beta"})
        assert source.option("registry") is None
        assert source.option("tag") == "beta"
        assert source.option("missing") is None

    def test_validate(self) -> None:
        Source(kind="git", locator="https://x").validate(SOURCE_KINDS)

        with pytest.raises(InvalidSourceError, match="source type is required"):
            Source(kind="", locator="x").validate()
        with pytest.raises(InvalidSourceError, match="source URL is required"):
            Source(kind="git", locator="").validate()
        with pytest.raises(InvalidSourceError) as exc_info:
            Source(kind="svn", locator="x").validate(SOURCE_KINDS)
        assert exc_info.value.source_type == "svn"


class TestResolvedDownload:
    """Tests for ResolvedDownload."""

    def test_context_manager_cleans_up(self, tmp_path: Path) -> None:
        path = tmp_path / "dl"
        path.mkdir()
        (path / "f.txt").write_text("x")

        with ResolvedDownload(local_path=path, resolved_version="1.0") as download:
            assert download.local_path.exists()

        assert not path.exists()

    def test_cleanup_on_error(self, tmp_path: Path) -> None:
        path = tmp_path / "dl"
        path.mkdir()

        with pytest.raises(RuntimeError):
            with ResolvedDownload(local_path=path, resolved_version="1.0"):
                raise RuntimeError("boom")

        assert not path.exists()

    def test_cleanup_missing_is_noop(self, tmp_path: Path) -> None:
        ResolvedDownload(local_path=tmp_path / "gone", resolved_version="1").cleanup()


class TestResults:
    """Tests for outcome and result types."""

    def test_install_outcome_requires_name(self) -> None:
        with pytest.raises(ValueError):
            InstallOutcome(skill_name="", version="1", digest=None)

    def test_install_outcome_verified(self) -> None:
        assert InstallOutcome(skill_name="s", version="1", digest="h1:x").verified
        mismatch = HashMismatchError("/t/s", "h1:x", "h1:y")
        assert not InstallOutcome(
            skill_name="s", version="1", digest="h1:x", hash_mismatches=[mismatch]
        ).verified

    def test_update_result_has_update(self) -> None:
        assert UpdateResult("s", "v1", "v2").has_update
        assert not UpdateResult("s", "v1", "v1").has_update

    def test_verify_summary_counts(self) -> None:
        summary = VerifySummary(
            results=[
                VerifyResult("a", Path("/t/a"), "h1:x", "h1:x", True),
                VerifyResult("b", Path("/t/b"), "h1:x", "h1:y", False),
                VerifyResult("c", Path("/t/c"), "", "", True, skipped=True),
            ]
        )
        assert summary.total == 3
        assert summary.success_count == 1
        assert summary.failure_count == 1
        assert summary.skipped_count == 1

    def test_skill_operation_error(self) -> None:
        cause = ValueError("bad")
        error = SkillOperationError("alpha", cause)
        assert error.cause is cause
        assert "alpha" in str(error)
        assert "bad" in str(error)


class TestPackageManagerRegistry:
    """Tests for dispatch by source kind."""

    def test_get(self) -> None:
        npm = MagicMock(source_type="npm")
        registry = PackageManagerRegistry([npm])

        assert registry.get("npm") is npm
        assert "npm" in registry
        assert registry.kinds == ["npm"]

    def test_get_empty_kind(self) -> None:
        with pytest.raises(InvalidSourceError, match="required"):
            PackageManagerRegistry().get("")

    def test_get_unknown_kind(self) -> None:
        registry = PackageManagerRegistry([MagicMock(source_type="git")])

        with pytest.raises(InvalidSourceError, match="unsupported source type 'svn'"):
            registry.get("svn")

    def test_register_replaces(self) -> None:
        first = MagicMock(source_type="git")
        second = MagicMock(source_type="git")
        registry = PackageManagerRegistry([first])

        registry.register(second)

        assert registry.get("git") is second

    def test_create_package_managers(self, settings: Settings, tmp_path: Path) -> None:
        registry = create_package_managers(settings, workdir=tmp_path)
        try:
            assert registry.kinds == sorted(SOURCE_KINDS)
            for manager in registry:
                assert isinstance(manager, PackageManager)
            assert isinstance(registry.get("npm"), NpmPackageManager)
            gomod = registry.get("go-module")
            assert isinstance(gomod, GoModulePackageManager)
            assert gomod.workdir == tmp_path
        finally:
            registry.close()

    def test_close_skips_managers_without_close(self) -> None:
        closable = MagicMock(source_type="npm")
        plain = MagicMock(spec=["source_type"], source_type="git")
        registry = PackageManagerRegistry([closable, plain])

        registry.close()

        closable.close.assert_called_once()
