"""Shared test fixtures."""

from __future__ import annotations

import io
import logging
import tarfile
import zipfile
from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

import httpx
import pytest
from git import Actor, Repo

from skills_pkg.manifest import ManifestManager, Skill
from skills_pkg.settings import Settings

ACTOR = Actor("Test User", "test@example.com")

FileMap = dict[str, "str | bytes"]


@pytest.fixture(autouse=True)
def reset_logging() -> None:
    """Undo the CLI logging setup so caplog sees skills_pkg records."""
    logger = logging.getLogger("skills_pkg")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def temp_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Override home directory for testing."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def download_dir(tmp_path: Path) -> Path:
    """Base directory for adapter downloads."""
    return tmp_path / "downloads"


@pytest.fixture
def settings(download_dir: Path) -> Settings:
    """Settings that keep every download under tmp_path."""
    return Settings(temp_dir=download_dir)


# ============================================================================
# Manifest Fixtures
# ============================================================================


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    """Location of the manifest file."""
    return tmp_path / "project" / ".skillspkg.json"


@pytest.fixture
def manifest_manager(manifest_path: Path) -> ManifestManager:
    """Manifest manager bound to a temporary file (not yet created)."""
    return ManifestManager.create(manifest_path)


@pytest.fixture
def install_targets(tmp_path: Path) -> list[Path]:
    """Two install target directories."""
    return [tmp_path / "targets" / "claude", tmp_path / "targets" / "codex"]


@pytest.fixture
def initialized_manifest(
    manifest_manager: ManifestManager, install_targets: list[Path]
) -> ManifestManager:
    """Manifest with two install targets and no skills."""
    manifest_manager.initialize([str(t) for t in install_targets])
    return manifest_manager


@pytest.fixture
def sample_skill() -> Skill:
    """A git-sourced skill entry."""
    return Skill(name="github", source="git", url="https://example.com/skills.git")


# ============================================================================
# Archive Fixtures
# ============================================================================


def _as_bytes(content: str | bytes) -> bytes:
    return content.encode() if isinstance(content, str) else content


@pytest.fixture
def make_tar_gz() -> Callable[..., bytes]:
    """Build a gzip tarball in memory.

    Entries are written in insertion order under the given wrapper prefix.
    """

    def build(files: FileMap, prefix: str = "package/") -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            for name, content in files.items():
                data = _as_bytes(content)
                info = tarfile.TarInfo(prefix + name)
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        return buffer.getvalue()

    return build


@pytest.fixture
def make_zip() -> Callable[..., bytes]:
    """Build a zip file in memory with every entry under prefix."""

    def build(files: FileMap, prefix: str) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            for name, content in files.items():
                zf.writestr(prefix + name, _as_bytes(content))
        return buffer.getvalue()

    return build


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    """Create an httpx client backed by a request handler."""
    clients: list[httpx.Client] = []

    def build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield build
    for client in clients:
        client.close()


# ============================================================================
# Git Fixtures
# ============================================================================


def commit_files(repo: Repo, files: FileMap, message: str) -> str:
    """Write files into the working tree and commit them.

    Returns:
        The new commit id.
    """
    root = Path(repo.working_tree_dir)
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_as_bytes(content))
    repo.index.add(list(files))
    return repo.index.commit(message, author=ACTOR, committer=ACTOR).hexsha


@pytest.fixture
def git_commit() -> Callable[[Repo, FileMap, str], str]:
    """Commit helper for tests that build repository history."""
    return commit_files


@pytest.fixture
def git_repo(tmp_path: Path) -> Repo:
    """A local repository with one commit on its default branch."""
    repo = Repo.init(tmp_path / "remote")
    commit_files(repo, {"SKILL.md": "# Skill v1\n"}, "initial")
    yield repo
    repo.close()


@pytest.fixture
def mock_filesystem() -> MagicMock:
    """Create a mock FileSystem for testing.

    The mock tracks all filesystem operations without touching real files.
    """
    fs = MagicMock()
    fs.exists.return_value = False
    fs.is_dir.return_value = False
    fs.remove.return_value = False
    return fs
