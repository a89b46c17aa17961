"""Tests for runtime settings."""

from __future__ import annotations

from pathlib import Path

from skills_pkg.settings import (
    DEFAULT_HTTP_TIMEOUT,
    TOKEN_USERNAME,
    GitCredentials,
    Settings,
)


class TestGitCredentials:
    """Tests for GitCredentials.from_env."""

    def test_anonymous(self) -> None:
        assert GitCredentials.from_env({}) is None

    def test_token_priority(self) -> None:
        """Test GIT_TOKEN wins over provider-specific tokens."""
        creds = GitCredentials.from_env({"GITHUB_TOKEN": "gh", "GIT_TOKEN": "generic"})
        assert creds == GitCredentials(username=TOKEN_USERNAME, password="generic")

    def test_provider_token(self) -> None:
        creds = GitCredentials.from_env({"GITLAB_TOKEN": "gl"})
        assert creds is not None
        assert creds.username == "token"
        assert creds.password == "gl"

    def test_token_beats_username_password(self) -> None:
        creds = GitCredentials.from_env(
            {"GIT_USERNAME": "alice", "GIT_PASSWORD": "pw", "GITEA_TOKEN": "t"}
        )
        assert creds is not None
        assert creds.password == "t"

    def test_username_password_pair(self) -> None:
        creds = GitCredentials.from_env({"GIT_USERNAME": "alice", "GIT_PASSWORD": "pw"})
        assert creds == GitCredentials(username="alice", password="pw")

    def test_username_without_password(self) -> None:
        assert GitCredentials.from_env({"GIT_USERNAME": "alice"}) is None

    def test_password_hidden_from_repr(self) -> None:
        creds = GitCredentials(username="alice", password="secret")
        assert "secret" not in repr(creds)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        settings = Settings.from_env({})
        assert settings.goproxy == ""
        assert settings.git_credentials is None
        assert settings.temp_dir is None
        assert settings.http_timeout == DEFAULT_HTTP_TIMEOUT

    def test_from_env(self, tmp_path: Path) -> None:
        settings = Settings.from_env(
            {
                "GOPROXY": "https://goproxy.example,direct",
                "SKILLSPKG_TEMP_DIR": str(tmp_path / "scratch"),
                "GIT_TOKEN": "t",
            }
        )
        assert settings.goproxy == "https://goproxy.example,direct"
        assert settings.temp_dir == tmp_path / "scratch"
        assert settings.git_credentials is not None

    def test_make_temp_dir_under_base(self, tmp_path: Path) -> None:
        """Test directories are created under the configured base."""
        settings = Settings(temp_dir=tmp_path / "base")

        first = settings.make_temp_dir("skills-pkg-npm")
        second = settings.make_temp_dir("skills-pkg-npm")

        assert first.parent == tmp_path / "base"
        assert first.name.startswith("skills-pkg-npm-")
        assert first != second
        assert first.is_dir()
        assert list(first.iterdir()) == []

    def test_make_temp_dir_system_default(self) -> None:
        settings = Settings()
        path = settings.make_temp_dir("skills-pkg-test")
        try:
            assert path.is_dir()
            assert path.name.startswith("skills-pkg-test-")
        finally:
            path.rmdir()
