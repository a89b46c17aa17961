"""Runtime settings derived from the process environment.

The environment is read once, here, and the resulting Settings value is
passed explicitly into adapters. Nothing below this module reads os.environ.
"""

from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

# Checked in priority order; each is sent as a password with username "token".
TOKEN_ENV_VARS = ("GIT_TOKEN", "GITHUB_TOKEN", "GITLAB_TOKEN", "GITEA_TOKEN")
TOKEN_USERNAME = "token"

TEMP_DIR_ENV_VAR = "SKILLSPKG_TEMP_DIR"
GOPROXY_ENV_VAR = "GOPROXY"

DEFAULT_HTTP_TIMEOUT = 60.0


@dataclass(frozen=True)
class GitCredentials:
    """HTTPS basic-auth credentials for git remotes."""

    username: str
    password: str = field(repr=False)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> GitCredentials | None:
        """Pick credentials from environment variables.

        Token variables win over GIT_USERNAME/GIT_PASSWORD, which are only
        usable as a pair.

        Args:
            environ: Environment mapping.

        Returns:
            Credentials, or None for anonymous access.
        """
        for var in TOKEN_ENV_VARS:
            token = environ.get(var, "")
            if token:
                return cls(username=TOKEN_USERNAME, password=token)

        username = environ.get("GIT_USERNAME", "")
        password = environ.get("GIT_PASSWORD", "")
        if username and password:
            return cls(username=username, password=password)
        return None


@dataclass(frozen=True)
class Settings:
    """Explicit configuration for package managers.

    Attributes:
        goproxy: Raw GOPROXY chain string (empty means the default chain).
        git_credentials: Credentials for HTTPS git remotes.
        temp_dir: Base directory for ephemeral downloads.
        http_timeout: Timeout in seconds for registry and proxy requests.
    """

    goproxy: str = ""
    git_credentials: GitCredentials | None = None
    temp_dir: Path | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from an environment mapping (defaults to os.environ)."""
        env = os.environ if environ is None else environ
        temp_dir = env.get(TEMP_DIR_ENV_VAR, "").strip()
        return cls(
            goproxy=env.get(GOPROXY_ENV_VAR, ""),
            git_credentials=GitCredentials.from_env(env),
            temp_dir=Path(temp_dir).expanduser() if temp_dir else None,
        )

    def make_temp_dir(self, prefix: str) -> Path:
        """Create a fresh private directory for one download.

        Args:
            prefix: Name prefix, e.g. "skills-pkg-npm".

        Returns:
            Path to the new, empty directory.
        """
        base = self.temp_dir
        if base is not None:
            base.mkdir(parents=True, exist_ok=True)
            path = base / f"{prefix}-{uuid.uuid4().hex[:16]}"
            path.mkdir(mode=0o700)
            return path
        return Path(tempfile.mkdtemp(prefix=f"{prefix}-"))
