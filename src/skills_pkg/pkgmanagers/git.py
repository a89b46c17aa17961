"""Git package manager."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from git import Git, Repo
from git.exc import BadName, BadObject, GitCommandError

from skills_pkg import semver
from skills_pkg.errors import InvalidSourceError, NetworkFailureError, VersionNotFoundError
from skills_pkg.settings import GitCredentials, Settings
from skills_pkg.types import ResolvedDownload, Source, is_latest

logger = logging.getLogger(__name__)

# Never block on an interactive credential prompt.
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}

_COMMIT_RE = re.compile(r"^[0-9a-fA-F]{7,40}$")

_AUTH_HINT = (
    "Set GIT_TOKEN, GITHUB_TOKEN, or GIT_USERNAME/GIT_PASSWORD environment variables "
    "for HTTPS, or ensure SSH credentials are configured"
)


def is_ssh_url(url: str) -> bool:
    """Return True for scp-style (git@host:path) and ssh:// remotes."""
    return url.startswith("git@") or url.startswith("ssh://")


def authenticated_url(url: str, credentials: GitCredentials | None) -> str:
    """Embed HTTPS basic-auth credentials in a remote URL.

    SSH remotes, local paths and URLs that already carry a user are returned
    unchanged.

    Args:
        url: Remote URL.
        credentials: Credentials to embed, or None.

    Returns:
        URL to hand to git.
    """
    if credentials is None or is_ssh_url(url):
        return url
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or "@" in parts.netloc:
        return url
    userinfo = f"{quote(credentials.username, safe='')}:{quote(credentials.password, safe='')}"
    return urlunsplit(parts._replace(netloc=f"{userinfo}@{parts.netloc}"))


def redact(text: str, credentials: GitCredentials | None) -> str:
    """Remove credential material from a message."""
    if credentials is None:
        return text
    for secret in {credentials.password, quote(credentials.password, safe="")}:
        if secret:
            text = text.replace(secret, "***")
    return text


def classify_git_error(message: str) -> str:
    """Map git error output to a NetworkFailureError reason."""
    lowered = message.lower()
    if (
        "authentication required" in lowered
        or "authentication failed" in lowered
        or "could not read username" in lowered
        or "permission denied" in lowered
    ):
        return "auth_required"
    if "repository not found" in lowered or "does not appear to be a git repository" in lowered:
        return "not_found"
    if (
        "network" in lowered
        or "connection" in lowered
        or "could not resolve host" in lowered
        or "timed out" in lowered
    ):
        return "connection"
    return "generic"


def clone_failure(
    url: str, error: GitCommandError, credentials: GitCredentials | None
) -> NetworkFailureError:
    """Build a NetworkFailureError with remediation text for a failed git call."""
    detail = redact(str(error.stderr or error), credentials).strip()
    reason = classify_git_error(detail)
    if reason == "auth_required":
        message = f"failed to clone repository {url}: authentication required. {_AUTH_HINT}"
    elif reason == "not_found":
        message = (
            f"failed to clone repository {url}: repository not found. "
            "Please verify the URL is correct"
        )
    elif reason == "connection":
        message = (
            f"failed to clone repository {url}: network error. "
            "Please check your internet connection and try again"
        )
    else:
        message = f"failed to clone repository {url}: {detail}"
    return NetworkFailureError(message, reason=reason)


def ls_remote(
    url: str,
    *patterns: str,
    options: tuple[str, ...] = (),
    credentials: GitCredentials | None = None,
) -> dict[str, str]:
    """List remote references without cloning.

    Args:
        url: Remote URL.
        *patterns: Reference patterns placed after the URL, e.g. "HEAD".
        options: Flags placed before the URL, e.g. ("--tags",).
        credentials: Optional HTTPS credentials.

    Returns:
        Mapping of reference name to commit id. Peeled tag entries (^{})
        replace their annotated tag objects.

    Raises:
        NetworkFailureError: If the remote cannot be queried.
    """
    try:
        output = Git().ls_remote(
            *options, authenticated_url(url, credentials), *patterns, env=GIT_ENV
        )
    except GitCommandError as e:
        raise clone_failure(url, e, credentials) from e

    refs: dict[str, str] = {}
    for line in output.splitlines():
        sha, _, name = line.partition("\t")
        if not name:
            continue
        if name.endswith("^{}"):
            refs[name[:-3]] = sha
        else:
            refs.setdefault(name, sha)
    return refs


class GitPackageManager:
    """Fetches skills from git repositories.

    Satisfies the PackageManager protocol structurally. Repositories are
    fully cloned into a private temp directory; the .git directory is
    removed before the download is handed back so only tracked content
    remains.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the adapter.

        Args:
            settings: Runtime settings. Defaults to Settings().

        Note:
            Prefer using factory methods `create()` or `create_default()` for construction.
        """
        self.settings = settings or Settings()

    @classmethod
    def create(cls, settings: Settings) -> GitPackageManager:
        """Create a git adapter with explicit settings."""
        return cls(settings=settings)

    @classmethod
    def create_default(cls) -> GitPackageManager:
        """Create a git adapter configured from the process environment."""
        return cls(settings=Settings.from_env())

    @property
    def source_type(self) -> str:
        return "git"

    @property
    def credentials(self) -> GitCredentials | None:
        return self.settings.git_credentials

    def _check_source(self, source: Source) -> None:
        source.validate()
        if source.kind != self.source_type:
            raise InvalidSourceError(
                f"source type must be 'git', got '{source.kind}'", source.kind
            )

    def download(self, source: Source, version: str = "") -> ResolvedDownload:
        """Clone a repository and check out the requested version.

        Resolution order for a non-empty version: tag, commit id, branch.
        A branch resolves to its current commit id.

        Args:
            source: Git source.
            version: Tag, commit id, branch, or "" / "latest" for HEAD.

        Returns:
            ResolvedDownload with the checked-out tree.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If cloning fails.
            VersionNotFoundError: If no tag, commit or branch matches.
        """
        self._check_source(source)
        path = self.settings.make_temp_dir("skills-pkg-git")
        try:
            repo = self._clone(source.locator, path)
            try:
                resolved = self._checkout(repo, source.locator, version)
            finally:
                repo.close()
            shutil.rmtree(path / ".git", ignore_errors=True)
        except BaseException:
            shutil.rmtree(path, ignore_errors=True)
            raise

        logger.info("Checked out %s at %s", source.locator, resolved)
        return ResolvedDownload(local_path=path, resolved_version=resolved)

    def latest_version(self, source: Source) -> str:
        """Return the newest semver tag, or the HEAD commit id if there is none.

        Release tags win over prerelease tags.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If the remote cannot be queried.
            VersionNotFoundError: If the repository has no commits.
        """
        self._check_source(source)
        refs = ls_remote(source.locator, options=("--tags",), credentials=self.credentials)
        tags = [name[len("refs/tags/"):] for name in refs if name.startswith("refs/tags/")]
        latest = semver.select_latest(tags)
        if latest:
            logger.debug("Latest tag for %s is %s", source.locator, latest)
            return latest

        head = ls_remote(source.locator, "HEAD", credentials=self.credentials).get("HEAD")
        if not head:
            raise VersionNotFoundError(
                "latest", source.locator, f"repository {source.locator} has no commits"
            )
        logger.debug("No semver tags for %s, using HEAD %s", source.locator, head)
        return head

    def _clone(self, url: str, path: Path) -> Repo:
        logger.debug("Cloning %s into %s", url, path)
        try:
            return Repo.clone_from(
                authenticated_url(url, self.credentials), path, env=GIT_ENV
            )
        except GitCommandError as e:
            raise clone_failure(url, e, self.credentials) from e

    def _checkout(self, repo: Repo, url: str, version: str) -> str:
        if is_latest(version):
            try:
                return repo.head.commit.hexsha
            except ValueError as e:
                raise VersionNotFoundError(
                    "latest", url, f"repository {url} has no commits"
                ) from e

        if version in [tag.name for tag in repo.tags]:
            _git_checkout(repo, url, version, f"refs/tags/{version}")
            return version

        if _COMMIT_RE.match(version):
            try:
                commit = repo.commit(version)
            except (BadName, BadObject, ValueError):
                commit = None
            if commit is not None:
                _git_checkout(repo, url, version, commit.hexsha)
                return commit.hexsha

        remote_branch = f"origin/{version}"
        if remote_branch in [ref.name for ref in repo.remotes.origin.refs]:
            _git_checkout(repo, url, version, "-B", version, remote_branch)
            return repo.head.commit.hexsha

        raise VersionNotFoundError(
            version,
            url,
            f"version {version} not found: tag, commit, or branch does not exist. "
            "Please verify the version is correct",
        )


def _git_checkout(repo: Repo, url: str, version: str, *args: str) -> None:
    try:
        repo.git.checkout(*args)
    except GitCommandError as e:
        raise VersionNotFoundError(
            version,
            url,
            f"failed to check out version {version} of {url}: {str(e.stderr or e).strip()}",
        ) from e
