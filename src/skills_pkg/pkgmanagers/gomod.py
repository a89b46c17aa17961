"""Go module package manager.

Resolves modules through a GOPROXY-style chain. The chain string is a list
of comma-separated groups, each a pipe-separated list of endpoints:

    https://goproxy.example,https://proxy.golang.org|direct

Two tokens are sentinels rather than URLs: "direct" fetches from the
module's VCS repository and "off" disables downloads entirely.

When no version is requested the nearest go.mod is consulted first; a
version found there is used verbatim and flagged as coming from an external
ledger, because go.sum and the checksum database already vouch for it.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TypeVar

import httpx
from git import Repo
from git.exc import GitCommandError

from skills_pkg import semver
from skills_pkg.archive import extract_zip
from skills_pkg.errors import NetworkFailureError, SkillsPkgError, VersionNotFoundError
from skills_pkg.pkgmanagers.base import HttpPackageManager
from skills_pkg.pkgmanagers.git import GIT_ENV, authenticated_url, clone_failure, ls_remote
from skills_pkg.settings import Settings
from skills_pkg.types import LATEST, ResolvedDownload, Source

logger = logging.getLogger(__name__)

DEFAULT_PROXY = "https://proxy.golang.org"
DIRECT = "direct"
OFF = "off"
GO_MOD_FILENAME = "go.mod"

T = TypeVar("T")


@dataclass(frozen=True)
class ProxyEntry:
    """One endpoint in a proxy chain.

    Attributes:
        url: Proxy base URL, or the "direct" / "off" sentinel.
        fallback: True for the first endpoint of each comma-separated group.
    """

    url: str
    fallback: bool = True


DEFAULT_CHAIN = (ProxyEntry(DEFAULT_PROXY, True), ProxyEntry(DIRECT, True))


def parse_goproxy(value: str) -> list[ProxyEntry]:
    """Parse a GOPROXY string into an ordered chain.

    Args:
        value: Raw chain, e.g. "https://a|https://b,direct".

    Returns:
        Chain entries. The default chain when value has no usable tokens.
    """
    entries: list[ProxyEntry] = []
    for group in value.split(","):
        position = 0
        for token in group.split("|"):
            token = token.strip()
            if not token:
                continue
            entries.append(ProxyEntry(url=token, fallback=position == 0))
            position += 1

    if not entries:
        return list(DEFAULT_CHAIN)
    return entries


def encode_module_path(path: str) -> str:
    """Case-encode a module path or version for proxy URLs.

    Each uppercase letter becomes "!" followed by its lowercase form, so
    that paths survive case-insensitive filesystems on the proxy side.
    """
    return "".join(f"!{ch.lower()}" if ch.isupper() else ch for ch in path)


def find_go_mod(start: Path) -> Path | None:
    """Return the nearest go.mod in start or one of its ancestors."""
    start = Path(start).resolve()
    for directory in (start, *start.parents):
        candidate = directory / GO_MOD_FILENAME
        if candidate.is_file():
            return candidate
    return None


def parse_go_mod_requires(text: str) -> dict[str, str]:
    """Collect module requirements from go.mod content.

    Handles both "require ( ... )" blocks and single-line "require"
    directives. Comments, including "// indirect", are ignored.

    Args:
        text: go.mod file content.

    Returns:
        Mapping of module path to version.
    """
    requires: dict[str, str] = {}
    in_block = False

    for raw in text.splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue

        if in_block:
            if line == ")":
                in_block = False
                continue
            _add_requirement(requires, line)
            continue

        if line.startswith("require"):
            rest = line[len("require"):].strip()
            if rest == "(":
                in_block = True
            elif rest:
                _add_requirement(requires, rest)

    return requires


def _add_requirement(requires: dict[str, str], line: str) -> None:
    fields = line.split()
    if len(fields) >= 2:
        requires[fields[0].strip('"')] = fields[1]


class GoModulePackageManager(HttpPackageManager):
    """Fetches Go modules through a proxy chain.

    Satisfies the PackageManager protocol structurally.
    """

    source_kind = "go-module"
    temp_prefix = "skills-pkg-gomod"

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
        workdir: Path | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            settings: Runtime settings. GOPROXY comes from settings.goproxy.
            client: HTTP client to use. A new one is created when omitted.
            workdir: Where the go.mod search starts. Defaults to the
                current directory at call time.
        """
        super().__init__(settings=settings, client=client)
        self.proxies = parse_goproxy(self.settings.goproxy)
        self.workdir = workdir

    @classmethod
    def create(
        cls,
        settings: Settings,
        client: httpx.Client | None = None,
        workdir: Path | None = None,
    ) -> GoModulePackageManager:
        """Create an adapter with explicit settings and collaborators."""
        return cls(settings=settings, client=client, workdir=workdir)

    def chain_for(self, source: Source) -> list[ProxyEntry]:
        """Return the proxy chain, honouring a per-source "proxy" option."""
        override = source.option("proxy")
        if override:
            return parse_goproxy(override)
        return self.proxies

    def version_from_go_mod(self, module: str) -> str | None:
        """Look up the version go.mod pins for a module.

        Args:
            module: Module path.

        Returns:
            The required version, or None when there is no go.mod or it does
            not require module.
        """
        go_mod = find_go_mod(self.workdir or Path.cwd())
        if go_mod is None:
            return None
        requires = parse_go_mod_requires(go_mod.read_text(encoding="utf-8"))
        version = requires.get(module)
        if version:
            logger.debug("Found %s %s in %s", module, version, go_mod)
        return version

    def latest_version(self, source: Source) -> str:
        """Query "@latest" through the chain.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If every chain entry fails or the chain is off.
        """
        self._check_source(source)
        return self._latest(self.chain_for(source), source.locator)

    def download(self, source: Source, version: str = "") -> ResolvedDownload:
        """Resolve and download a module version.

        An empty version consults go.mod first and falls back to "@latest".
        "latest" skips go.mod. Any other value is downloaded as given.

        Args:
            source: Go module source; locator is the module path.
            version: Requested version.

        Returns:
            ResolvedDownload. from_external_ledger is True only when the
            version came from go.mod.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If every chain entry fails or the chain is off.
            VersionNotFoundError: If the version does not exist.
            PathTraversalError: If the module zip contains escaping entries.
        """
        self._check_source(source)
        module = source.locator
        chain = self.chain_for(source)

        from_ledger = False
        if version == LATEST:
            resolved = self._latest(chain, module)
        elif version:
            resolved = version
        else:
            pinned = self.version_from_go_mod(module)
            if pinned:
                resolved, from_ledger = pinned, True
            else:
                resolved = self._latest(chain, module)

        path = self._walk(
            chain,
            lambda entry: self._download_from(entry, module, resolved),
            module,
        )
        logger.info("Downloaded go module %s@%s", module, resolved)
        return ResolvedDownload(
            local_path=path, resolved_version=resolved, from_external_ledger=from_ledger
        )

    def _walk(
        self, chain: list[ProxyEntry], attempt: Callable[[ProxyEntry], T], module: str
    ) -> T:
        """Try each chain entry in order until one succeeds.

        "off" stops the walk immediately. Any other failure moves on to the
        next entry; the last failure is raised when the chain is exhausted.
        """
        last_error: SkillsPkgError | None = None
        for entry in chain:
            if entry.url == OFF:
                raise NetworkFailureError(
                    "GOPROXY is set to 'off', downloads are disabled", reason="disabled"
                )
            try:
                return attempt(entry)
            except SkillsPkgError as e:
                logger.debug("Proxy %s failed for %s: %s", entry.url, module, e)
                last_error = e

        if last_error is not None:
            raise last_error
        raise NetworkFailureError(f"failed to fetch module {module} from any proxy")

    def _latest(self, chain: list[ProxyEntry], module: str) -> str:
        return self._walk(chain, lambda entry: self._latest_from(entry, module), module)

    def _latest_from(self, entry: ProxyEntry, module: str) -> str:
        if entry.url == DIRECT:
            return self._latest_direct(module)

        url = f"{entry.url.rstrip('/')}/{encode_module_path(module)}/@latest"
        logger.debug("GET %s", url)
        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            raise NetworkFailureError(
                f"failed to fetch latest version for {module}: {e}. "
                "Please check your internet connection and try again",
                reason="connection",
            ) from e

        if response.status_code == 404:
            raise NetworkFailureError(
                f"module {module} not found. Please verify the module path is correct",
                reason="not_found",
            )
        if response.status_code == 410:
            raise NetworkFailureError(
                f"module {module} has been removed from the proxy", reason="not_found"
            )
        if not response.is_success:
            raise NetworkFailureError(
                f"failed to fetch latest version for {module}: "
                f"HTTP status {response.status_code}"
            )

        try:
            info = response.json()
        except ValueError as e:
            raise NetworkFailureError(
                f"failed to parse latest version info for {module}: {e}"
            ) from e
        version = info.get("Version", "") if isinstance(info, dict) else ""
        if not version:
            raise NetworkFailureError(
                f"no version found in latest version info for module {module}"
            )
        return version

    def _latest_direct(self, module: str) -> str:
        repo_url = f"https://{module}"
        refs = ls_remote(
            repo_url, options=("--tags",), credentials=self.settings.git_credentials
        )
        tags = [name[len("refs/tags/"):] for name in refs if name.startswith("refs/tags/")]
        latest = semver.select_latest(tags)
        if not latest:
            raise NetworkFailureError(
                f"no version tags found for module {module}", reason="not_found"
            )
        return latest

    def _download_from(self, entry: ProxyEntry, module: str, version: str) -> Path:
        dest = self.settings.make_temp_dir(self.temp_prefix)
        try:
            if entry.url == DIRECT:
                self._download_direct(module, version, dest)
            else:
                self._download_zip(entry.url, module, version, dest)
        except BaseException:
            shutil.rmtree(dest, ignore_errors=True)
            raise
        return dest

    def _download_zip(self, proxy: str, module: str, version: str, dest: Path) -> None:
        url = (
            f"{proxy.rstrip('/')}/{encode_module_path(module)}"
            f"/@v/{encode_module_path(version)}.zip"
        )
        with tempfile.TemporaryDirectory(
            prefix="skills-pkg-gomod-zip-", dir=self.settings.temp_dir
        ) as scratch:
            archive = Path(scratch) / "module.zip"
            with archive.open("wb") as out:
                try:
                    self._download_to_file(url, out)
                except NetworkFailureError as e:
                    if e.reason == "not_found":
                        raise VersionNotFoundError(version, f"module {module}") from e
                    raise
            extract_zip(archive, dest, f"{module}@{version}/")

    def _download_direct(self, module: str, version: str, dest: Path) -> None:
        repo_url = f"https://{module}"
        logger.debug("Cloning %s at %s", repo_url, version)
        credentials = self.settings.git_credentials
        try:
            repo = Repo.clone_from(
                authenticated_url(repo_url, credentials),
                dest,
                branch=version,
                depth=1,
                env=GIT_ENV,
            )
        except GitCommandError as e:
            raise clone_failure(repo_url, e, credentials) from e
        repo.close()
        shutil.rmtree(dest / ".git", ignore_errors=True)
