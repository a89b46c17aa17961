"""Shared HTTP plumbing for registry-backed package managers.

npm, PyPI and crates.io all follow the same shape: fetch a JSON metadata
document, pick a version, find a tarball URL, then stream the tarball into a
private temporary directory and unpack it. Subclasses only describe the
registry-specific parts.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any

import httpx

from skills_pkg.archive import extract_tar_gz
from skills_pkg.errors import InvalidSourceError, NetworkFailureError, VersionNotFoundError
from skills_pkg.settings import Settings
from skills_pkg.types import ResolvedDownload, Source, is_latest

logger = logging.getLogger(__name__)

_DOWNLOAD_CHUNK_SIZE = 64 * 1024


class HttpPackageManager:
    """Base for adapters that talk to an HTTP API.

    Owns an httpx.Client unless one is injected. httpx clients are safe to
    share between the orchestrator's worker threads.
    """

    source_kind = ""
    temp_prefix = "skills-pkg"

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            settings: Runtime settings. Defaults to Settings().
            client: HTTP client to use. A new one is created when omitted.

        Note:
            Prefer using factory methods `create()` or `create_default()` for construction.
        """
        self.settings = settings or Settings()
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=self.settings.http_timeout, follow_redirects=True
        )

    @classmethod
    def create(cls, settings: Settings, client: httpx.Client | None = None):
        """Create an adapter with explicit settings and an optional client."""
        return cls(settings=settings, client=client)

    @classmethod
    def create_default(cls):
        """Create an adapter configured from the process environment."""
        return cls(settings=Settings.from_env())

    @property
    def source_type(self) -> str:
        return self.source_kind

    def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            self.client.close()

    def _check_source(self, source: Source) -> None:
        source.validate()
        if source.kind != self.source_kind:
            raise InvalidSourceError(
                f"source type must be '{self.source_kind}', got '{source.kind}'",
                source.kind,
            )

    def _get_json(self, url: str, subject: str) -> Any:
        """GET a JSON document.

        Args:
            url: Absolute URL.
            subject: Human-readable name used in error messages.

        Returns:
            Decoded JSON body.

        Raises:
            NetworkFailureError: On transport errors, non-2xx responses, or
                a body that is not JSON.
        """
        logger.debug("GET %s", url)
        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            raise NetworkFailureError(
                f"failed to fetch metadata for {subject} from {url}: {e}. "
                "Please check your internet connection and try again",
                reason="connection",
            ) from e

        if response.status_code == 404:
            raise NetworkFailureError(
                f"{subject} not found. Please verify the name is correct",
                reason="not_found",
            )
        if not response.is_success:
            raise NetworkFailureError(
                f"failed to fetch metadata for {subject} from {url}: "
                f"HTTP status {response.status_code}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise NetworkFailureError(
                f"failed to parse metadata for {subject} from {url}: {e}"
            ) from e

    def _download_to_file(self, url: str, out) -> None:
        """Stream url into an open binary file object."""
        logger.debug("Downloading %s", url)
        try:
            with self.client.stream("GET", url) as response:
                if not response.is_success:
                    missing = response.status_code in (404, 410)
                    raise NetworkFailureError(
                        f"failed to download from {url}: HTTP status {response.status_code}",
                        reason="not_found" if missing else "generic",
                    )
                for chunk in response.iter_bytes(_DOWNLOAD_CHUNK_SIZE):
                    out.write(chunk)
        except httpx.HTTPError as e:
            raise NetworkFailureError(
                f"failed to download from {url}: {e}. "
                "Please check your internet connection and try again",
                reason="connection",
            ) from e

    def _download_tarball(self, url: str) -> Path:
        """Download a gzip tarball and unpack it into a fresh temp directory.

        The directory is removed again if anything fails.

        Returns:
            Path to the populated directory.
        """
        dest = self.settings.make_temp_dir(self.temp_prefix)
        try:
            with tempfile.TemporaryFile(dir=self.settings.temp_dir) as spool:
                self._download_to_file(url, spool)
                spool.seek(0)
                extract_tar_gz(spool, dest)
        except BaseException:
            shutil.rmtree(dest, ignore_errors=True)
            raise
        return dest


class RegistryPackageManager(HttpPackageManager):
    """Template for registries that serve a metadata document per package.

    Subclasses set default_registry and registry_option, and implement
    metadata_url, latest_from, has_version and tarball_url.
    """

    default_registry = ""
    registry_option = "registry"
    package_label = "package"

    def registry_root(self, source: Source) -> str:
        """Return the registry root for a source without a trailing slash."""
        root = source.option(self.registry_option) or self.default_registry
        return root.rstrip("/")

    def metadata_url(self, root: str, name: str) -> str:
        raise NotImplementedError

    def latest_from(self, metadata: dict[str, Any]) -> str:
        raise NotImplementedError

    def has_version(self, metadata: dict[str, Any], version: str) -> bool:
        raise NotImplementedError

    def tarball_url(self, metadata: dict[str, Any], version: str, source: Source) -> str:
        raise NotImplementedError

    def fetch_metadata(self, source: Source) -> dict[str, Any]:
        """Fetch and sanity-check the metadata document for a source."""
        url = self.metadata_url(self.registry_root(source), source.locator)
        metadata = self._get_json(url, f"{self.package_label} {source.locator}")
        if not isinstance(metadata, dict):
            raise NetworkFailureError(
                f"unexpected metadata for {self.package_label} {source.locator} from {url}"
            )
        return metadata

    def _latest(self, metadata: dict[str, Any], source: Source) -> str:
        latest = self.latest_from(metadata)
        if not latest:
            raise VersionNotFoundError(
                "latest",
                source.locator,
                f"no latest version found for {self.package_label} {source.locator}",
            )
        return latest

    def latest_version(self, source: Source) -> str:
        """Return the registry's current latest version.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If the registry cannot be queried.
            VersionNotFoundError: If the registry advertises no latest version.
        """
        self._check_source(source)
        return self._latest(self.fetch_metadata(source), source)

    def download(self, source: Source, version: str = "") -> ResolvedDownload:
        """Resolve a version and unpack its tarball into a temp directory.

        Args:
            source: Registry source.
            version: Exact version, or "" / "latest".

        Returns:
            ResolvedDownload owned by the caller.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If the registry cannot be reached.
            VersionNotFoundError: If the version is not published.
            PathTraversalError: If the tarball contains escaping entries.
            UnsupportedArchiveError: If the distribution cannot be unpacked.
        """
        self._check_source(source)
        metadata = self.fetch_metadata(source)

        if is_latest(version):
            resolved = self._latest(metadata, source)
        else:
            resolved = version
        if not self.has_version(metadata, resolved):
            raise VersionNotFoundError(resolved, f"{self.package_label} {source.locator}")

        url = self.tarball_url(metadata, resolved, source)
        logger.debug(
            "Resolved %s %s@%s to %s", self.source_kind, source.locator, resolved, url
        )
        path = self._download_tarball(url)
        logger.info("Downloaded %s %s@%s", self.source_kind, source.locator, resolved)
        return ResolvedDownload(local_path=path, resolved_version=resolved)
