"""PyPI package manager using the JSON API."""

from __future__ import annotations

import logging
from typing import Any

from skills_pkg.errors import UnsupportedArchiveError
from skills_pkg.pkgmanagers.base import RegistryPackageManager
from skills_pkg.types import Source

logger = logging.getLogger(__name__)

DEFAULT_PYPI_INDEX = "https://pypi.org"


class PipPackageManager(RegistryPackageManager):
    """Downloads skills published as Python source distributions.

    A release is usable only if it has a ".tar.gz" sdist. Wheel-only
    releases are rejected with UnsupportedArchiveError.
    """

    source_kind = "pip"
    temp_prefix = "skills-pkg-pip"
    default_registry = DEFAULT_PYPI_INDEX
    registry_option = "index"
    package_label = "pip package"

    def metadata_url(self, root: str, name: str) -> str:
        return f"{root}/pypi/{name}/json"

    def latest_from(self, metadata: dict[str, Any]) -> str:
        return (metadata.get("info") or {}).get("version", "")

    def has_version(self, metadata: dict[str, Any], version: str) -> bool:
        files = (metadata.get("releases") or {}).get(version)
        return bool(files)

    def tarball_url(self, metadata: dict[str, Any], version: str, source: Source) -> str:
        files = metadata["releases"][version]

        for entry in files:
            if entry.get("packagetype") == "sdist" and entry.get("filename", "").endswith(
                ".tar.gz"
            ):
                return entry["url"]

        for entry in files:
            if entry.get("packagetype") == "bdist_wheel":
                logger.debug("Only a wheel is available: %s", entry.get("url"))
                raise UnsupportedArchiveError(
                    f"wheel file extraction not yet implemented "
                    f"({source.locator} {version} has no .tar.gz sdist)"
                )

        raise UnsupportedArchiveError(
            f"no suitable distribution found for package {source.locator} version {version}"
        )
