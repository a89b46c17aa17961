"""npm registry package manager."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from skills_pkg.errors import UnsupportedArchiveError
from skills_pkg.pkgmanagers.base import RegistryPackageManager
from skills_pkg.types import Source

DEFAULT_NPM_REGISTRY = "https://registry.npmjs.org"


class NpmPackageManager(RegistryPackageManager):
    """Downloads skills published as npm packages.

    The tarball's "package/" wrapper directory is stripped on extraction.
    Scoped names (@scope/name) are supported.
    """

    source_kind = "npm"
    temp_prefix = "skills-pkg-npm"
    default_registry = DEFAULT_NPM_REGISTRY
    registry_option = "registry"
    package_label = "npm package"

    def metadata_url(self, root: str, name: str) -> str:
        # Scoped packages keep the leading "@" but encode the slash.
        return f"{root}/{quote(name, safe='@')}"

    def latest_from(self, metadata: dict[str, Any]) -> str:
        dist_tags = metadata.get("dist-tags") or {}
        return dist_tags.get("latest", "")

    def has_version(self, metadata: dict[str, Any], version: str) -> bool:
        return version in (metadata.get("versions") or {})

    def tarball_url(self, metadata: dict[str, Any], version: str, source: Source) -> str:
        info = metadata["versions"][version]
        tarball = (info.get("dist") or {}).get("tarball", "")
        if not tarball:
            raise UnsupportedArchiveError(
                f"no tarball published for npm package {source.locator} version {version}"
            )
        return tarball
