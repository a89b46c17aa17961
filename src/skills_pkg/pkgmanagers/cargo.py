"""crates.io package manager."""

from __future__ import annotations

from typing import Any

from skills_pkg.errors import UnsupportedArchiveError
from skills_pkg.pkgmanagers.base import RegistryPackageManager
from skills_pkg.types import Source

DEFAULT_CRATES_REGISTRY = "https://crates.io"


class CargoPackageManager(RegistryPackageManager):
    """Downloads skills published as crates.

    Download links in crate metadata are registry-relative (dl_path), so the
    registry root is prepended.
    """

    source_kind = "cargo"
    temp_prefix = "skills-pkg-cargo"
    default_registry = DEFAULT_CRATES_REGISTRY
    registry_option = "registry"
    package_label = "crate"

    def metadata_url(self, root: str, name: str) -> str:
        return f"{root}/api/v1/crates/{name}"

    def latest_from(self, metadata: dict[str, Any]) -> str:
        return (metadata.get("crate") or {}).get("max_version", "")

    def _find(self, metadata: dict[str, Any], version: str) -> dict[str, Any] | None:
        for entry in metadata.get("versions") or []:
            if entry.get("num") == version:
                return entry
        return None

    def has_version(self, metadata: dict[str, Any], version: str) -> bool:
        return self._find(metadata, version) is not None

    def tarball_url(self, metadata: dict[str, Any], version: str, source: Source) -> str:
        entry = self._find(metadata, version) or {}
        dl_path = entry.get("dl_path", "")
        if not dl_path:
            raise UnsupportedArchiveError(
                f"no download path for crate {source.locator} version {version}"
            )
        return self.registry_root(source) + dl_path
