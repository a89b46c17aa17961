"""Source adapters and the dispatcher that selects one per source kind."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

import httpx

from skills_pkg.errors import InvalidSourceError
from skills_pkg.pkgmanagers.cargo import CargoPackageManager
from skills_pkg.pkgmanagers.git import GitPackageManager
from skills_pkg.pkgmanagers.gomod import GoModulePackageManager, ProxyEntry, parse_goproxy
from skills_pkg.pkgmanagers.npm import NpmPackageManager
from skills_pkg.pkgmanagers.pip import PipPackageManager
from skills_pkg.protocols import PackageManager
from skills_pkg.settings import Settings
from skills_pkg.types import SOURCE_KINDS

__all__ = [
    "CargoPackageManager",
    "GitPackageManager",
    "GoModulePackageManager",
    "NpmPackageManager",
    "PackageManagerRegistry",
    "PipPackageManager",
    "ProxyEntry",
    "SOURCE_KINDS",
    "create_package_managers",
    "parse_goproxy",
]

logger = logging.getLogger(__name__)


class PackageManagerRegistry:
    """Maps source kinds to adapters.

    Built once at startup and read-only afterwards, so concurrent lookups
    from worker threads need no locking.
    """

    def __init__(self, managers: Iterable[PackageManager] = ()) -> None:
        self._managers: dict[str, PackageManager] = {}
        for manager in managers:
            self.register(manager)

    def register(self, manager: PackageManager) -> None:
        """Add an adapter, replacing any existing one for the same kind."""
        self._managers[manager.source_type] = manager

    def get(self, kind: str) -> PackageManager:
        """Return the adapter for a source kind.

        Args:
            kind: Source kind, e.g. "npm".

        Returns:
            The matching adapter.

        Raises:
            InvalidSourceError: If kind is empty or unknown.
        """
        if not kind:
            raise InvalidSourceError("source type is required")
        try:
            return self._managers[kind]
        except KeyError:
            raise InvalidSourceError(
                f"unsupported source type '{kind}'. Supported: {', '.join(self.kinds)}",
                kind,
            ) from None

    @property
    def kinds(self) -> list[str]:
        return sorted(self._managers)

    def __contains__(self, kind: object) -> bool:
        return kind in self._managers

    def __iter__(self) -> Iterator[PackageManager]:
        return iter(self._managers.values())

    def close(self) -> None:
        """Release adapter resources such as HTTP connection pools."""
        for manager in self:
            close = getattr(manager, "close", None)
            if close is not None:
                close()


def create_package_managers(
    settings: Settings,
    client: httpx.Client | None = None,
    workdir: Path | None = None,
) -> PackageManagerRegistry:
    """Build the registry with one adapter per supported source kind.

    Args:
        settings: Runtime settings shared by every adapter.
        client: Optional HTTP client shared by the HTTP-based adapters.
        workdir: Where the go-module adapter starts its go.mod search.

    Returns:
        Populated PackageManagerRegistry.
    """
    registry = PackageManagerRegistry(
        [
            GitPackageManager.create(settings),
            NpmPackageManager.create(settings, client),
            PipPackageManager.create(settings, client),
            CargoPackageManager.create(settings, client),
            GoModulePackageManager.create(settings, client, workdir),
        ]
    )
    logger.debug("Registered package managers: %s", ", ".join(registry.kinds))
    return registry
