"""Application context for dependency injection.

This module separates object creation from object use, enabling testability
and reducing coupling in CLI commands. For tests, construct AppContext
directly with test doubles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from skills_pkg.filesystem import RealFileSystem
from skills_pkg.hashing import DirhashService
from skills_pkg.manager import SkillManager
from skills_pkg.manifest import ManifestManager
from skills_pkg.pkgmanagers import PackageManagerRegistry, create_package_managers
from skills_pkg.protocols import FileSystem, HashService
from skills_pkg.settings import Settings
from skills_pkg.verify import HashVerifier


def _default_filesystem() -> FileSystem:
    """Create the default filesystem implementation."""
    return RealFileSystem()


@dataclass
class AppContext:
    """Container for application dependencies.

    Provides a single injection point for all services used by CLI commands.
    """

    manifest: ManifestManager
    package_managers: PackageManagerRegistry
    hash_service: HashService
    manager: SkillManager
    verifier: HashVerifier
    settings: Settings = field(default_factory=Settings)
    filesystem: FileSystem = field(default_factory=_default_filesystem)

    def close(self) -> None:
        """Release adapter resources."""
        self.package_managers.close()


def create_context(
    manifest_path: Path | None = None,
    settings: Settings | None = None,
    max_workers: int | None = None,
) -> AppContext:
    """Factory for application dependencies.

    Creates all services with proper wiring. Use this in production code.

    Args:
        manifest_path: Override manifest location (default ./.skillspkg.json).
        settings: Override runtime settings (default: from environment).
        max_workers: Bound on concurrently processed skills.

    Returns:
        Configured AppContext with all dependencies.
    """
    settings = settings or Settings.from_env()
    manifest = (
        ManifestManager.create(manifest_path) if manifest_path else ManifestManager.create_default()
    )
    package_managers = create_package_managers(settings, workdir=manifest.path.parent)
    hash_service = DirhashService()
    filesystem = RealFileSystem()
    manager = SkillManager.create(
        manifest=manifest,
        package_managers=package_managers,
        hash_service=hash_service,
        filesystem=filesystem,
        max_workers=max_workers,
    )
    verifier = HashVerifier.create(manifest, hash_service)

    return AppContext(
        manifest=manifest,
        package_managers=package_managers,
        hash_service=hash_service,
        manager=manager,
        verifier=verifier,
        settings=settings,
        filesystem=filesystem,
    )
