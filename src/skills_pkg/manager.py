"""Skill orchestration: install, update and uninstall across install targets."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from threading import Event
from typing import Callable, Sequence, TypeVar

from skills_pkg.diffing import compute_file_diffs
from skills_pkg.errors import (
    HashMismatchError,
    NoInstallTargetsError,
    OperationCancelledError,
    SkillNotFoundError,
    SkillOperationError,
    SkillsPkgError,
    SubdirectoryNotFoundError,
)
from skills_pkg.filesystem import RealFileSystem
from skills_pkg.hashing import DirhashService
from skills_pkg.manifest import Manifest, ManifestManager, Skill, resolve_targets
from skills_pkg.pkgmanagers import PackageManagerRegistry
from skills_pkg.protocols import FileSystem, HashService
from skills_pkg.types import InstallOutcome, IntegrityDigest, ResolvedDownload, UpdateResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returns True once the batch should stop starting new work.
CancelCheck = Callable[[], bool]


class SkillManager:
    """Installs, updates and removes skills listed in the manifest.

    Each batch runs one worker per skill on a thread pool; each worker copies
    to and verifies every install target on a second, per-skill pool. The
    manifest is loaded once per batch, every worker mutates only its own
    Skill entry, and the manifest is written once after all workers succeed.

    Follows Separate Use from Creation: constructor requires all dependencies.
    Use factory method `create()` for production instantiation with defaults.
    """

    def __init__(
        self,
        manifest: ManifestManager,
        package_managers: PackageManagerRegistry,
        hash_service: HashService,
        filesystem: FileSystem,
        max_workers: int | None = None,
    ) -> None:
        """Initialize the manager with required dependencies.

        Args:
            manifest: Manifest manager (required).
            package_managers: Adapter registry (required).
            hash_service: Directory hash service (required).
            filesystem: Filesystem abstraction (required).
            max_workers: Upper bound on concurrently processed skills.

        Note:
            Use factory method `create()` for production code.
            Direct construction is for testing with explicit dependencies.
        """
        self.manifest = manifest
        self.package_managers = package_managers
        self.hash_service = hash_service
        self.fs = filesystem
        self.max_workers = max_workers

    @classmethod
    def create(
        cls,
        manifest: ManifestManager,
        package_managers: PackageManagerRegistry,
        hash_service: HashService | None = None,
        filesystem: FileSystem | None = None,
        max_workers: int | None = None,
    ) -> SkillManager:
        """Factory method for production instantiation.

        Args:
            manifest: Manifest manager.
            package_managers: Adapter registry.
            hash_service: Optional hash service (DirhashService if not provided).
            filesystem: Optional filesystem abstraction (created if not provided).
            max_workers: Optional bound on concurrent skills.

        Returns:
            Configured SkillManager instance.
        """
        return cls(
            manifest=manifest,
            package_managers=package_managers,
            hash_service=hash_service or DirhashService(),
            filesystem=filesystem or RealFileSystem(),
            max_workers=max_workers,
        )

    def install(
        self, name: str | None = None, cancel: Event | None = None
    ) -> list[InstallOutcome]:
        """Install one skill, or every skill in the manifest.

        Each skill is downloaded at its recorded version, hashed (unless the
        version came from an external ledger such as go.mod), copied into
        every install target and verified there. Verification mismatches are
        logged as warnings and reported in the outcome; they do not fail the
        batch.

        Args:
            name: Skill to install. None installs all skills.
            cancel: Optional event; once set, skills that have not reached
                their copy phase stop with OperationCancelledError.

        Returns:
            One InstallOutcome per skill, in manifest order.

        Raises:
            SkillNotFoundError: If name is not in the manifest.
            NoInstallTargetsError: If no install targets are configured.
            SkillOperationError: If any skill fails. The manifest is not saved.
        """
        manifest = self.manifest.load()
        skills = self._select(manifest, [name] if name else None)
        targets = resolve_targets(manifest.install_targets)
        if not targets:
            raise NoInstallTargetsError()

        outcomes = self._run_batch(
            skills,
            lambda skill, cancelled: self._install_skill(skill, targets, cancelled),
            cancel,
        )
        self.manifest.save(manifest)
        return outcomes

    def update(
        self,
        names: Sequence[str] | None = None,
        dry_run: bool = False,
        cancel: Event | None = None,
    ) -> list[UpdateResult]:
        """Update skills to the newest version their source offers.

        Args:
            names: Skills to update. None or empty updates all skills.
            dry_run: Download and diff against the first install target
                without changing any files or the manifest.
            cancel: Optional cancellation event, as for install().

        Returns:
            One UpdateResult per skill, in selection order.

        Raises:
            SkillNotFoundError: If a name is not in the manifest.
            NoInstallTargetsError: If no targets are configured (not for dry runs).
            SkillOperationError: If any skill fails. The manifest is not saved.
        """
        manifest = self.manifest.load()
        skills = self._select(manifest, list(names) if names else None)
        targets = resolve_targets(manifest.install_targets)
        if not targets and not dry_run:
            raise NoInstallTargetsError()

        results = self._run_batch(
            skills,
            lambda skill, cancelled: self._update_skill(skill, targets, dry_run, cancelled),
            cancel,
        )
        if not dry_run:
            self.manifest.save(manifest)
        return results

    def uninstall(self, name: str) -> list[Path]:
        """Remove a skill from every install target and from the manifest.

        Args:
            name: Skill to remove.

        Returns:
            Directories that were removed.

        Raises:
            SkillNotFoundError: If name is not in the manifest. Nothing changes.
        """
        manifest = self.manifest.load()
        if manifest.find_skill(name) is None:
            raise SkillNotFoundError([name])

        removed: list[Path] = []
        for target in resolve_targets(manifest.install_targets):
            skill_dir = target / name
            if self.fs.remove(skill_dir):
                logger.info("Removed skill '%s' from %s", name, target)
                removed.append(skill_dir)

        manifest.skills = [s for s in manifest.skills if s.name != name]
        self.manifest.save(manifest)
        logger.info("Uninstalled skill '%s'", name)
        return removed

    def _select(self, manifest: Manifest, names: list[str] | None) -> list[Skill]:
        if not names:
            return list(manifest.skills)

        missing = [n for n in names if manifest.find_skill(n) is None]
        if missing:
            raise SkillNotFoundError(missing)
        return [s for s in manifest.skills if s.name in names]

    def _run_batch(
        self,
        skills: list[Skill],
        worker: Callable[[Skill, CancelCheck], T],
        cancel: Event | None,
    ) -> list[T]:
        """Run worker for every skill concurrently.

        The first failure stops work that has not passed its point of no
        return and is re-raised wrapped in SkillOperationError once every
        worker has finished.
        """
        if not skills:
            return []

        failed = Event()

        def cancelled() -> bool:
            return failed.is_set() or (cancel is not None and cancel.is_set())

        results: list[T | None] = [None] * len(skills)
        first_error: SkillOperationError | None = None

        with ThreadPoolExecutor(
            max_workers=self.max_workers or len(skills), thread_name_prefix="skills-pkg"
        ) as pool:
            futures = {
                pool.submit(worker, skill, cancelled): index for index, skill in enumerate(skills)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    failed.set()
                    if first_error is None:
                        first_error = SkillOperationError(skills[index].name, e)
                        first_error.__cause__ = e
                    else:
                        logger.debug("Suppressed error for %s: %s", skills[index].name, e)

        if first_error is not None:
            raise first_error
        return results  # type: ignore[return-value]

    def _ensure_active(self, skill: Skill, cancelled: CancelCheck) -> None:
        if cancelled():
            raise OperationCancelledError(
                f"operation cancelled before processing skill '{skill.name}'"
            )

    def _content_root(self, skill: Skill, download: ResolvedDownload) -> Path:
        if not skill.subdir:
            return download.local_path
        path = download.local_path / skill.subdir
        if not self.fs.is_dir(path):
            raise SubdirectoryNotFoundError(skill.name, skill.subdir)
        return path

    def _install_skill(
        self, skill: Skill, targets: list[Path], cancelled: CancelCheck
    ) -> InstallOutcome:
        self._ensure_active(skill, cancelled)
        logger.info("Installing skill '%s'", skill.name)
        manager = self.package_managers.get(skill.source)
        with manager.download(skill.to_source(), skill.version) as download:
            return self._apply(skill, download, targets, cancelled)

    def _update_skill(
        self, skill: Skill, targets: list[Path], dry_run: bool, cancelled: CancelCheck
    ) -> UpdateResult:
        self._ensure_active(skill, cancelled)
        manager = self.package_managers.get(skill.source)
        source = skill.to_source()
        latest = manager.latest_version(source)
        logger.debug("Latest version of '%s' is %s", skill.name, latest)

        old_version = skill.version
        with manager.download(source, latest) as download:
            if dry_run:
                content = self._content_root(skill, download)
                installed = targets[0] / skill.name if targets else None
                if installed is not None and not self.fs.is_dir(installed):
                    installed = None
                return UpdateResult(
                    skill_name=skill.name,
                    old_version=old_version,
                    new_version=download.resolved_version,
                    file_diffs=compute_file_diffs(installed, content),
                )

            outcome = self._apply(skill, download, targets, cancelled)
            return UpdateResult(
                skill_name=skill.name,
                old_version=old_version,
                new_version=download.resolved_version,
                outcome=outcome,
            )

    def _apply(
        self,
        skill: Skill,
        download: ResolvedDownload,
        targets: list[Path],
        cancelled: CancelCheck,
    ) -> InstallOutcome:
        """Hash, copy and verify a download, then record it on the skill."""
        content = self._content_root(skill, download)

        digest: IntegrityDigest | None = None
        version = ""
        if download.from_external_ledger:
            logger.debug(
                "Version of '%s' comes from an external ledger; skipping digest", skill.name
            )
        else:
            digest = self.hash_service.calculate_hash(content)
            version = download.resolved_version

        # Past this point copies run to completion even if the batch is cancelled.
        self._ensure_active(skill, cancelled)
        installed = self._copy_to_targets(content, skill.name, targets)
        mismatches = self._verify_targets(skill.name, digest, installed) if digest else []

        skill.version = version
        skill.set_digest(digest)
        logger.info("Installed skill '%s' to %d target(s)", skill.name, len(installed))
        return InstallOutcome(
            skill_name=skill.name,
            version=version,
            digest=digest.value if digest else None,
            installed_paths=installed,
            hash_mismatches=mismatches,
        )

    def _copy_to_targets(self, content: Path, name: str, targets: list[Path]) -> list[Path]:
        def copy(target: Path) -> Path:
            dest = target / name
            self.fs.remove(dest)
            self.fs.mkdir(target, parents=True, exist_ok=True)
            self.fs.copytree(content, dest)
            logger.debug("Copied '%s' to %s", name, dest)
            return dest

        with ThreadPoolExecutor(max_workers=len(targets)) as pool:
            return list(pool.map(copy, targets))

    def _verify_targets(
        self, name: str, digest: IntegrityDigest, installed: list[Path]
    ) -> list[HashMismatchError]:
        def verify(path: Path) -> HashMismatchError | None:
            try:
                actual = self.hash_service.calculate_hash(path).value
            except (SkillsPkgError, OSError) as e:
                logger.warning("Could not verify '%s' at %s: %s", name, path, e)
                return HashMismatchError(str(path), digest.value, f"unreadable ({e})")
            if actual != digest.value:
                mismatch = HashMismatchError(str(path), digest.value, actual)
                logger.warning("Hash mismatch for '%s': %s", name, mismatch)
                return mismatch
            return None

        with ThreadPoolExecutor(max_workers=len(installed)) as pool:
            return [p for p in pool.map(verify, installed) if p is not None]
