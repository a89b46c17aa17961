"""Verification of installed skills against their recorded digests."""

from __future__ import annotations

import logging
from pathlib import Path

from skills_pkg.errors import SkillNotFoundError, SkillsPkgError
from skills_pkg.hashing import DirhashService
from skills_pkg.manifest import ManifestManager, Skill, resolve_targets
from skills_pkg.protocols import HashService
from skills_pkg.types import VerifyResult, VerifySummary

logger = logging.getLogger(__name__)


class HashVerifier:
    """Re-hashes installed copies and compares them with the manifest."""

    def __init__(self, manifest: ManifestManager, hash_service: HashService) -> None:
        self.manifest = manifest
        self.hash_service = hash_service

    @classmethod
    def create(
        cls, manifest: ManifestManager, hash_service: HashService | None = None
    ) -> HashVerifier:
        return cls(manifest=manifest, hash_service=hash_service or DirhashService())

    def verify(self, name: str, install_dir: Path) -> VerifyResult:
        """Verify one installed copy of a skill.

        Skills without a recorded digest (their version came from an external
        ledger) are reported as skipped.

        Args:
            name: Skill name.
            install_dir: Installed copy to hash.

        Returns:
            VerifyResult for the copy.

        Raises:
            SkillNotFoundError: If name is not in the manifest.
            FileNotFoundError: If install_dir does not exist.
        """
        skill = self.manifest.load().find_skill(name)
        if skill is None:
            raise SkillNotFoundError([name])
        return self._verify_skill(skill, install_dir)

    def verify_all(self) -> VerifySummary:
        """Verify every skill in every install target.

        Copies that cannot be hashed count as failures rather than aborting
        the run.
        """
        manifest = self.manifest.load()
        targets = resolve_targets(manifest.install_targets)
        summary = VerifySummary()

        for skill in manifest.skills:
            for target in targets:
                install_dir = target / skill.name
                try:
                    result = self._verify_skill(skill, install_dir)
                except (SkillsPkgError, OSError) as e:
                    logger.debug("Verification of %s failed: %s", install_dir, e)
                    result = VerifyResult(
                        skill_name=skill.name,
                        install_dir=install_dir,
                        expected=skill.hash_value or "",
                        actual="",
                        match=False,
                    )
                summary.results.append(result)

        return summary

    def _verify_skill(self, skill: Skill, install_dir: Path) -> VerifyResult:
        if not skill.hash_value:
            return VerifyResult(
                skill_name=skill.name,
                install_dir=install_dir,
                expected="",
                actual="",
                match=True,
                skipped=True,
            )

        actual = self.hash_service.calculate_hash(install_dir)
        match = actual.value == skill.hash_value
        if not match:
            logger.warning(
                "Hash mismatch for '%s' at %s: expected %s, got %s",
                skill.name,
                install_dir,
                skill.hash_value,
                actual.value,
            )
        return VerifyResult(
            skill_name=skill.name,
            install_dir=install_dir,
            expected=skill.hash_value,
            actual=actual.value,
            match=match,
        )
