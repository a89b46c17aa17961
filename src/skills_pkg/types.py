"""Shared data types for skills-pkg."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from skills_pkg.errors import HashMismatchError, InvalidSourceError

__all__ = [
    "LATEST",
    "SOURCE_KINDS",
    "FileDiff",
    "InstallOutcome",
    "IntegrityDigest",
    "ResolvedDownload",
    "Source",
    "UpdateResult",
    "VerifyResult",
    "VerifySummary",
    "is_latest",
]

logger = logging.getLogger(__name__)

LATEST = "latest"

SOURCE_KINDS = ("git", "npm", "pip", "cargo", "go-module")


def is_latest(version: str | None) -> bool:
    """Return True when a requested version means "resolve for me"."""
    return not version or version == LATEST


@dataclass(frozen=True)
class Source:
    """Where to fetch a skill from.

    Attributes:
        kind: Adapter key (git, npm, pip, cargo, go-module).
        locator: Git URL, package name, crate name, or module path.
        options: Adapter-specific overrides such as an alternate registry.
    """

    kind: str
    locator: str
    options: Mapping[str, str] = field(default_factory=dict)

    def option(self, key: str) -> str | None:
        """Return a non-empty option value or None."""
        value = self.options.get(key)
        return value or None

    def validate(self, known_kinds: Iterable[str] | None = None) -> None:
        """Check invariants.

        Args:
            known_kinds: Accepted adapter keys. Skipped when None.

        Raises:
            InvalidSourceError: If kind or locator is missing or kind is unknown.
        """
        if not self.kind:
            raise InvalidSourceError("source type is required")
        if not self.locator:
            raise InvalidSourceError("source URL is required", self.kind)
        if known_kinds is not None:
            kinds = sorted(known_kinds)
            if self.kind not in kinds:
                raise InvalidSourceError(
                    f"invalid source type '{self.kind}'. Supported: {', '.join(kinds)}",
                    self.kind,
                )


@dataclass
class ResolvedDownload:
    """Result of one acquisition.

    The caller owns local_path exclusively and must remove it on every exit
    path; use the instance as a context manager to guarantee that.

    Attributes:
        local_path: Private temporary directory holding the content.
        resolved_version: Concrete version that was downloaded.
        from_external_ledger: True only when a go-module version came from go.mod.
    """

    local_path: Path
    resolved_version: str
    from_external_ledger: bool = False

    def cleanup(self) -> None:
        """Remove the temporary directory if it still exists."""
        if self.local_path.exists():
            shutil.rmtree(self.local_path, ignore_errors=True)
            logger.debug("Removed download directory %s", self.local_path)

    def __enter__(self) -> ResolvedDownload:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()


@dataclass(frozen=True)
class IntegrityDigest:
    """Directory digest.

    The value carries its algorithm prefix (h1:...), so comparing two values
    detects algorithm and content mismatches at once.
    """

    algorithm: str
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass
class InstallOutcome:
    """Result of installing one skill.

    Attributes:
        skill_name: Name of the installed skill.
        version: Version recorded in the manifest (empty for go.mod-sourced).
        digest: Digest value recorded in the manifest, if any.
        installed_paths: One directory per install target.
        hash_mismatches: One error per target whose verification failed
            (warning only).
    """

    skill_name: str
    version: str
    digest: str | None
    installed_paths: list[Path] = field(default_factory=list)
    hash_mismatches: list[HashMismatchError] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return not self.hash_mismatches

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.skill_name:
            raise ValueError("skill_name cannot be empty")


@dataclass
class FileDiff:
    """Change to one file between the installed and the candidate version.

    Attributes:
        path: POSIX path relative to the skill root.
        status: "added", "removed" or "modified".
        patch: Unified line diff for modified text files, else empty.
    """

    path: str
    status: str
    patch: str = ""


@dataclass
class UpdateResult:
    """Version transition for one skill."""

    skill_name: str
    old_version: str
    new_version: str
    file_diffs: list[FileDiff] | None = None
    outcome: InstallOutcome | None = None

    @property
    def has_update(self) -> bool:
        return self.old_version != self.new_version


@dataclass
class VerifyResult:
    """Comparison of a recorded digest with one installed copy."""

    skill_name: str
    install_dir: Path
    expected: str
    actual: str
    match: bool
    skipped: bool = False


@dataclass
class VerifySummary:
    """Aggregated verification results across skills and targets."""

    results: list[VerifyResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.match and not r.skipped)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.match and not r.skipped)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.skipped)
