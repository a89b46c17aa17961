"""Error taxonomy for skill acquisition and installation.

Every error raised by the core derives from SkillsPkgError so callers can
catch the whole family at the CLI boundary while still branching on the
specific kind.
"""

from __future__ import annotations


class SkillsPkgError(Exception):
    """Base class for all skills-pkg errors."""

    pass


class InvalidSourceError(SkillsPkgError):
    """Malformed or unsupported source descriptor."""

    def __init__(self, message: str, source_type: str = "") -> None:
        super().__init__(message)
        self.source_type = source_type


class NetworkFailureError(SkillsPkgError):
    """Transport, HTTP status, or VCS protocol failure.

    Attributes:
        reason: Classification used for remediation text. One of
            "not_found", "auth_required", "connection", "disabled" or "generic".
    """

    def __init__(self, message: str, reason: str = "generic") -> None:
        super().__init__(message)
        self.reason = reason


class VersionNotFoundError(SkillsPkgError):
    """The source is well-formed but the requested version does not exist."""

    def __init__(self, version: str, locator: str, message: str | None = None) -> None:
        super().__init__(
            message
            or f"version {version} not found for {locator}. Please verify the version is correct"
        )
        self.version = version
        self.locator = locator


class SubdirectoryNotFoundError(SkillsPkgError):
    """Configured subdirectory is missing from the downloaded content."""

    def __init__(self, skill_name: str, subdir: str) -> None:
        super().__init__(
            f"subdirectory '{subdir}' not found in downloaded skill '{skill_name}'"
        )
        self.skill_name = skill_name
        self.subdir = subdir


class PathTraversalError(SkillsPkgError):
    """Archive entry would be written outside the destination directory."""

    def __init__(self, entry_name: str) -> None:
        super().__init__(f"invalid file path in archive: {entry_name}")
        self.entry_name = entry_name


class UnsupportedArchiveError(SkillsPkgError):
    """Distribution format that cannot be extracted."""

    pass


class SkillNotFoundError(SkillsPkgError):
    """Skill name is not present in the manifest."""

    def __init__(self, skill_names: list[str]) -> None:
        names = ", ".join(skill_names)
        super().__init__(f"skill not found: {names}")
        self.skill_names = skill_names


class SkillExistsError(SkillsPkgError):
    """A skill with the same name is already in the manifest."""

    pass


class HashMismatchError(SkillsPkgError):
    """Installed copy does not match the computed digest.

    Never raised by the orchestrator; one instance per failing target is
    carried in InstallOutcome.hash_mismatches and logged as a warning.
    """

    def __init__(self, path: str, expected: str, actual: str) -> None:
        super().__init__(f"hash mismatch in {path}: expected {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


class NoInstallTargetsError(SkillsPkgError):
    """Manifest has no configured install targets."""

    def __init__(self) -> None:
        super().__init__(
            "no install targets configured. "
            "Run 'skills-pkg init --install-dir <dir>' or 'skills-pkg add-target <dir>'"
        )


class ManifestError(SkillsPkgError):
    """Manifest could not be read, parsed, or validated."""

    pass


class ManifestNotFoundError(ManifestError):
    """Manifest file does not exist."""

    pass


class ManifestExistsError(ManifestError):
    """Manifest file already exists."""

    pass


class OperationCancelledError(SkillsPkgError):
    """Batch was cancelled before this skill reached its copy phase."""

    pass


class SkillOperationError(SkillsPkgError):
    """A per-skill worker failed; wraps the underlying cause.

    Attributes:
        skill_name: Name of the failing skill.
        cause: The original exception, also available as __cause__.
    """

    def __init__(self, skill_name: str, cause: BaseException) -> None:
        super().__init__(f"skill '{skill_name}': {cause}")
        self.skill_name = skill_name
        self.cause = cause
