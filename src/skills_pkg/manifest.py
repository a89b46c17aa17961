"""Manifest persistence: which skills are configured and where they install."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from skills_pkg.errors import (
    InvalidSourceError,
    ManifestError,
    ManifestExistsError,
    ManifestNotFoundError,
    SkillExistsError,
    SkillNotFoundError,
)
from skills_pkg.types import SOURCE_KINDS, IntegrityDigest, Source

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = ".skillspkg.json"
MANIFEST_VERSION = "1.0"


class Skill(BaseModel):
    """A configured skill."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    source: str
    url: str
    options: dict[str, str] = Field(default_factory=dict)
    version: str = ""
    subdir: str | None = None
    hash_algorithm: str | None = Field(default=None, alias="hashAlgorithm")
    hash_value: str | None = Field(default=None, alias="hashValue")

    def to_source(self) -> Source:
        """Build the Source descriptor adapters consume."""
        return Source(kind=self.source, locator=self.url, options=dict(self.options))

    @property
    def digest(self) -> IntegrityDigest | None:
        if not self.hash_value:
            return None
        return IntegrityDigest(algorithm=self.hash_algorithm or "", value=self.hash_value)

    def set_digest(self, digest: IntegrityDigest | None) -> None:
        """Record or clear the integrity digest."""
        self.hash_algorithm = digest.algorithm if digest else None
        self.hash_value = digest.value if digest else None


class Manifest(BaseModel):
    """Root document of the manifest file."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = MANIFEST_VERSION
    install_targets: list[str] = Field(default_factory=list, alias="installTargets")
    skills: list[Skill] = Field(default_factory=list)

    def find_skill(self, name: str) -> Skill | None:
        """Get a skill by name.

        Args:
            name: Skill name.

        Returns:
            Skill if found, None otherwise.
        """
        for skill in self.skills:
            if skill.name == name:
                return skill
        return None

    def validate_contents(self) -> None:
        """Check cross-entry invariants pydantic cannot express.

        Raises:
            ManifestError: On duplicate names or unknown source kinds.
        """
        seen: set[str] = set()
        for skill in self.skills:
            if not skill.name:
                raise ManifestError("skill name cannot be empty")
            if skill.name in seen:
                raise ManifestError(f"duplicate skill name '{skill.name}'")
            seen.add(skill.name)
            try:
                skill.to_source().validate(SOURCE_KINDS)
            except InvalidSourceError as e:
                raise ManifestError(f"skill '{skill.name}': {e}") from e


class ManifestManager:
    """Loads and saves the manifest file."""

    def __init__(self, path: Path | None = None) -> None:
        """Initialize the manifest manager.

        Args:
            path: Manifest file path. Defaults to ./.skillspkg.json.

        Note:
            Prefer using factory methods `create()` or `create_default()` for construction.
        """
        self.path = path or Path.cwd() / MANIFEST_FILENAME

    @classmethod
    def create(cls, path: Path) -> ManifestManager:
        """Create a manifest manager for a specific file."""
        return cls(path=path)

    @classmethod
    def create_default(cls) -> ManifestManager:
        """Create a manifest manager for ./.skillspkg.json."""
        return cls()

    def exists(self) -> bool:
        return self.path.exists()

    def initialize(self, install_targets: list[str] | None = None) -> Manifest:
        """Create a new manifest file.

        Args:
            install_targets: Initial install target directories.

        Returns:
            The created Manifest.

        Raises:
            ManifestExistsError: If the file already exists.
        """
        if self.exists():
            raise ManifestExistsError(f"manifest already exists: {self.path}")

        manifest = Manifest()
        for target in install_targets or []:
            if target not in manifest.install_targets:
                manifest.install_targets.append(target)
        self.save(manifest)
        logger.info("Initialized manifest at %s", self.path)
        return manifest

    def load(self) -> Manifest:
        """Load the manifest from disk.

        Returns:
            Parsed and validated Manifest.

        Raises:
            ManifestNotFoundError: If the file does not exist.
            ManifestError: If the file is not a valid manifest.
        """
        if not self.exists():
            raise ManifestNotFoundError(
                f"manifest not found: {self.path}. Run 'skills-pkg init' first"
            )

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            manifest = Manifest.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ManifestError(f"invalid manifest {self.path}: {e}") from e

        manifest.validate_contents()
        return manifest

    def save(self, manifest: Manifest) -> None:
        """Validate and write the manifest.

        Args:
            manifest: Manifest to save.

        Raises:
            ManifestError: If the manifest violates its invariants.
        """
        manifest.validate_contents()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = manifest.model_dump(by_alias=True, exclude_none=True)
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        logger.debug("Saved manifest with %d skill(s) to %s", len(manifest.skills), self.path)

    def add_skill(self, skill: Skill) -> None:
        """Append a skill to the manifest.

        Raises:
            SkillExistsError: If a skill with the same name exists.
            ManifestError: If the skill's source is invalid.
        """
        manifest = self.load()
        if manifest.find_skill(skill.name) is not None:
            raise SkillExistsError(f"skill '{skill.name}' already exists")
        manifest.skills.append(skill)
        self.save(manifest)

    def remove_skill(self, name: str) -> Skill:
        """Remove a skill from the manifest.

        Returns:
            The removed skill.

        Raises:
            SkillNotFoundError: If no skill has this name.
        """
        manifest = self.load()
        skill = manifest.find_skill(name)
        if skill is None:
            raise SkillNotFoundError([name])
        manifest.skills = [s for s in manifest.skills if s.name != name]
        self.save(manifest)
        return skill

    def add_install_target(self, target: str) -> bool:
        """Add an install target directory.

        Returns:
            True if added, False if it was already configured.
        """
        manifest = self.load()
        if target in manifest.install_targets:
            return False
        manifest.install_targets.append(target)
        self.save(manifest)
        return True

    def install_targets(self) -> list[Path]:
        """Return configured install targets with "~" expanded."""
        return resolve_targets(self.load().install_targets)


def resolve_targets(targets: list[str]) -> list[Path]:
    """Expand "~" in install target strings."""
    return [Path(target).expanduser() for target in targets]
