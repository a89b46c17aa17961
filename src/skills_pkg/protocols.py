"""Protocol definitions for core abstractions.

This module defines abstract interfaces (Protocols) for the core services.
Designing to interfaces enables:
- Loose coupling between the orchestrator and the source adapters
- Easy substitution of test doubles
- Clear contracts for implementations

All concrete implementations satisfy these protocols structurally (duck typing).
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from skills_pkg.types import IntegrityDigest, ResolvedDownload, Source


@runtime_checkable
class PackageManager(Protocol):
    """Protocol for source adapters.

    One implementation exists per source kind (git, npm, pip, cargo,
    go-module). An empty version or "latest" means "resolve for me".
    """

    @property
    def source_type(self) -> str:
        """Stable identifier used for dispatch and manifest persistence."""
        ...

    def download(self, source: Source, version: str = "") -> ResolvedDownload:
        """Resolve a version and download it into a private temp directory.

        Args:
            source: Where to fetch from.
            version: Requested version, "" or "latest" to resolve.

        Returns:
            ResolvedDownload owned by the caller.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If fetching fails.
            VersionNotFoundError: If the version does not exist.
        """
        ...

    def latest_version(self, source: Source) -> str:
        """Query the newest available version.

        Args:
            source: Where to look.

        Returns:
            Version string.

        Raises:
            InvalidSourceError: If the source is malformed.
            NetworkFailureError: If fetching fails.
        """
        ...


@runtime_checkable
class HashService(Protocol):
    """Protocol for directory digest computation."""

    @property
    def algorithm(self) -> str:
        """Name of the hash algorithm."""
        ...

    def calculate_hash(self, path: Path) -> IntegrityDigest:
        """Compute the digest of a directory tree.

        Args:
            path: Directory to hash.

        Returns:
            IntegrityDigest for the directory.

        Raises:
            FileNotFoundError: If path does not exist.
            NotADirectoryError: If path is a plain file.
        """
        ...


@runtime_checkable
class AgentProvider(Protocol):
    """Protocol for agent default-directory lookups."""

    @property
    def agent_name(self) -> str:
        """Agent identifier, e.g. "claude"."""
        ...

    def resolve_agent_dir(self) -> Path:
        """Return the default skills directory for this agent."""
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for filesystem operations used during installation.

    Abstracts filesystem access to enable testing without real I/O.
    """

    def exists(self, path: Path) -> bool:
        """Check if a path exists.

        Args:
            path: Path to check.

        Returns:
            True if path exists, False otherwise.
        """
        ...

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        ...

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory.

        Args:
            path: Path to create.
            parents: Create parent directories if needed.
            exist_ok: Don't raise if directory exists.
        """
        ...

    def unlink(self, path: Path) -> None:
        """Remove a file."""
        ...

    def rmtree(self, path: Path) -> None:
        """Remove a directory tree."""
        ...

    def copytree(self, src: Path, dst: Path) -> None:
        """Copy a directory tree.

        Args:
            src: Source directory.
            dst: Destination directory (must not exist).
        """
        ...

    def remove(self, path: Path) -> bool:
        """Remove a file or directory tree if present.

        Args:
            path: Path to remove.

        Returns:
            True if something was removed, False if nothing existed.
        """
        ...
