"""Directory hashing.

Implements the "h1" directory hash used by the Go checksum database: a
SHA-256 over a summary of per-file SHA-256 digests and relative paths. The
result is independent of filesystem iteration order, timestamps, and modes.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from pathlib import Path

from skills_pkg.errors import SkillsPkgError
from skills_pkg.types import IntegrityDigest

logger = logging.getLogger(__name__)

HASH_PREFIX = "h1:"
HASH_ALGORITHM = "sha256"

_CHUNK_SIZE = 1024 * 1024


class HashTargetNotFoundError(SkillsPkgError, FileNotFoundError):
    """Hash target does not exist."""

    pass


class NotADirectoryHashError(SkillsPkgError, NotADirectoryError):
    """Hash target exists but is not a directory."""

    pass


class DirhashService:
    """Computes deterministic digests over directory trees.

    Satisfies the HashService protocol structurally.
    """

    @property
    def algorithm(self) -> str:
        """Name of the underlying hash algorithm."""
        return HASH_ALGORITHM

    def calculate_hash(self, path: Path) -> IntegrityDigest:
        """Hash every file name and byte below a directory.

        Args:
            path: Directory to hash.

        Returns:
            IntegrityDigest whose value looks like "h1:<base64>".

        Raises:
            HashTargetNotFoundError: If path does not exist.
            NotADirectoryHashError: If path is a plain file.
        """
        path = Path(path)
        if not path.exists():
            raise HashTargetNotFoundError(f"directory does not exist: {path}")
        if not path.is_dir():
            raise NotADirectoryHashError(f"path is not a directory: {path}")

        files = sorted(
            (p.relative_to(path).as_posix(), p)
            for p in path.rglob("*")
            if p.is_file()
        )

        summary = hashlib.sha256()
        for rel, file_path in files:
            if "\n" in rel:
                raise SkillsPkgError(f"file name contains newline: {rel!r}")
            summary.update(f"{_file_sha256(file_path)}  {rel}\n".encode())

        value = HASH_PREFIX + base64.b64encode(summary.digest()).decode("ascii")
        logger.debug("Hashed %d file(s) under %s: %s", len(files), path, value)
        return IntegrityDigest(algorithm=HASH_ALGORITHM, value=value)


def _file_sha256(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
