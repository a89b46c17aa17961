"""Filesystem abstraction for testability.

RealFileSystem wraps the standard library operations the orchestrator uses
to lay skills out in install targets; tests can swap in a double that fails
or records calls.
"""

from __future__ import annotations

import shutil
from pathlib import Path


class RealFileSystem:
    """Production filesystem implementation.

    Satisfies the FileSystem protocol structurally.
    """

    def exists(self, path: Path) -> bool:
        """Check if a path exists (a dangling symlink counts)."""
        return path.exists() or path.is_symlink()

    def is_dir(self, path: Path) -> bool:
        """Check if a path is a directory."""
        return path.is_dir()

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        path.mkdir(mode=0o755, parents=parents, exist_ok=exist_ok)

    def unlink(self, path: Path) -> None:
        """Remove a file."""
        path.unlink()

    def rmtree(self, path: Path) -> None:
        """Remove a directory tree."""
        shutil.rmtree(path)

    def copytree(self, src: Path, dst: Path) -> None:
        """Copy a directory tree."""
        shutil.copytree(src, dst)

    def remove(self, path: Path) -> bool:
        """Remove a file or directory tree if present."""
        if path.is_dir() and not path.is_symlink():
            self.rmtree(path)
            return True
        if self.exists(path):
            self.unlink(path)
            return True
        return False
