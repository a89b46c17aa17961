"""File-level diffs between an installed skill and a candidate download."""

from __future__ import annotations

from difflib import unified_diff
from pathlib import Path

from skills_pkg.types import FileDiff

ADDED = "added"
REMOVED = "removed"
MODIFIED = "modified"


def _collect_files(root: Path | None) -> dict[str, Path]:
    if root is None or not root.is_dir():
        return {}
    return {
        path.relative_to(root).as_posix(): path
        for path in root.rglob("*")
        if path.is_file()
    }


def _text_lines(raw: bytes) -> list[str] | None:
    """Return lines for textual diffing; None for binary-like data."""
    if b"\x00" in raw:
        return None
    try:
        return raw.decode("utf-8").splitlines(keepends=True)
    except UnicodeDecodeError:
        return None


def line_patch(rel: str, before: bytes, after: bytes) -> str:
    """Unified diff of two file contents, or "" when either side is binary."""
    before_lines = _text_lines(before)
    after_lines = _text_lines(after)
    if before_lines is None or after_lines is None:
        return ""
    return "".join(
        unified_diff(before_lines, after_lines, fromfile=f"a/{rel}", tofile=f"b/{rel}")
    )


def compute_file_diffs(old_dir: Path | None, new_dir: Path) -> list[FileDiff]:
    """Compare two directory trees file by file.

    A missing old_dir means every file in new_dir is reported as added.

    Args:
        old_dir: Currently installed copy, or None.
        new_dir: Candidate content.

    Returns:
        Diffs sorted by path. Unchanged files are omitted.
    """
    old_files = _collect_files(old_dir)
    new_files = _collect_files(new_dir)

    diffs: list[FileDiff] = []
    for rel, old_path in old_files.items():
        new_path = new_files.get(rel)
        if new_path is None:
            diffs.append(FileDiff(path=rel, status=REMOVED))
            continue
        before = old_path.read_bytes()
        after = new_path.read_bytes()
        if before != after:
            diffs.append(FileDiff(path=rel, status=MODIFIED, patch=line_patch(rel, before, after)))

    for rel in new_files.keys() - old_files.keys():
        diffs.append(FileDiff(path=rel, status=ADDED))

    diffs.sort(key=lambda d: d.path)
    return diffs
