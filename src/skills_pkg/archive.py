"""Archive extraction with prefix stripping and path-traversal protection.

Registries wrap package contents in one top-level directory (npm uses
"package/", sdists use "<name>-<version>/", crates use "<name>-<version>/",
module zips use "<module>@<version>/"). Extraction strips that directory.

Every entry is checked before anything is written: if a single entry would
land outside the destination the whole archive is rejected.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO

from skills_pkg.errors import PathTraversalError, UnsupportedArchiveError

logger = logging.getLogger(__name__)

DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644


def resolve_entry_target(dest: Path, name: str) -> Path:
    """Join an archive entry name to the destination and check containment.

    Args:
        dest: Destination directory.
        name: Entry name with any wrapper prefix already stripped.

    Returns:
        Normalized absolute target path.

    Raises:
        PathTraversalError: If the target escapes dest.
    """
    root = os.path.normpath(os.path.abspath(dest))
    target = os.path.normpath(os.path.join(root, name))
    if target != root and not target.startswith(root + os.sep):
        raise PathTraversalError(name)
    return Path(target)


def strip_prefix(name: str, prefix: str) -> str:
    """Remove prefix from name when present, otherwise return name unchanged."""
    if prefix and name.startswith(prefix):
        return name[len(prefix):]
    return name


def extract_tar_gz(fileobj: BinaryIO, dest: Path) -> int:
    """Extract a gzip-compressed tarball into dest.

    The first path segment of the first entry is treated as a wrapper
    directory and stripped from every entry. Only regular files and
    directories are extracted.

    Args:
        fileobj: Seekable binary stream positioned at the start of the archive.
        dest: Existing, empty destination directory.

    Returns:
        Number of files written.

    Raises:
        PathTraversalError: If any entry escapes dest. Nothing is written.
        UnsupportedArchiveError: If the stream is not a gzip tarball.
    """
    try:
        with tarfile.open(fileobj=fileobj, mode="r:gz") as tar:
            members = tar.getmembers()
            plan = _plan_tar(members, dest)
            written = 0
            for member, target in plan:
                if member.isdir():
                    target.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
                    continue
                source = tar.extractfile(member)
                if source is None:
                    continue
                target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
                with source, target.open("wb") as out:
                    shutil.copyfileobj(source, out)
                os.chmod(target, _file_mode(member.mode))
                written += 1
    except (tarfile.TarError, EOFError, gzip.BadGzipFile, zlib.error) as e:
        raise UnsupportedArchiveError(f"failed to read gzip tarball: {e}") from e

    logger.debug("Extracted %d file(s) into %s", written, dest)
    return written


def _plan_tar(
    members: list[tarfile.TarInfo], dest: Path
) -> list[tuple[tarfile.TarInfo, Path]]:
    """Validate every member and map it to its target path."""
    prefix = ""
    plan: list[tuple[tarfile.TarInfo, Path]] = []
    for index, member in enumerate(members):
        if index == 0:
            prefix = member.name.split("/", 1)[0] + "/"

        # Directory entries carry no trailing slash, so the wrapper itself
        # does not match the prefix.
        if member.isdir() and member.name.rstrip("/") == prefix.rstrip("/"):
            continue
        name = strip_prefix(member.name, prefix)
        if not name or name == "/":
            continue

        target = resolve_entry_target(dest, name)
        if member.isdir() or member.isreg():
            plan.append((member, target))
        else:
            logger.debug("Skipping non-regular archive entry %s", member.name)
    return plan


def extract_zip(archive_path: Path, dest: Path, prefix: str) -> int:
    """Extract a zip file whose entries live under prefix.

    Entries without the prefix are skipped.

    Args:
        archive_path: Path to the zip file.
        dest: Existing destination directory.
        prefix: Wrapper directory including the trailing slash.

    Returns:
        Number of files written.

    Raises:
        PathTraversalError: If any entry escapes dest. Nothing is written.
        UnsupportedArchiveError: If the file is not a valid zip.
    """
    try:
        with zipfile.ZipFile(archive_path) as zf:
            plan: list[tuple[zipfile.ZipInfo, Path]] = []
            for info in zf.infolist():
                if not info.filename.startswith(prefix):
                    continue
                name = strip_prefix(info.filename, prefix)
                if not name:
                    continue
                plan.append((info, resolve_entry_target(dest, name)))

            written = 0
            for info, target in plan:
                if info.is_dir():
                    target.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
                with zf.open(info) as source, target.open("wb") as out:
                    shutil.copyfileobj(source, out)
                mode = (info.external_attr >> 16) & 0o777
                os.chmod(target, _file_mode(mode))
                written += 1
    except zipfile.BadZipFile as e:
        raise UnsupportedArchiveError(f"failed to read zip file: {e}") from e

    logger.debug("Extracted %d file(s) into %s", written, dest)
    return written


def _file_mode(mode: int) -> int:
    mode &= 0o777
    if not mode:
        return DEFAULT_FILE_MODE
    return mode | 0o600
