"""Semantic version parsing and ordering for tag selection.

Accepts an optional leading "v" and the Go shorthands "v1" and "v1.2"
(read as v1.0.0 and v1.2.0). Build metadata is parsed but ignored for
ordering, as semver precedence requires.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from typing import Iterable

_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"(?:\.(?P<minor>0|[1-9]\d*)"
    r"(?:\.(?P<patch>0|[1-9]\d*))?)?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """A parsed semantic version."""

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: str = ""

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def _key(self) -> tuple:
        # A release sorts after every prerelease of the same core version.
        pre = tuple(_identifier_key(p) for p in self.prerelease)
        return (self.major, self.minor, self.patch, not self.prerelease, pre)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    # Numeric identifiers sort before alphanumeric ones.
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


def parse(value: str) -> Version | None:
    """Parse a version string, returning None when it is not valid semver."""
    match = _SEMVER_RE.match(value.strip())
    if not match:
        return None
    prerelease = match.group("prerelease")
    if prerelease and any(
        part.isdigit() and len(part) > 1 and part.startswith("0")
        for part in prerelease.split(".")
    ):
        return None
    return Version(
        major=int(match.group("major")),
        minor=int(match.group("minor") or 0),
        patch=int(match.group("patch") or 0),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
        build=match.group("build") or "",
    )


def is_valid(value: str) -> bool:
    """Return True if value parses as a semantic version."""
    return parse(value) is not None


def select_latest(tags: Iterable[str]) -> str | None:
    """Pick the newest tag, preferring releases over prereleases.

    Tags that are not valid semantic versions are ignored.

    Args:
        tags: Candidate tag names.

    Returns:
        The highest release tag, else the highest prerelease tag, else None.
    """
    releases: list[tuple[Version, str]] = []
    prereleases: list[tuple[Version, str]] = []
    for tag in tags:
        version = parse(tag)
        if version is None:
            continue
        bucket = prereleases if version.is_prerelease else releases
        bucket.append((version, tag))

    pool = releases or prereleases
    if not pool:
        return None
    return max(pool, key=lambda item: item[0])[1]
