"""Semantic version model and bump rules.

Versions wrap ``semver.Version`` and keep build metadata alongside the
"bare" version, since Cargo compares and publishes by the bare version while
manifests may carry ``+metadata``.
"""

import functools
from dataclasses import dataclass
from enum import Enum

import semver

from crate_release.exceptions import (
    InvalidReleaseLevelError,
    UnsupportedPrereleaseVersionSchemeError,
    UnsupportedVersionReqError,
)

VERSION_ALPHA = "alpha"
VERSION_BETA = "beta"
VERSION_RC = "rc"

# Later entries outrank earlier ones; a bump may never move backwards.
PRERELEASE_ORDER = (VERSION_ALPHA, VERSION_BETA, VERSION_RC)


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A crate version with its build metadata."""

    full: semver.Version

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a full semantic version.

        Raises:
            ValueError: If ``text`` is not a semantic version
        """
        return cls(semver.Version.parse(text.strip()))

    @classmethod
    def from_semver(cls, version: semver.Version) -> "Version":
        return cls(version)

    @property
    def bare(self) -> semver.Version:
        return self.full.replace(build=None)

    @property
    def full_string(self) -> str:
        return str(self.full)

    @property
    def bare_string(self) -> str:
        return str(self.bare)

    @property
    def build(self) -> str:
        return self.full.build or ""

    @property
    def is_prerelease(self) -> bool:
        return bool(self.full.prerelease)

    def next_dev(self, ext: str) -> "Version":
        """Next patch version tagged with the development prerelease ``ext``."""
        bumped = self.full.bump_patch()
        return Version.from_semver(bumped.replace(prerelease=ext or None, build=None))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.full_string == other.full_string

    def __hash__(self) -> int:
        return hash(self.full_string)

    def __lt__(self, other: "Version") -> bool:
        return self.full.compare(other.full) < 0

    def __str__(self) -> str:
        return self.full_string


def _prerelease_parts(version: semver.Version) -> tuple[str, int | None] | None:
    """Split ``alpha.3`` into ``("alpha", 3)``; ``None`` for a stable version."""
    pre = version.prerelease
    if not pre:
        return None
    if "." not in pre:
        return pre, None
    ident, number = pre.split(".", 1)
    if not number.isdigit():
        raise UnsupportedPrereleaseVersionSchemeError(pre)
    return ident, int(number)


def _bump_prerelease(version: semver.Version, target: str) -> semver.Version:
    parts = _prerelease_parts(version)
    if parts is None:
        return version.bump_patch().replace(prerelease=f"{target}.1")

    ident, number = parts
    if ident == target:
        return version.replace(prerelease=f"{target}.{(number or 0) + 1}", build=None)
    if ident in PRERELEASE_ORDER and PRERELEASE_ORDER.index(
        ident
    ) > PRERELEASE_ORDER.index(target):
        raise InvalidReleaseLevelError(
            target, details=f"cannot move from {ident} back to {target}"
        )
    return version.replace(prerelease=f"{target}.1", build=None)


class BumpLevel(str, Enum):
    """Relative version bumps accepted on the command line."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    RELEASE = "release"
    RC = "rc"
    BETA = "beta"
    ALPHA = "alpha"

    def bump(self, version: semver.Version, metadata: str | None = None) -> semver.Version:
        """Apply this level to ``version``.

        Raises:
            InvalidReleaseLevelError: If a prerelease bump would go backwards
            UnsupportedPrereleaseVersionSchemeError: If the prerelease is not
                ``<id>`` or ``<id>.<number>``
        """
        if self is BumpLevel.MAJOR:
            bumped = version.bump_major()
        elif self is BumpLevel.MINOR:
            bumped = version.bump_minor()
        elif self is BumpLevel.PATCH:
            if version.prerelease:
                bumped = version.replace(prerelease=None, build=None)
            else:
                bumped = version.bump_patch()
        elif self is BumpLevel.RELEASE:
            if version.prerelease:
                bumped = version.replace(prerelease=None, build=None)
            else:
                bumped = version
        else:
            bumped = _bump_prerelease(version, self.value)

        if metadata is not None:
            bumped = bumped.replace(build=metadata or None)
        return bumped


@dataclass(frozen=True)
class TargetVersion:
    """Either a relative bump level or an absolute version."""

    level: BumpLevel | None = None
    absolute: Version | None = None

    @classmethod
    def parse(cls, text: str) -> "TargetVersion":
        """Parse a level keyword or an explicit version.

        Raises:
            InvalidReleaseLevelError: If ``text`` is neither
        """
        try:
            return cls(level=BumpLevel(text.lower()))
        except ValueError:
            pass
        try:
            return cls(absolute=Version.parse(text))
        except ValueError:
            raise InvalidReleaseLevelError(text) from None

    def bump(self, current: Version, metadata: str | None = None) -> Version | None:
        """Compute the next version, or ``None`` when nothing would change.

        Raises:
            UnsupportedVersionReqError: If an absolute version is lower than
                ``current``
        """
        if self.absolute is not None:
            if current < self.absolute:
                return self.absolute
            if current.full.compare(self.absolute.full) == 0:
                return None
            raise UnsupportedVersionReqError(
                "Cannot release version smaller than current one",
                details=f"{self.absolute} < {current}",
            )

        assert self.level is not None
        bumped = Version.from_semver(self.level.bump(current.full, metadata))
        if bumped == current:
            return None
        return bumped

    def __str__(self) -> str:
        if self.absolute is not None:
            return str(self.absolute)
        return self.level.value if self.level else ""
