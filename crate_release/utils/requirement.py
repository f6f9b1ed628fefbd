"""Cargo version requirements.

Parses requirement strings such as ``^1.2``, ``~0.3.1``, ``=2.0.0`` and
``1.*`` into comparators so dependents can be checked against, and moved
to, a newly released version.
"""

import re
from dataclasses import dataclass, replace

import semver

from crate_release.exceptions import InvalidManifestError, UnsupportedVersionReqError

_COMPARATOR = re.compile(
    r"""
    ^(?P<op>=|>=|>|<=|<|~|\^)?\s*
    (?P<major>\d+|\*|x|X)
    (?:\.(?P<minor>\d+|\*|x|X))?
    (?:\.(?P<patch>\d+|\*|x|X))?
    (?:-(?P<pre>[0-9A-Za-z.-]+))?
    (?:\+[0-9A-Za-z.-]+)?$
    """,
    re.VERBOSE,
)

_WILDCARDS = {"*", "x", "X"}

WILDCARD = "*"


@dataclass(frozen=True)
class Comparator:
    op: str
    major: int | None
    minor: int | None = None
    patch: int | None = None
    pre: str = ""

    def __str__(self) -> str:
        if self.op == WILDCARD:
            if self.major is None:
                return "*"
            if self.minor is None:
                return f"{self.major}.*"
            return f"{self.major}.{self.minor}.*"
        text = f"{self.op}{self.major}"
        if self.minor is not None:
            text += f".{self.minor}"
            if self.patch is not None:
                text += f".{self.patch}"
                if self.pre:
                    text += f"-{self.pre}"
        return text

    def matches(self, version: semver.Version) -> bool:
        if self.op == WILDCARD:
            return self._matches_prefix(version)
        if self.op == "=":
            return self._matches_exact(version)
        if self.op == ">":
            return self._greater(version)
        if self.op == ">=":
            return self._matches_exact(version) or self._greater(version)
        if self.op == "<":
            return self._less(version)
        if self.op == "<=":
            return self._matches_exact(version) or self._less(version)
        if self.op == "~":
            return self._matches_tilde(version)
        return self._matches_caret(version)

    def _matches_prefix(self, version: semver.Version) -> bool:
        if self.major is None:
            return True
        if version.major != self.major:
            return False
        return self.minor is None or version.minor == self.minor

    def _matches_exact(self, version: semver.Version) -> bool:
        if not self._matches_prefix(version):
            return False
        if self.patch is not None and version.patch != self.patch:
            return False
        return self.patch is None or (version.prerelease or "") == self.pre

    def _lower_bound(self) -> semver.Version:
        return semver.Version(
            self.major or 0, self.minor or 0, self.patch or 0, prerelease=self.pre or None
        )

    def _greater(self, version: semver.Version) -> bool:
        if version.major != self.major:
            return version.major > (self.major or 0)
        if self.minor is None:
            return False
        if version.minor != self.minor:
            return version.minor > self.minor
        if self.patch is None:
            return False
        return version.replace(build=None).compare(self._lower_bound()) > 0

    def _less(self, version: semver.Version) -> bool:
        if version.major != self.major:
            return version.major < (self.major or 0)
        if self.minor is None:
            return False
        if version.minor != self.minor:
            return version.minor < self.minor
        if self.patch is None:
            return False
        return version.replace(build=None).compare(self._lower_bound()) < 0

    def _at_least(self, version: semver.Version) -> bool:
        return version.replace(build=None).compare(self._lower_bound()) >= 0

    def _matches_tilde(self, version: semver.Version) -> bool:
        if not self._matches_prefix(version):
            return False
        return self.patch is None or self._at_least(version)

    def _matches_caret(self, version: semver.Version) -> bool:
        if version.major != self.major:
            return False
        if self.minor is None:
            return True
        if self.patch is None:
            if self.major > 0:
                return version.minor >= self.minor
            return version.minor == self.minor
        if self.major > 0:
            return version.minor > self.minor or (
                version.minor == self.minor and self._at_least(version)
            )
        if self.minor > 0:
            return version.minor == self.minor and self._at_least(version)
        return version.minor == 0 and version.patch == self.patch and self._at_least(version)


def _parse_part(text: str | None) -> tuple[int | None, bool]:
    if text is None:
        return None, False
    if text in _WILDCARDS:
        return None, True
    return int(text), False


def parse_requirement(req: str) -> list[Comparator]:
    """Parse a requirement into comparators; ``[]`` means any version.

    Raises:
        InvalidManifestError: If the requirement is malformed
    """
    text = req.strip()
    if not text or text == "*":
        return []

    comparators = []
    for raw in text.split(","):
        match = _COMPARATOR.match(raw.strip())
        if match is None:
            raise InvalidManifestError(
                f"Invalid version requirement `{req}`",
                details=f"unable to parse `{raw.strip()}`",
            )
        major, major_wild = _parse_part(match["major"])
        minor, minor_wild = _parse_part(match["minor"])
        patch, patch_wild = _parse_part(match["patch"])
        if major_wild or minor_wild or patch_wild:
            if match["op"] not in (None, "="):
                raise InvalidManifestError(
                    f"Invalid version requirement `{req}`",
                    details="wildcards cannot be combined with a comparison operator",
                )
            comparators.append(Comparator(WILDCARD, major, minor))
            continue
        comparators.append(
            Comparator(match["op"] or "^", major, minor, patch, match["pre"] or "")
        )
    return comparators


def format_requirement(comparators: list[Comparator]) -> str:
    if not comparators:
        return "*"
    return ", ".join(str(c) for c in comparators)


def matches(req: str, version: semver.Version) -> bool:
    """Whether ``version`` satisfies ``req`` under Cargo's rules.

    A prerelease only matches when a comparator names a prerelease of the
    same major.minor.patch.
    """
    comparators = parse_requirement(req)
    if not all(c.matches(version) for c in comparators):
        return False
    if not version.prerelease:
        return True
    return any(
        c.pre
        and (c.major, c.minor, c.patch) == (version.major, version.minor, version.patch)
        for c in comparators
    )


def _upgrade_comparator(comparator: Comparator, version: semver.Version) -> Comparator:
    if comparator.op in (">", ">=", "<", "<="):
        raise UnsupportedVersionReqError(
            "Support for modifying "
            f"{comparator} is currently unsupported",
            fix_hint="Set `dependent-version` to `fix`, `warn` or `ignore`",
        )
    upgraded = replace(
        comparator,
        major=version.major,
        minor=version.minor if comparator.minor is not None else None,
        patch=version.patch if comparator.patch is not None else None,
    )
    if comparator.op != WILDCARD:
        upgraded = replace(upgraded, pre=version.prerelease or "")
    return upgraded


def upgrade_requirement(req: str, version: semver.Version) -> str | None:
    """Rewrite ``req`` to point at ``version``, keeping operator and precision.

    Returns:
        The new requirement, or None when it would not change

    Raises:
        UnsupportedVersionReqError: For ``>``, ``>=``, ``<`` and ``<=``
    """
    comparators = parse_requirement(req)
    if not comparators:
        return None

    new_text = format_requirement([_upgrade_comparator(c, version) for c in comparators])
    if new_text.startswith("^") and not req.strip().startswith("^"):
        new_text = new_text[1:]
    if new_text == req.strip():
        return None
    return new_text
