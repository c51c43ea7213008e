"""Version parsing and version-range matching.

Module versions are strict semantic versions (MAJOR.MINOR.PATCH with optional
pre-release and build suffixes). A leading "v" is tolerated since git tags for
Terraform modules are usually written that way.

Version ranges in the policy table use one of these forms:

    1.2.x / 1.2.*   every patch release of the 1.2 line
    1.x / 1.*       every release of the 1 line
    1.2             same as 1.2.x
    1.2.3           exactly that release
    <1.0            everything below 1.0.0
    *               every version
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from semantic_version import Version

from .exceptions import InvalidVersionError

_PREFIX_PATTERN = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.[xX*])?$")
_BELOW_PATTERN = re.compile(r"^<\s*(\d+)(?:\.(\d+))?(?:\.(\d+))?$")
_WILDCARDS = {"*", "x", "X"}

RANGE_ANY = "any"
RANGE_PREFIX = "prefix"
RANGE_BELOW = "below"


def parse_version(version: str) -> Version:
    """
    Parse a module version string.

    Args:
        version: Version string such as "1.2.0" or "v1.2.0-rc.1"

    Returns:
        Parsed semantic version

    Raises:
        InvalidVersionError: If the string is not MAJOR.MINOR.PATCH
    """
    if not isinstance(version, str) or not version.strip():
        raise InvalidVersionError(str(version), "version is empty")

    candidate = version.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]

    try:
        return Version(candidate)
    except ValueError as e:
        raise InvalidVersionError(version, str(e)) from e


@dataclass(frozen=True)
class VersionRange:
    """A version range pattern from the policy table."""

    kind: str
    components: Tuple[int, ...] = ()
    pattern: str = ""

    @classmethod
    def parse(cls, pattern: str) -> "VersionRange":
        """
        Parse a range pattern.

        Raises:
            ValueError: If the pattern is not a supported range form
        """
        text = (pattern or "").strip()
        if text in _WILDCARDS:
            return cls(kind=RANGE_ANY, pattern="*")

        below = _BELOW_PATTERN.match(text)
        if below:
            parts = [int(p) if p is not None else 0 for p in below.groups()]
            return cls(kind=RANGE_BELOW, components=tuple(parts), pattern=text.replace(" ", ""))

        prefix = _PREFIX_PATTERN.match(text)
        if prefix:
            parts = tuple(int(p) for p in prefix.groups() if p is not None)
            # A trailing wildcard after a full MAJOR.MINOR.PATCH is meaningless
            if len(parts) == 3 and text[-1] in _WILDCARDS:
                raise ValueError(f"Invalid version range: {pattern!r}")
            return cls(kind=RANGE_PREFIX, components=parts, pattern=text)

        raise ValueError(f"Invalid version range: {pattern!r}")

    @property
    def normalized(self) -> str:
        """Canonical spelling used for duplicate detection and display."""
        if self.kind == RANGE_ANY:
            return "*"
        if self.kind == RANGE_BELOW:
            return "<" + ".".join(str(c) for c in self.components)
        if len(self.components) == 3:
            return ".".join(str(c) for c in self.components)
        return ".".join(str(c) for c in self.components) + ".x"

    @property
    def specificity(self) -> Tuple[int, Tuple[int, ...]]:
        """Sort key; a larger key wins when several ranges match."""
        if self.kind == RANGE_PREFIX:
            return (2, (len(self.components),))
        if self.kind == RANGE_BELOW:
            # Tighter upper bounds are more specific
            return (1, tuple(-c for c in self.components))
        return (0, ())

    @property
    def recency_key(self) -> Tuple[int, ...]:
        """Sort key ordering ranges from oldest to newest release line."""
        if self.kind == RANGE_PREFIX:
            return tuple(self.components) + (0,) * (3 - len(self.components))
        if self.kind == RANGE_BELOW:
            return (-1, -1, -1)
        return (-2, -2, -2)

    @property
    def upper_bound(self) -> Optional[Tuple[int, int, int]]:
        if self.kind != RANGE_BELOW:
            return None
        return (self.components[0], self.components[1], self.components[2])

    def matches(self, version: Version) -> bool:
        """Whether a parsed version falls in this range."""
        release = (version.major, version.minor, version.patch)
        if self.kind == RANGE_ANY:
            return True
        if self.kind == RANGE_BELOW:
            return release < self.upper_bound
        return release[: len(self.components)] == self.components

    def __str__(self) -> str:
        return self.pattern or self.normalized
