"""Data models for the module support policy.

The policy table is a list of SupportEntry rows. Each row maps a version
range to a SupportTier and an optional end-of-life date. Resolving a version
against the table yields a SupportResult carrying the effective tier and the
PatchPolicy that tier grants.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from semantic_version import Version

from .versions import VersionRange

DEFAULT_CRITICAL_CVSS_THRESHOLD = 8.0
DEFAULT_EOL_WARNING_DAYS = 90

CVSS_MIN = 0.0
CVSS_MAX = 10.0


class SupportTier(str, Enum):
    """Level of maintenance commitment for a version line.

    Declaration order is the lifecycle order: a version line only ever moves
    towards NO_SUPPORT.
    """

    ACTIVE_SUPPORT = "active-support"
    SECURITY_FIXES_ONLY = "security-fixes-only"
    CRITICAL_FIXES_ONLY = "critical-fixes-only"
    NO_SUPPORT = "no-support"

    @property
    def rank(self) -> int:
        """Commitment level, 3 for active support down to 0 for no support."""
        return len(_TIER_ORDER) - 1 - _TIER_ORDER.index(self)

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "SupportTier":
        """
        Parse a tier from its serialized name or a display-style spelling.

        Accepts "security-fixes-only", "SecurityFixesOnly" and
        "security_fixes_only" alike.

        Raises:
            ValueError: If the value names no tier
        """
        normalized = "".join(ch for ch in value.lower() if ch.isalnum())
        for tier in cls:
            if normalized == tier.value.replace("-", ""):
                return tier
        raise ValueError(f"Unknown support tier: {value!r}")

    def __str__(self) -> str:
        return self.value


_TIER_ORDER = [
    SupportTier.ACTIVE_SUPPORT,
    SupportTier.SECURITY_FIXES_ONLY,
    SupportTier.CRITICAL_FIXES_ONLY,
    SupportTier.NO_SUPPORT,
]

_TIER_LABELS = {
    SupportTier.ACTIVE_SUPPORT: "Active support",
    SupportTier.SECURITY_FIXES_ONLY: "Security fixes only",
    SupportTier.CRITICAL_FIXES_ONLY: "Critical fixes only",
    SupportTier.NO_SUPPORT: "No support",
}


def cvss_severity(score: float) -> str:
    """
    Map a CVSS v3.x base score to its qualitative severity rating.

    Args:
        score: CVSS score between 0.0 and 10.0

    Returns:
        One of "none", "low", "medium", "high", "critical"
    """
    if score == 0.0:
        return "none"
    if score < 4.0:
        return "low"
    if score < 7.0:
        return "medium"
    if score < 9.0:
        return "high"
    return "critical"


@dataclass(frozen=True)
class PatchPolicy:
    """Which classes of change a support tier receives."""

    feature_updates: bool
    bug_fixes: bool
    security_fixes: bool
    minimum_cvss: Optional[float] = None

    @classmethod
    def for_tier(cls, tier: SupportTier, critical_cvss_threshold: float = DEFAULT_CRITICAL_CVSS_THRESHOLD) -> "PatchPolicy":
        if tier == SupportTier.ACTIVE_SUPPORT:
            return cls(feature_updates=True, bug_fixes=True, security_fixes=True, minimum_cvss=CVSS_MIN)
        if tier == SupportTier.SECURITY_FIXES_ONLY:
            return cls(feature_updates=False, bug_fixes=False, security_fixes=True, minimum_cvss=CVSS_MIN)
        if tier == SupportTier.CRITICAL_FIXES_ONLY:
            return cls(
                feature_updates=False,
                bug_fixes=False,
                security_fixes=True,
                minimum_cvss=critical_cvss_threshold,
            )
        return cls(feature_updates=False, bug_fixes=False, security_fixes=False, minimum_cvss=None)

    def covers(self, cvss: float) -> bool:
        """Whether a vulnerability with the given CVSS score is serviced."""
        if not self.security_fixes or self.minimum_cvss is None:
            return False
        return cvss >= self.minimum_cvss

    @property
    def serviced_severities(self) -> List[str]:
        """Severity ratings with at least one serviced score."""
        if not self.security_fixes or self.minimum_cvss is None:
            return []
        bands = [("none", 0.0), ("low", 3.9), ("medium", 6.9), ("high", 8.9), ("critical", 10.0)]
        # A band is serviced when its upper bound reaches the minimum score
        return [name for name, upper in bands if upper >= self.minimum_cvss and name != "none"]

    def describe(self) -> str:
        if not self.security_fixes:
            return "No fixes"
        if self.feature_updates and self.bug_fixes:
            return "Features, bug fixes and all security fixes"
        if self.minimum_cvss:
            return f"Security fixes with CVSS >= {self.minimum_cvss:.1f}"
        return "All security fixes"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["serviced_severities"] = self.serviced_severities
        return data


@dataclass(frozen=True)
class SupportEntry:
    """One row of the version-support table."""

    version_range: VersionRange
    tier: SupportTier
    end_of_life: Optional[date] = None
    notes: Optional[str] = None

    def effective_tier(self, as_of: date) -> SupportTier:
        """Tier on a given date; reaching end-of-life ends all support."""
        if self.end_of_life is not None and as_of >= self.end_of_life:
            return SupportTier.NO_SUPPORT
        return self.tier


@dataclass(frozen=True)
class TierTransition:
    """A point in time where a version line enters a tier."""

    tier: SupportTier
    effective_from: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "effective_from": self.effective_from.isoformat() if self.effective_from else None,
        }


@dataclass(frozen=True)
class SupportResult:
    """Outcome of resolving a version against the support policy."""

    version: str
    matched_range: str
    tier: SupportTier
    nominal_tier: SupportTier
    patch_policy: PatchPolicy
    as_of: date
    end_of_life: Optional[date] = None
    days_until_end_of_life: Optional[int] = None
    end_of_life_approaching: bool = False

    @property
    def is_supported(self) -> bool:
        return self.tier != SupportTier.NO_SUPPORT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "matched_range": self.matched_range,
            "tier": self.tier.value,
            "nominal_tier": self.nominal_tier.value,
            "patch_policy": self.patch_policy.to_dict(),
            "as_of": self.as_of.isoformat(),
            "end_of_life": self.end_of_life.isoformat() if self.end_of_life else None,
            "days_until_end_of_life": self.days_until_end_of_life,
            "end_of_life_approaching": self.end_of_life_approaching,
        }


@dataclass(frozen=True)
class SupportPolicy:
    """Immutable support policy table.

    Entries are held most-specific first so the first matching entry is the
    one that applies.
    """

    entries: Tuple[SupportEntry, ...]
    critical_cvss_threshold: float = DEFAULT_CRITICAL_CVSS_THRESHOLD
    eol_warning_days: int = DEFAULT_EOL_WARNING_DAYS
    source: str = "builtin"
    by_recency: Tuple[SupportEntry, ...] = field(default=(), compare=False, repr=False)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.entries, key=lambda entry: entry.version_range.specificity, reverse=True))
        object.__setattr__(self, "entries", ordered)
        recency = tuple(sorted(self.entries, key=lambda entry: entry.version_range.recency_key, reverse=True))
        object.__setattr__(self, "by_recency", recency)

    def find_entry(self, version: Version) -> Optional[SupportEntry]:
        """Return the most specific entry matching a parsed version."""
        for entry in self.entries:
            if entry.version_range.matches(version):
                return entry
        return None
