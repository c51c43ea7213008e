"""Version support resolution.

Given a module version and a date, find the policy entry covering the version
and work out which support tier applies on that date. The policy is immutable
and resolution has no side effects, so these functions are safe to call from
any number of threads.

Usage:
    from datetime import date
    from support_policy.resolver import resolve_support

    result = resolve_support("1.1.4", date(2025, 6, 1))
    print(result.tier)  # security-fixes-only
"""

from datetime import date
from typing import List, Optional

from .exceptions import InvalidInputError, UnknownVersionError
from .loader import load_policy
from .logging_config import logger
from .models import (
    CVSS_MAX,
    CVSS_MIN,
    PatchPolicy,
    SupportEntry,
    SupportPolicy,
    SupportResult,
    SupportTier,
    TierTransition,
)
from .versions import parse_version


def _policy_or_default(policy: Optional[SupportPolicy]) -> SupportPolicy:
    return policy if policy is not None else load_policy()


def parse_as_of(value: Optional[str]) -> Optional[date]:
    """
    Parse an --as-of style date string.

    Args:
        value: ISO 8601 date (YYYY-MM-DD) or None

    Returns:
        Parsed date, or None when no value was given

    Raises:
        InvalidInputError: If the value is not a valid date
    """
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise InvalidInputError(f"Invalid date '{value}': expected YYYY-MM-DD") from e


def validate_cvss(score: float) -> float:
    """
    Check that a CVSS score lies in 0.0-10.0.

    Raises:
        InvalidInputError: If the score is out of range or not a number
    """
    try:
        value = float(score)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid CVSS score '{score}': expected a number") from e
    if not CVSS_MIN <= value <= CVSS_MAX:
        raise InvalidInputError(f"Invalid CVSS score {value}: must be between {CVSS_MIN} and {CVSS_MAX}")
    return value


def find_entry(version: str, policy: Optional[SupportPolicy] = None) -> SupportEntry:
    """
    Find the most specific policy entry covering a version.

    Raises:
        InvalidVersionError: If the version string is malformed
        UnknownVersionError: If no entry covers the version
    """
    policy = _policy_or_default(policy)
    parsed = parse_version(version)
    entry = policy.find_entry(parsed)
    if entry is None:
        raise UnknownVersionError(version)
    return entry


def _result_for_entry(version: str, entry: SupportEntry, as_of: date, policy: SupportPolicy) -> SupportResult:
    tier = entry.effective_tier(as_of)

    days_left = None
    approaching = False
    if entry.end_of_life is not None:
        days_left = (entry.end_of_life - as_of).days
        approaching = tier != SupportTier.NO_SUPPORT and days_left <= policy.eol_warning_days

    return SupportResult(
        version=version,
        matched_range=str(entry.version_range),
        tier=tier,
        nominal_tier=entry.tier,
        patch_policy=PatchPolicy.for_tier(tier, policy.critical_cvss_threshold),
        as_of=as_of,
        end_of_life=entry.end_of_life,
        days_until_end_of_life=days_left,
        end_of_life_approaching=approaching,
    )


def resolve_support(version: str, as_of: date, policy: Optional[SupportPolicy] = None) -> SupportResult:
    """
    Resolve the support tier of a module version on a given date.

    Args:
        version: Module version (MAJOR.MINOR.PATCH, optional leading "v")
        as_of: Evaluation date
        policy: Policy to resolve against (default: built-in policy)

    Returns:
        SupportResult with the effective tier and its patch policy

    Raises:
        InvalidVersionError: If the version string is malformed
        UnknownVersionError: If no entry covers the version
    """
    policy = _policy_or_default(policy)
    entry = find_entry(version, policy)
    result = _result_for_entry(version, entry, as_of, policy)
    logger.debug(f"Resolved {version} as of {as_of.isoformat()} via '{entry.version_range}': {result.tier.value}")
    return result


def support_timeline(version: str, policy: Optional[SupportPolicy] = None) -> List[TierTransition]:
    """
    List the tier changes a version line goes through over time.

    The first transition has no start date (the tier applies from the start of
    the table); an end-of-life date adds a final move to no support.
    """
    entry = find_entry(version, policy)
    transitions = [TierTransition(tier=entry.tier)]
    if entry.end_of_life is not None and entry.tier != SupportTier.NO_SUPPORT:
        transitions.append(TierTransition(tier=SupportTier.NO_SUPPORT, effective_from=entry.end_of_life))
    return transitions


def is_fix_serviced(version: str, cvss: float, as_of: date, policy: Optional[SupportPolicy] = None) -> bool:
    """
    Whether a vulnerability with the given CVSS score gets a fix for a version.

    Raises:
        InvalidInputError: If the CVSS score is not within 0.0-10.0
        InvalidVersionError: If the version string is malformed
        UnknownVersionError: If no entry covers the version
    """
    score = validate_cvss(cvss)
    result = resolve_support(version, as_of, policy)
    return result.patch_policy.covers(score)


def resolve_all(as_of: date, policy: Optional[SupportPolicy] = None) -> List[SupportResult]:
    """Evaluate every policy entry on a date, newest release line first."""
    policy = _policy_or_default(policy)
    return [
        _result_for_entry(str(entry.version_range), entry, as_of, policy)
        for entry in policy.by_recency
    ]
