"""Tests for version support resolution against the policy table."""

from datetime import date, timedelta

import pytest

from support_policy.exceptions import ErrorKind, InvalidInputError, InvalidVersionError, UnknownVersionError
from support_policy.loader import build_policy
from support_policy.models import SupportTier
from support_policy.resolver import (
    find_entry,
    is_fix_serviced,
    parse_as_of,
    resolve_all,
    resolve_support,
    support_timeline,
    validate_cvss,
)


class TestResolveSupportDefaultPolicy:
    """Behaviour of the built-in supported-versions table."""

    def test_current_line_is_actively_supported(self):
        result = resolve_support("1.2.0", date(2025, 1, 1))
        assert result.tier == SupportTier.ACTIVE_SUPPORT
        assert result.end_of_life is None
        assert result.days_until_end_of_life is None
        assert result.patch_policy.feature_updates

    def test_current_line_has_no_end_date(self):
        assert resolve_support("1.2.9", date(2040, 1, 1)).tier == SupportTier.ACTIVE_SUPPORT

    def test_previous_line_security_fixes_before_end_of_life(self):
        result = resolve_support("1.1.0", date(2025, 6, 1))
        assert result.tier == SupportTier.SECURITY_FIXES_ONLY
        assert result.end_of_life == date(2025, 12, 31)
        assert result.days_until_end_of_life == 213
        assert result.end_of_life_approaching is False

    def test_previous_line_after_end_of_life(self):
        result = resolve_support("1.1.0", date(2026, 1, 1))
        assert result.tier == SupportTier.NO_SUPPORT
        assert result.nominal_tier == SupportTier.SECURITY_FIXES_ONLY
        assert result.patch_policy.security_fixes is False
        assert result.is_supported is False

    def test_end_of_life_day_is_unsupported(self):
        assert resolve_support("1.1.3", date(2025, 12, 31)).tier == SupportTier.NO_SUPPORT

    def test_day_before_end_of_life_is_flagged(self):
        result = resolve_support("1.1.3", date(2025, 12, 30))
        assert result.tier == SupportTier.SECURITY_FIXES_ONLY
        assert result.days_until_end_of_life == 1
        assert result.end_of_life_approaching is True

    def test_oldest_line_critical_fixes_only(self):
        result = resolve_support("1.0.5", date(2025, 1, 1))
        assert result.tier == SupportTier.CRITICAL_FIXES_ONLY
        assert result.patch_policy.minimum_cvss == 8.0
        assert result.days_until_end_of_life == 180

    @pytest.mark.parametrize("as_of", [date(2020, 1, 1), date(2025, 1, 1), date(2030, 1, 1)])
    def test_pre_release_modules_are_unsupported(self, as_of):
        result = resolve_support("0.9.0", as_of)
        assert result.tier == SupportTier.NO_SUPPORT
        assert result.matched_range == "<1.0"
        assert result.end_of_life_approaching is False

    def test_invalid_version(self):
        with pytest.raises(InvalidVersionError) as exc_info:
            resolve_support("abc", date(2025, 1, 1))
        assert exc_info.value.kind == ErrorKind.INVALID_VERSION

    def test_unknown_version(self):
        with pytest.raises(UnknownVersionError) as exc_info:
            resolve_support("2.0.0", date(2025, 1, 1))
        assert exc_info.value.kind == ErrorKind.UNKNOWN_VERSION

    def test_v_prefixed_tag(self):
        result = resolve_support("v1.2.4", date(2025, 1, 1))
        assert result.version == "v1.2.4"
        assert result.matched_range == "1.2.x"

    def test_deterministic_and_idempotent(self):
        results = {resolve_support("1.1.7", date(2025, 3, 14)) for _ in range(5)}
        assert len(results) == 1

    @pytest.mark.parametrize("version", ["1.2.0", "1.1.0", "1.0.5", "0.9.0", "1.1.99"])
    def test_tier_never_upgrades_over_time(self, version):
        day = date(2024, 1, 1)
        previous_rank = None
        while day < date(2027, 1, 1):
            rank = resolve_support(version, day).tier.rank
            if previous_rank is not None:
                assert rank <= previous_rank, f"{version} upgraded on {day}"
            previous_rank = rank
            day += timedelta(days=7)

    def test_to_dict(self):
        data = resolve_support("1.0.5", date(2025, 1, 1)).to_dict()
        assert data["tier"] == "critical-fixes-only"
        assert data["end_of_life"] == "2025-06-30"
        assert data["as_of"] == "2025-01-01"
        assert data["patch_policy"]["minimum_cvss"] == 8.0


class TestResolveSupportCustomPolicy:
    def test_most_specific_prefix_wins(self):
        policy = build_policy(
            {
                "entries": [
                    {"version_range": "1.x", "tier": "security-fixes-only", "end_of_life": "2026-06-30"},
                    {"version_range": "1.2.x", "tier": "active-support"},
                    {"version_range": "*", "tier": "no-support"},
                ]
            }
        )
        assert resolve_support("1.2.3", date(2025, 1, 1), policy).tier == SupportTier.ACTIVE_SUPPORT
        assert resolve_support("1.3.0", date(2025, 1, 1), policy).tier == SupportTier.SECURITY_FIXES_ONLY
        assert resolve_support("3.0.0", date(2025, 1, 1), policy).tier == SupportTier.NO_SUPPORT

    def test_file_order_does_not_matter(self):
        entries = [
            {"version_range": "1.2.x", "tier": "active-support"},
            {"version_range": "1.x", "tier": "critical-fixes-only"},
        ]
        forward = build_policy({"entries": entries})
        backward = build_policy({"entries": list(reversed(entries))})
        for version in ("1.2.0", "1.0.0", "1.5.2"):
            assert resolve_support(version, date(2025, 1, 1), forward) == resolve_support(
                version, date(2025, 1, 1), backward
            )

    def test_custom_critical_threshold(self):
        policy = build_policy(
            {
                "critical_cvss_threshold": 9.0,
                "entries": [{"version_range": "1.0.x", "tier": "critical-fixes-only"}],
            }
        )
        result = resolve_support("1.0.1", date(2025, 1, 1), policy)
        assert result.patch_policy.minimum_cvss == 9.0

    def test_custom_warning_window(self):
        policy = build_policy(
            {
                "eol_warning_days": 365,
                "entries": [{"version_range": "1.1.x", "tier": "security-fixes-only", "end_of_life": "2025-12-31"}],
            }
        )
        assert resolve_support("1.1.0", date(2025, 6, 1), policy).end_of_life_approaching is True

    def test_find_entry(self):
        entry = find_entry("1.1.2")
        assert str(entry.version_range) == "1.1.x"


class TestSupportTimeline:
    def test_line_with_end_of_life(self):
        transitions = support_timeline("1.1.0")
        assert [t.tier for t in transitions] == [SupportTier.SECURITY_FIXES_ONLY, SupportTier.NO_SUPPORT]
        assert transitions[0].effective_from is None
        assert transitions[1].effective_from == date(2025, 12, 31)

    def test_open_ended_line(self):
        transitions = support_timeline("1.2.0")
        assert len(transitions) == 1
        assert transitions[0].tier == SupportTier.ACTIVE_SUPPORT

    def test_unsupported_line(self):
        transitions = support_timeline("0.1.0")
        assert [t.tier for t in transitions] == [SupportTier.NO_SUPPORT]

    def test_timeline_never_upgrades(self):
        for version in ("1.2.0", "1.1.0", "1.0.0", "0.9.0"):
            ranks = [t.tier.rank for t in support_timeline(version)]
            assert ranks == sorted(ranks, reverse=True)

    def test_transition_to_dict(self):
        data = [t.to_dict() for t in support_timeline("1.0.0")]
        assert data == [
            {"tier": "critical-fixes-only", "effective_from": None},
            {"tier": "no-support", "effective_from": "2025-06-30"},
        ]


class TestIsFixServiced:
    def test_critical_line_skips_lower_scores(self):
        assert is_fix_serviced("1.0.5", 9.8, date(2025, 1, 1)) is True
        assert is_fix_serviced("1.0.5", 8.0, date(2025, 1, 1)) is True
        assert is_fix_serviced("1.0.5", 7.5, date(2025, 1, 1)) is False

    def test_security_line_fixes_all_scores(self):
        assert is_fix_serviced("1.1.0", 2.1, date(2025, 1, 1)) is True

    def test_unsupported_line_fixes_nothing(self):
        assert is_fix_serviced("0.9.0", 10.0, date(2025, 1, 1)) is False

    @pytest.mark.parametrize("score", [-0.1, 10.1, "high", None])
    def test_invalid_scores(self, score):
        with pytest.raises(InvalidInputError):
            is_fix_serviced("1.2.0", score, date(2025, 1, 1))


class TestResolveAll:
    def test_newest_line_first(self):
        results = resolve_all(date(2025, 6, 1))
        assert [r.matched_range for r in results] == ["1.2.x", "1.1.x", "1.0.x", "<1.0"]
        assert [r.tier for r in results] == [
            SupportTier.ACTIVE_SUPPORT,
            SupportTier.SECURITY_FIXES_ONLY,
            SupportTier.CRITICAL_FIXES_ONLY,
            SupportTier.NO_SUPPORT,
        ]

    def test_after_all_end_of_life_dates(self):
        results = resolve_all(date(2026, 1, 1))
        assert [r.tier for r in results] == [
            SupportTier.ACTIVE_SUPPORT,
            SupportTier.NO_SUPPORT,
            SupportTier.NO_SUPPORT,
            SupportTier.NO_SUPPORT,
        ]


class TestInputHelpers:
    def test_parse_as_of(self):
        assert parse_as_of("2025-06-01") == date(2025, 6, 1)

    def test_parse_as_of_empty(self):
        assert parse_as_of(None) is None
        assert parse_as_of("") is None

    @pytest.mark.parametrize("value", ["2025-13-01", "yesterday", "06/01/2025"])
    def test_parse_as_of_invalid(self, value):
        with pytest.raises(InvalidInputError, match="YYYY-MM-DD"):
            parse_as_of(value)

    def test_validate_cvss_accepts_strings(self):
        assert validate_cvss("7.5") == 7.5

    def test_validate_cvss_bounds(self):
        assert validate_cvss(0) == 0.0
        assert validate_cvss(10) == 10.0
