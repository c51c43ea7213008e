"""Built-in supported-version policy for the infrastructure modules.

This table mirrors the "Supported Versions" section of the security policy
shipped alongside the Terraform modules. It is used when no policy file or
URL is configured.

Fields:
- version_range: version prefix ("1.2.x"), upper bound ("<1.0") or "*"
- tier: active-support, security-fixes-only, critical-fixes-only, no-support
- end_of_life: ISO 8601 date, or "TBD" / None when open-ended

Data last updated: 2025-01-15
"""

import copy
from typing import List, Optional, TypedDict


class PolicyEntryData(TypedDict, total=False):
    """Raw policy entry as found in a policy document."""

    version_range: str
    tier: str
    end_of_life: Optional[str]
    notes: Optional[str]


class PolicyDocument(TypedDict, total=False):
    """Raw policy document."""

    critical_cvss_threshold: float
    eol_warning_days: int
    entries: List[PolicyEntryData]


# Open-ended end-of-life marker used in the published table
END_OF_LIFE_TBD = "TBD"

DEFAULT_SUPPORT_POLICY: PolicyDocument = {
    # "Critical fixes only" covers vulnerabilities scored CVSS >= 8.0
    "critical_cvss_threshold": 8.0,
    "eol_warning_days": 90,
    "entries": [
        {
            "version_range": "1.2.x",
            "tier": "active-support",
            "end_of_life": END_OF_LIFE_TBD,
            "notes": "Current release line",
        },
        {
            "version_range": "1.1.x",
            "tier": "security-fixes-only",
            "end_of_life": "2025-12-31",
        },
        {
            "version_range": "1.0.x",
            "tier": "critical-fixes-only",
            "end_of_life": "2025-06-30",
        },
        {
            "version_range": "<1.0",
            "tier": "no-support",
            "end_of_life": None,
            "notes": "Pre-release modules; upgrade to a supported line",
        },
    ],
}


def get_default_policy_document() -> PolicyDocument:
    """Return a deep copy of the built-in policy document."""
    return copy.deepcopy(DEFAULT_SUPPORT_POLICY)
