"""Rich console utilities for support-policy.

This module provides a shared Rich Console instance and helper functions
for CLI output, including GitHub Actions annotations so that support-tier
findings show up in workflow summaries.
"""

import os
from contextlib import contextmanager
from typing import Any, Generator, List, Optional, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from .models import SupportResult, SupportTier, TierTransition, cvss_severity

# Detect GitHub Actions
IS_GITHUB_ACTIONS = os.getenv("GITHUB_ACTIONS") == "true"

# Standard ANSI color names adapt to light and dark terminal themes
TIER_STYLES = {
    SupportTier.ACTIVE_SUPPORT: "bold green",
    SupportTier.SECURITY_FIXES_ONLY: "green",
    SupportTier.CRITICAL_FIXES_ONLY: "yellow",
    SupportTier.NO_SUPPORT: "bold red",
}

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "highlight": "magenta",
        "tier.active-support": TIER_STYLES[SupportTier.ACTIVE_SUPPORT],
        "tier.security-fixes-only": TIER_STYLES[SupportTier.SECURITY_FIXES_ONLY],
        "tier.critical-fixes-only": TIER_STYLES[SupportTier.CRITICAL_FIXES_ONLY],
        "tier.no-support": TIER_STYLES[SupportTier.NO_SUPPORT],
    }
)

# Shared console instance
# Force colors ON in GitHub Actions (it supports ANSI colors but Rich may incorrectly disable them)
console = Console(
    theme=custom_theme,
    force_terminal=IS_GITHUB_ACTIONS or None,
    color_system="auto",
)


@contextmanager
def gha_group(title: str) -> Generator[None, None, None]:
    """
    Context manager for GitHub Actions collapsible groups.

    Args:
        title: Group title
    """
    if IS_GITHUB_ACTIONS:
        print(f"::group::{title}")
    try:
        yield
    finally:
        if IS_GITHUB_ACTIONS:
            print("::endgroup::")


def gha_warning(message: str, title: Optional[str] = None) -> None:
    """
    Emit a warning that appears in GitHub Actions job summary.

    Args:
        message: Warning message
        title: Optional title for the warning
    """
    if IS_GITHUB_ACTIONS:
        if title:
            print(f"::warning title={title}::{message}")
        else:
            print(f"::warning::{message}")
    else:
        if title:
            console.print(f"[warning]Warning ({title}):[/warning] {escape(message)}", soft_wrap=True)
        else:
            console.print(f"[warning]Warning:[/warning] {escape(message)}", soft_wrap=True)


def gha_error(message: str, title: Optional[str] = None) -> None:
    """
    Emit an error that appears in GitHub Actions job summary.

    Args:
        message: Error message
        title: Optional title for the error
    """
    if IS_GITHUB_ACTIONS:
        if title:
            print(f"::error title={title}::{message}")
        else:
            print(f"::error::{message}")
    else:
        if title:
            console.print(f"[error]Error ({title}):[/error] {escape(message)}", soft_wrap=True)
        else:
            console.print(f"[error]Error:[/error] {escape(message)}", soft_wrap=True)


def gha_notice(message: str, title: Optional[str] = None) -> None:
    """
    Emit a notice annotation in GitHub Actions.

    Args:
        message: Notice message
        title: Optional title for the notice
    """
    if IS_GITHUB_ACTIONS:
        if title:
            print(f"::notice title={title}::{message}")
        else:
            print(f"::notice::{message}")
    else:
        if title:
            console.print(f"[info]Notice ({title}):[/info] {escape(message)}", soft_wrap=True)
        else:
            console.print(f"[info]Notice:[/info] {escape(message)}", soft_wrap=True)


def format_tier(tier: SupportTier) -> str:
    """Rich markup for a tier name."""
    return f"[tier.{tier.value}]{tier.value}[/tier.{tier.value}]"


def print_summary_table(
    title: str,
    data: List[Tuple[str, Any]],
    show_if_empty: bool = False,
) -> None:
    """
    Print a two-column summary table.

    Args:
        title: Table title
        data: List of (label, value) tuples
        show_if_empty: Whether to show rows whose value is None/empty
    """
    if not show_if_empty:
        data = [(label, value) for label, value in data if value is not None and value != ""]

    if not data:
        return

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    for label, value in data:
        table.add_row(label, str(value))

    console.print(table)


def print_support_result(result: SupportResult, cvss: Optional[float] = None) -> None:
    """
    Print a resolved support result.

    Args:
        result: Result to print
        cvss: Optional CVSS score the caller asked about
    """
    end_of_life = result.end_of_life.isoformat() if result.end_of_life else "TBD"
    if result.tier == SupportTier.NO_SUPPORT and result.end_of_life is None:
        end_of_life = "-"

    data: List[Tuple[str, Any]] = [
        ("Version", result.version),
        ("Matched range", result.matched_range),
        ("As of", result.as_of.isoformat()),
        ("Tier", format_tier(result.tier)),
        ("End of life", end_of_life),
        ("Patch policy", result.patch_policy.describe()),
    ]
    if result.tier != result.nominal_tier:
        data.append(("Nominal tier", format_tier(result.nominal_tier)))
    if result.days_until_end_of_life is not None and result.is_supported:
        data.append(("Days until end of life", result.days_until_end_of_life))
    if cvss is not None:
        serviced = "yes" if result.patch_policy.covers(cvss) else "no"
        data.append((f"CVSS {cvss:.1f} ({cvss_severity(cvss)}) fixed", serviced))

    print_summary_table("Support Status", data)


def print_policy_table(results: List[SupportResult], source: str) -> None:
    """Print every policy entry with its effective tier."""
    table = Table(title=f"Support Policy ({source})", show_header=True, header_style="bold")
    table.add_column("Versions", style="cyan")
    table.add_column("Tier")
    table.add_column("End of life")
    table.add_column("Patch policy")

    for result in results:
        if result.end_of_life:
            end_of_life = result.end_of_life.isoformat()
        else:
            end_of_life = "-" if result.nominal_tier == SupportTier.NO_SUPPORT else "TBD"
        table.add_row(result.matched_range, format_tier(result.tier), end_of_life, result.patch_policy.describe())

    console.print(table)


def print_timeline(version: str, transitions: List[TierTransition]) -> None:
    """Print the tier changes of a version line."""
    table = Table(title=f"Support Timeline for {version}", show_header=True, header_style="bold")
    table.add_column("From", style="cyan")
    table.add_column("Tier")

    for transition in transitions:
        start = transition.effective_from.isoformat() if transition.effective_from else "release"
        table.add_row(start, format_tier(transition.tier))

    console.print(table)


def print_final_failure(message: str) -> None:
    """Print a failure message."""
    gha_error(message, title="Support Check Failed")
