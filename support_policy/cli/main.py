import json
import os
import sys
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, NoReturn, Optional

import click
import sentry_sdk

from .. import __version__
from ..console import (
    console,
    gha_error,
    gha_group,
    gha_notice,
    gha_warning,
    print_final_failure,
    print_policy_table,
    print_support_result,
    print_timeline,
)
from ..exceptions import (
    ConfigLoadError,
    ConfigurationError,
    ErrorKind,
    InvalidInputError,
    InvalidVersionError,
    SupportPolicyError,
    UnknownVersionError,
)
from ..loader import BUILTIN_SOURCE, load_policy
from ..logging_config import logger, set_log_level
from ..models import SupportPolicy, SupportResult, SupportTier, cvss_severity
from ..resolver import parse_as_of, resolve_all, resolve_support, support_timeline, validate_cvss

SUPPORT_POLICY_VERSION = __version__

"""

check-support answers one question for a CI job or a human: is this module
release still maintained, and to what degree?

# Exit codes
- 0: active support or security fixes only
- 1: critical fixes only
- 2: no support
- 3: invalid input (malformed version, unknown version, bad date or CVSS,
     bad command line)
- 4: the support policy could not be loaded

# Configuration
Every option can also be given as an environment variable; the command line
takes precedence:
- SUPPORT_POLICY: policy file, http(s) URL or "builtin"
- SUPPORT_POLICY_TOKEN: bearer token for a private policy URL
- AS_OF: evaluation date (YYYY-MM-DD), default today in UTC
- OUTPUT_FORMAT: text or json
- LOG_LEVEL: DEBUG, INFO, WARNING or ERROR
- TELEMETRY / SENTRY_DSN: opt-in error reporting

"""

EXIT_SUPPORTED = 0
EXIT_LIMITED_SUPPORT = 1
EXIT_UNSUPPORTED = 2
EXIT_INVALID_INPUT = 3
EXIT_CONFIG_ERROR = 4

OUTPUT_FORMATS = ["text", "json"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

TIER_EXIT_CODES = {
    SupportTier.ACTIVE_SUPPORT: EXIT_SUPPORTED,
    SupportTier.SECURITY_FIXES_ONLY: EXIT_SUPPORTED,
    SupportTier.CRITICAL_FIXES_ONLY: EXIT_LIMITED_SUPPORT,
    SupportTier.NO_SUPPORT: EXIT_UNSUPPORTED,
}

ERROR_EXIT_CODES = {
    ErrorKind.INVALID_VERSION: EXIT_INVALID_INPUT,
    ErrorKind.UNKNOWN_VERSION: EXIT_INVALID_INPUT,
    ErrorKind.INVALID_INPUT: EXIT_INVALID_INPUT,
    ErrorKind.CONFIGURATION: EXIT_INVALID_INPUT,
    ErrorKind.CONFIG_LOAD: EXIT_CONFIG_ERROR,
}


def _get_current_utc_date() -> date:
    """Today's date in UTC, so results do not depend on the runner's timezone."""
    return datetime.now(timezone.utc).date()


def evaluate_boolean(value: str) -> bool:
    """
    Evaluate string values as boolean.

    Args:
        value: String value to evaluate

    Returns:
        Boolean result
    """
    return value.lower() in ["true", "yes", "yeah", "1"]


def exit_code_for_tier(tier: SupportTier) -> int:
    return TIER_EXIT_CODES[tier]


def exit_code_for_error(error: SupportPolicyError) -> int:
    return ERROR_EXIT_CODES.get(error.kind, EXIT_INVALID_INPUT)


@dataclass
class Config:
    """Configuration settings for a support check."""

    policy_source: str = BUILTIN_SOURCE
    policy_token: Optional[str] = None
    as_of: Optional[date] = None
    output_format: str = "text"
    log_level: str = "WARNING"
    cvss: Optional[float] = None

    def validate(self) -> None:
        """
        Validate configuration settings.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.policy_source:
            raise ConfigurationError("Support policy source is empty")
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(
                f"Invalid output format '{self.output_format}'. Expected one of: {', '.join(OUTPUT_FORMATS)}"
            )
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level '{self.log_level}'. Expected one of: {', '.join(LOG_LEVELS)}")
        self.log_level = self.log_level.upper()
        if self.cvss is not None:
            try:
                self.cvss = validate_cvss(self.cvss)
            except InvalidInputError as e:
                raise ConfigurationError(str(e))

    @property
    def effective_date(self) -> date:
        return self.as_of or _get_current_utc_date()


def build_config(
    policy: Optional[str] = None,
    policy_token: Optional[str] = None,
    as_of: Optional[str] = None,
    output_format: str = "text",
    log_level: str = "WARNING",
    cvss: Optional[float] = None,
) -> Config:
    """
    Build and validate a Config from command-line values.

    Raises:
        ConfigurationError: If configuration is invalid
        InvalidInputError: If the as-of date is malformed
    """
    config = Config(
        policy_source=policy or BUILTIN_SOURCE,
        policy_token=policy_token,
        as_of=parse_as_of(as_of),
        output_format=output_format.lower(),
        log_level=log_level,
        cvss=cvss,
    )
    config.validate()
    return config


def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Used when the checker is embedded (for example from a pipeline step)
    rather than invoked through the CLI.

    Raises:
        ConfigurationError: If configuration is invalid
        InvalidInputError: If AS_OF is malformed
    """
    cvss_env = os.getenv("CVSS")
    try:
        cvss = float(cvss_env) if cvss_env else None
    except ValueError:
        raise ConfigurationError(f"Invalid CVSS value: {cvss_env}")

    return build_config(
        policy=os.getenv("SUPPORT_POLICY"),
        policy_token=os.getenv("SUPPORT_POLICY_TOKEN"),
        as_of=os.getenv("AS_OF"),
        output_format=os.getenv("OUTPUT_FORMAT", "text"),
        log_level=os.getenv("LOG_LEVEL", "WARNING"),
        cvss=cvss,
    )


def filter_user_errors(event, hint):
    """
    Filter events before sending to Sentry.
    Don't send user input errors - these are expected, not tool bugs.
    """
    if "exc_info" in hint:
        exc_type, exc_value, tb = hint["exc_info"]
        if isinstance(exc_value, (InvalidVersionError, UnknownVersionError, InvalidInputError, ConfigurationError)):
            return None
    return event


def initialize_sentry() -> bool:
    """
    Initialize Sentry for error tracking when telemetry is opted in.

    Returns:
        True if Sentry was initialized
    """
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not evaluate_boolean(os.getenv("TELEMETRY", "false")) or not sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=sentry_dsn,
        send_default_pii=False,
        traces_sample_rate=0.0,
        before_send=filter_user_errors,
    )
    logger.debug("Sentry error reporting enabled")
    return True


def _fail(error: SupportPolicyError, output_format: str = "text") -> NoReturn:
    """Report an error and exit with the matching exit code."""
    code = exit_code_for_error(error)
    if output_format == "json":
        click.echo(json.dumps({"error": {"kind": error.kind.value, "message": str(error)}}, indent=2))
    else:
        print_final_failure(str(error))
    if error.kind == ErrorKind.CONFIG_LOAD:
        sentry_sdk.capture_exception(error)
    sys.exit(code)


def _startup(config: Config) -> SupportPolicy:
    """Apply logging and telemetry settings and load the policy table."""
    set_log_level(config.log_level)
    initialize_sentry()
    try:
        return load_policy(config.policy_source, token=config.policy_token)
    except ConfigLoadError as e:
        logger.error(f"Failed to load support policy: {e}")
        _fail(e, config.output_format)


def _config_from_params(
    policy: Optional[str],
    policy_token: Optional[str],
    as_of: Optional[str],
    output_format: str,
    log_level: str,
    cvss: Optional[float] = None,
) -> Config:
    try:
        return build_config(
            policy=policy,
            policy_token=policy_token,
            as_of=as_of,
            output_format=output_format,
            log_level=log_level,
            cvss=cvss,
        )
    except SupportPolicyError as e:
        _fail(e, output_format if output_format in OUTPUT_FORMATS else "text")


def _annotate(result: SupportResult) -> None:
    """Emit annotations for results that need a reader's attention."""
    if result.tier == SupportTier.NO_SUPPORT:
        gha_error(
            f"Module version {result.version} is not supported (range {result.matched_range}). "
            "Upgrade to a supported release line.",
            title="Unsupported module version",
        )
    elif result.tier == SupportTier.CRITICAL_FIXES_ONLY:
        gha_warning(
            f"Module version {result.version} only receives fixes for CVSS >= "
            f"{result.patch_policy.minimum_cvss:.1f}.",
            title="Critical fixes only",
        )
    if result.end_of_life_approaching and result.end_of_life:
        gha_notice(
            f"Support for {result.matched_range} ends on {result.end_of_life.isoformat()} "
            f"({result.days_until_end_of_life} days).",
            title="End of life approaching",
        )


def _result_document(result: SupportResult, cvss: Optional[float] = None) -> Dict[str, Any]:
    document = result.to_dict()
    if cvss is not None:
        document["cvss"] = {
            "score": cvss,
            "severity": cvss_severity(cvss),
            "serviced": result.patch_policy.covers(cvss),
        }
    return document


class _ExitCodeMixin:
    """Report command-line usage errors with the invalid-input exit code."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = EXIT_INVALID_INPUT
            raise


class PolicyCommand(_ExitCodeMixin, click.Command):
    pass


class PolicyGroup(_ExitCodeMixin, click.Group):
    command_class = PolicyCommand

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            e.exit_code = EXIT_INVALID_INPUT
            raise


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def policy_options(func: Callable) -> Callable:
    """Options shared by every command that reads the policy table."""
    options: List[Callable] = [
        click.option(
            "--policy",
            "policy",
            envvar="SUPPORT_POLICY",
            default=None,
            metavar="SOURCE",
            help="Policy file (JSON/YAML), http(s) URL, or 'builtin'. [env: SUPPORT_POLICY]",
        ),
        click.option(
            "--policy-token",
            envvar="SUPPORT_POLICY_TOKEN",
            default=None,
            help="Bearer token for a private policy URL. [env: SUPPORT_POLICY_TOKEN]",
        ),
        click.option(
            "--format",
            "output_format",
            envvar="OUTPUT_FORMAT",
            type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
            default="text",
            show_default=True,
            help="Output format. [env: OUTPUT_FORMAT]",
        ),
        click.option(
            "--log-level",
            envvar="LOG_LEVEL",
            type=click.Choice(LOG_LEVELS, case_sensitive=False),
            default="WARNING",
            show_default=True,
            help="Log verbosity (logs go to stderr). [env: LOG_LEVEL]",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def as_of_option(func: Callable) -> Callable:
    return click.option(
        "--as-of",
        envvar="AS_OF",
        default=None,
        metavar="DATE",
        help="Evaluation date (YYYY-MM-DD). Defaults to today (UTC). [env: AS_OF]",
    )(func)


@click.command(name="check-support", cls=PolicyCommand, context_settings=CONTEXT_SETTINGS)
@click.argument("module_version", metavar="VERSION")
@as_of_option
@click.option(
    "--cvss",
    type=float,
    default=None,
    metavar="SCORE",
    help="Also report whether a vulnerability with this CVSS score would be fixed.",
)
@policy_options
@click.version_option(SUPPORT_POLICY_VERSION, "--version", prog_name="support-policy", message="%(prog)s %(version)s")
def check_support(
    module_version: str,
    as_of: Optional[str],
    cvss: Optional[float],
    policy: Optional[str],
    policy_token: Optional[str],
    output_format: str,
    log_level: str,
) -> None:
    """Check which support tier a module VERSION is in.

    Exits 0 for active support or security fixes only, 1 for critical fixes
    only, 2 for no support, 3 for invalid input and 4 when the policy cannot
    be loaded.
    """
    config = _config_from_params(policy, policy_token, as_of, output_format, log_level, cvss)
    support_policy = _startup(config)

    try:
        result = resolve_support(module_version, config.effective_date, support_policy)
    except SupportPolicyError as e:
        logger.info(f"Support check for '{module_version}' failed: {e}")
        _fail(e, config.output_format)

    if config.output_format == "json":
        click.echo(json.dumps(_result_document(result, config.cvss), indent=2))
    else:
        print_support_result(result, config.cvss)
        _annotate(result)

    sys.exit(exit_code_for_tier(result.tier))


@click.group(cls=PolicyGroup, context_settings=CONTEXT_SETTINGS, invoke_without_command=True)
@click.version_option(SUPPORT_POLICY_VERSION, "--version", prog_name="support-policy", message="%(prog)s %(version)s")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Resolve support tiers for infrastructure module releases."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(check_support, name="check")


@cli.command(name="show")
@as_of_option
@policy_options
def show(
    as_of: Optional[str],
    policy: Optional[str],
    policy_token: Optional[str],
    output_format: str,
    log_level: str,
) -> None:
    """Show the support policy table with effective tiers."""
    config = _config_from_params(policy, policy_token, as_of, output_format, log_level)
    support_policy = _startup(config)
    results = resolve_all(config.effective_date, support_policy)

    if config.output_format == "json":
        document = {
            "source": support_policy.source,
            "as_of": config.effective_date.isoformat(),
            "critical_cvss_threshold": support_policy.critical_cvss_threshold,
            "entries": [result.to_dict() for result in results],
        }
        click.echo(json.dumps(document, indent=2))
    else:
        with gha_group(f"Support policy ({support_policy.source})"):
            print_policy_table(results, support_policy.source)


@cli.command(name="timeline")
@click.argument("module_version", metavar="VERSION")
@policy_options
def timeline(
    module_version: str,
    policy: Optional[str],
    policy_token: Optional[str],
    output_format: str,
    log_level: str,
) -> None:
    """Show how the support tier of VERSION changes over time."""
    config = _config_from_params(policy, policy_token, None, output_format, log_level)
    support_policy = _startup(config)

    try:
        transitions = support_timeline(module_version, support_policy)
    except SupportPolicyError as e:
        _fail(e, config.output_format)

    if config.output_format == "json":
        document = {"version": module_version, "transitions": [t.to_dict() for t in transitions]}
        click.echo(json.dumps(document, indent=2))
    else:
        print_timeline(module_version, transitions)


@cli.command(name="validate")
@policy_options
def validate(
    policy: Optional[str],
    policy_token: Optional[str],
    output_format: str,
    log_level: str,
) -> None:
    """Validate a support policy document."""
    config = _config_from_params(policy, policy_token, None, output_format, log_level)
    support_policy = _startup(config)

    if config.output_format == "json":
        document = {"source": support_policy.source, "valid": True, "entries": len(support_policy.entries)}
        click.echo(json.dumps(document, indent=2))
    else:
        console.print(
            f"[success]✓ Support policy {support_policy.source} is valid[/success] "
            f"({len(support_policy.entries)} entries)"
        )


def main() -> None:
    """Entry point for the support-policy command group."""
    cli()


def check_support_main() -> None:
    """Entry point for the check-support command."""
    check_support()


if __name__ == "__main__":
    main()
