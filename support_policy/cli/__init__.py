"""CLI module for support-policy.

This module provides the command-line interface for checking module support
tiers. It supports both CLI arguments and environment variables for
configuration.
"""

from .main import (
    Config,
    build_config,
    check_support,
    check_support_main,
    cli,
    evaluate_boolean,
    load_config,
    main,
)

__all__ = [
    "cli",
    "check_support",
    "check_support_main",
    "main",
    "Config",
    "build_config",
    "load_config",
    "evaluate_boolean",
]
