"""Custom exceptions for support-policy."""

from enum import Enum


class ErrorKind(str, Enum):
    """Categories of failure reported to callers."""

    INVALID_VERSION = "invalid-version"
    UNKNOWN_VERSION = "unknown-version"
    INVALID_INPUT = "invalid-input"
    CONFIG_LOAD = "config-load"
    CONFIGURATION = "configuration"


class SupportPolicyError(Exception):
    """Base exception for all support-policy operations."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT


class InvalidVersionError(SupportPolicyError):
    """Raised when a version string is not a dotted numeric version."""

    kind = ErrorKind.INVALID_VERSION

    def __init__(self, version: str, reason: str = "expected MAJOR.MINOR.PATCH"):
        self.version = version
        super().__init__(f"Invalid version '{version}': {reason}")


class UnknownVersionError(SupportPolicyError):
    """Raised when no policy entry covers a version."""

    kind = ErrorKind.UNKNOWN_VERSION

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"No support policy entry covers version '{version}'")


class InvalidInputError(SupportPolicyError):
    """Raised for malformed dates, CVSS scores and similar caller input."""

    kind = ErrorKind.INVALID_INPUT


class ConfigLoadError(SupportPolicyError):
    """Raised when the support policy table cannot be loaded or validated."""

    kind = ErrorKind.CONFIG_LOAD


class ConfigurationError(SupportPolicyError):
    """Raised when configuration validation fails."""

    kind = ErrorKind.CONFIGURATION
