"""Pytest configuration and shared fixtures for all tests."""

import json

import pytest

from support_policy.loader import clear_cache
from support_policy.policy_data import get_default_policy_document


@pytest.fixture(autouse=True)
def disable_sentry_for_tests(monkeypatch):
    """Disable Sentry telemetry for all tests.

    Tests that exercise Sentry initialisation set TELEMETRY themselves.
    """
    monkeypatch.setenv("TELEMETRY", "false")
    monkeypatch.delenv("SENTRY_DSN", raising=False)


@pytest.fixture(autouse=True)
def clear_policy_cache():
    """Clear cached policies before each test."""
    clear_cache()
    yield
    clear_cache()


@pytest.fixture(autouse=True)
def clear_policy_env(monkeypatch):
    """Keep a developer's shell settings out of the CLI tests."""
    for name in ("SUPPORT_POLICY", "SUPPORT_POLICY_TOKEN", "AS_OF", "OUTPUT_FORMAT", "LOG_LEVEL", "CVSS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def policy_document():
    """A mutable copy of the built-in policy document."""
    return get_default_policy_document()


@pytest.fixture
def write_policy(tmp_path):
    """Write a policy document to a temporary JSON or YAML file."""

    def _write(document, name="support-policy.json"):
        path = tmp_path / name
        if isinstance(document, str):
            path.write_text(document)
        else:
            path.write_text(json.dumps(document))
        return str(path)

    return _write
