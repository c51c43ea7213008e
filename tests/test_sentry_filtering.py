"""Test Sentry error filtering for user vs system errors."""

import os
import unittest
from unittest.mock import patch

from support_policy.cli.main import filter_user_errors, initialize_sentry
from support_policy.exceptions import (
    ConfigLoadError,
    ConfigurationError,
    InvalidInputError,
    InvalidVersionError,
    UnknownVersionError,
)


def _hint(error):
    return {"exc_info": (type(error), error, None)}


class TestSentryFiltering(unittest.TestCase):
    def test_filters_user_input_errors(self):
        """Malformed or unknown versions are user errors, not tool bugs."""
        event = {"exception": {"values": [{"type": "InvalidVersionError"}]}}
        for error in (
            InvalidVersionError("abc"),
            UnknownVersionError("9.0.0"),
            InvalidInputError("bad date"),
            ConfigurationError("bad option"),
        ):
            self.assertIsNone(filter_user_errors(event, _hint(error)), type(error).__name__)

    def test_keeps_config_load_errors(self):
        event = {"exception": {"values": [{"type": "ConfigLoadError"}]}}
        self.assertIs(filter_user_errors(event, _hint(ConfigLoadError("unreachable"))), event)

    def test_keeps_unexpected_errors(self):
        event = {"exception": {"values": [{"type": "KeyError"}]}}
        self.assertIs(filter_user_errors(event, _hint(KeyError("entries"))), event)

    def test_keeps_events_without_exception(self):
        event = {"message": "hello"}
        self.assertIs(filter_user_errors(event, {}), event)


class TestInitializeSentry(unittest.TestCase):
    @patch.dict(os.environ, {"TELEMETRY": "false", "SENTRY_DSN": "https://key@sentry.example.com/1"})
    @patch("support_policy.cli.main.sentry_sdk.init")
    def test_disabled_without_telemetry(self, mock_init):
        self.assertFalse(initialize_sentry())
        mock_init.assert_not_called()

    @patch.dict(os.environ, {"TELEMETRY": "true"})
    @patch("support_policy.cli.main.sentry_sdk.init")
    def test_disabled_without_dsn(self, mock_init):
        os.environ.pop("SENTRY_DSN", None)
        self.assertFalse(initialize_sentry())
        mock_init.assert_not_called()

    @patch.dict(os.environ, {"TELEMETRY": "yes", "SENTRY_DSN": "https://key@sentry.example.com/1"})
    @patch("support_policy.cli.main.sentry_sdk.init")
    def test_enabled_with_telemetry_and_dsn(self, mock_init):
        self.assertTrue(initialize_sentry())
        mock_init.assert_called_once()
        kwargs = mock_init.call_args.kwargs
        self.assertEqual(kwargs["dsn"], "https://key@sentry.example.com/1")
        self.assertIs(kwargs["before_send"], filter_user_errors)
        self.assertFalse(kwargs["send_default_pii"])


if __name__ == "__main__":
    unittest.main()
