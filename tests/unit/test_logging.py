"""Tests for tcnauth logging utilities."""

from __future__ import annotations

import json

import structlog

from tcnauth.logging import configure_logging, get_logger, redact_token


class TestRedactToken:
    """Tests for redact_token."""

    def test_fingerprint_is_stable(self) -> None:
        assert redact_token("abc") == redact_token("abc")

    def test_fingerprint_hides_value(self) -> None:
        redacted = redact_token("super-secret-token")
        assert redacted is not None
        assert redacted.startswith("sha256:")
        assert "super-secret-token" not in redacted
        assert len(redacted) == len("sha256:") + 10

    def test_distinct_tokens_differ(self) -> None:
        assert redact_token("a") != redact_token("b")

    def test_empty(self) -> None:
        assert redact_token(None) is None
        assert redact_token("") is None


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output(self, capsys) -> None:
        configure_logging(level="INFO", json_output=True)

        get_logger("tcnauth.test").info("session_persisted", user_id=42)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "session_persisted"
        assert event["user_id"] == 42
        assert event["level"] == "info"

    def test_level_filters_debug(self, capsys) -> None:
        configure_logging(level="WARNING", json_output=True)

        get_logger("tcnauth.test").debug("cookie_jar_hydrated", count=1)

        assert capsys.readouterr().err == ""

    def test_warn_is_reported_as_warning(self) -> None:
        from tcnauth.logging import add_log_level

        assert add_log_level(None, "warn", {})["level"] == "warning"

    def test_get_logger_returns_structlog_logger(self) -> None:
        configure_logging()
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
        assert structlog.is_configured()
