"""Tests for response-body text helpers."""

import pytest

from tcnauth.text import (
    DEFAULT_LOGIN_ERROR,
    extract_message,
    extract_notice,
    extract_response_message,
    extract_success_flag,
    parse_json_body,
    sanitize_error_message,
)


class TestSanitizeErrorMessage:
    """Tests for sanitize_error_message."""

    def test_strips_tags_and_entities(self):
        assert sanitize_error_message("<p>Bad&nbsp;password &amp; user</p>") == (
            "Bad password & user"
        )

    def test_collapses_whitespace(self):
        assert sanitize_error_message("  a \n\t b  ") == "a b"

    def test_empty_result_uses_fallback(self):
        assert sanitize_error_message("<br/>") == DEFAULT_LOGIN_ERROR
        assert sanitize_error_message("   ", "Other") == "Other"


class TestExtractSuccessFlag:
    """Tests for extract_success_flag."""

    @pytest.mark.parametrize(
        ("payload", "expected"),
        [
            ({"success": True}, True),
            ({"success": False}, False),
            ({"success": 1}, True),
            ({"success": 0}, False),
            ({"success": "yes"}, True),
            ({"success": "failed"}, False),
            ({"status": 200}, True),
            ({"status": 403}, False),
            ({"status": "completed"}, True),
            ({"status": "invalid"}, False),
            ({"data": {"success": True}}, True),
            ({"success": "maybe"}, None),
            ({"message": "hi"}, None),
            ([], None),
            (None, None),
        ],
    )
    def test_shapes(self, payload, expected):
        assert extract_success_flag(payload) is expected

    def test_success_takes_priority_over_status(self):
        assert extract_success_flag({"success": False, "status": 200}) is False


class TestExtractMessage:
    """Tests for extract_message and extract_notice."""

    def test_top_level_message(self):
        assert extract_message({"message": "top", "data": {"message": "nested"}}) == "top"

    def test_nested_message(self):
        assert extract_message({"data": {"error": "nested"}}) == "nested"

    def test_blank_message_is_skipped(self):
        assert extract_message({"message": "  ", "error": "real"}) == "real"

    def test_non_dict(self):
        assert extract_message("message") is None

    def test_notice_is_sanitized(self):
        assert extract_notice({"notice": "<em>Check</em> your inbox"}) == "Check your inbox"

    def test_empty_notice(self):
        assert extract_notice({"message": "<br>"}) is None


class TestResponseHelpers:
    """Tests for helpers that read a requests.Response."""

    def test_parse_json_body(self, respond):
        assert parse_json_body(respond(200, {"a": 1})) == {"a": 1}
        assert parse_json_body(respond(200, "not json")) is None
        assert parse_json_body(respond(204)) is None

    def test_json_message(self, respond):
        response = respond(400, {"message": "<b>Nope</b>"})
        assert extract_response_message(response, "fallback") == "Nope"

    def test_json_without_message_uses_fallback(self, respond):
        assert extract_response_message(respond(400, {"code": "x"}), "fallback") == "fallback"

    def test_html_body(self, respond):
        response = respond(500, "<h1>Critical error</h1>")
        assert extract_response_message(response, "fallback") == "Critical error"

    def test_empty_body(self, respond):
        assert extract_response_message(respond(502), "fallback") == "fallback"
