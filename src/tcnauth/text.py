"""Helpers for turning backend response bodies into user-facing text.

WordPress plugins frequently return HTML (``<p>There has been a critical
error...</p>``) or entity-encoded strings inside JSON ``message`` fields.
Nothing from the backend is shown to a user without passing through
``sanitize_error_message``.
"""

from __future__ import annotations

import html
import re
from typing import Any

import requests

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")

DEFAULT_LOGIN_ERROR = "Unable to log in with WordPress credentials."

_TRUE_WORDS = frozenset({"true", "1", "ok", "yes", "success"})
_FALSE_WORDS = frozenset({"false", "0", "no", "error", "failed"})
_STATUS_TRUE_WORDS = frozenset({"success", "ok", "completed", "valid"})
_STATUS_FALSE_WORDS = frozenset({"error", "failed", "fail", "invalid"})


def sanitize_error_message(value: str, fallback: str = DEFAULT_LOGIN_ERROR) -> str:
    """Strip tags, decode entities and collapse whitespace.

    Example:
        >>> sanitize_error_message("<p>Bad&nbsp;password &amp; user</p>")
        'Bad password & user'
    """
    without_tags = _TAG.sub(" ", value)
    decoded = html.unescape(without_tags).replace("\xa0", " ")
    normalized = _WHITESPACE.sub(" ", decoded).strip()
    return normalized or fallback


def parse_json_body(response: requests.Response) -> Any:
    """Return the decoded JSON body, or None when the body is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


def extract_success_flag(payload: Any) -> bool | None:
    """Read a success indicator from the many shapes the backend uses.

    Looks at ``success`` (bool, 0/1, or words), then ``status`` (bool, HTTP-like
    number, or words), then recurses into a nested ``data`` object.

    Returns:
        True/False when a flag was found, None when the payload is silent.
    """
    if not isinstance(payload, dict):
        return None

    if "success" in payload:
        raw = payload["success"]
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int | float):
            if raw == 1:
                return True
            if raw == 0:
                return False
        if isinstance(raw, str):
            word = raw.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False

    if "status" in payload:
        raw = payload["status"]
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int | float):
            if 200 <= raw < 400:
                return True
            if raw >= 400:
                return False
        if isinstance(raw, str):
            word = raw.strip().lower()
            if word in _STATUS_TRUE_WORDS:
                return True
            if word in _STATUS_FALSE_WORDS:
                return False

    nested = payload.get("data")
    if isinstance(nested, dict):
        return extract_success_flag(nested)

    return None


def extract_message(payload: Any, keys: tuple[str, ...] = ("message", "error")) -> str | None:
    """Return the first non-blank string under *keys*, also checking ``data``."""
    if not isinstance(payload, dict):
        return None
    for source in (payload, payload.get("data")):
        if not isinstance(source, dict):
            continue
        for key in keys:
            value = source.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return None


def extract_response_message(response: requests.Response, fallback: str) -> str:
    """Build a sanitized error message from a failed response.

    Prefers a JSON ``message``/``error`` field, then the raw body text of a
    non-JSON response, then *fallback*.
    """
    payload = parse_json_body(response)
    message = extract_message(payload)
    if message:
        return sanitize_error_message(message, fallback)
    if payload is not None:
        return fallback

    text = response.text if response.content else ""
    if text and text.strip():
        return sanitize_error_message(text, fallback)

    return fallback


def extract_notice(payload: Any) -> str | None:
    """Return a sanitized server notice (``message`` or ``notice``), if any."""
    message = extract_message(payload, keys=("message", "notice"))
    if message is None:
        return None
    return sanitize_error_message(message, "") or None
