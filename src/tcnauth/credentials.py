"""Bearer token normalization and token-candidate classification.

Login and refresh responses from the backend carry "token-like" strings in
several shapes: a bare opaque token, a ``Bearer``-prefixed header value, a
URL with the token embedded in its query or fragment, or a one-time login
link that must be visited once to establish a cookie session. This module
turns those into either a usable bearer token or a clear signal that the
value is a link.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import ParseResult, parse_qs, urlparse

from tcnauth.logging import get_logger

LOG = get_logger(__name__)

# Query/fragment parameter names that carry a bearer token, in priority order.
TOKEN_PARAMETER_NAMES: tuple[str, ...] = (
    "token",
    "jwt",
    "access_token",
    "auth_token",
    "bearer",
    "api_token",
)

# Parameters marking a link as a one-time login (visit once, never store).
ONE_TIME_LOGIN_PARAMETERS: tuple[str, ...] = (
    "login_token",
    "one_time_token",
    "magic_token",
    "otl",
)

_BEARER_PREFIX = re.compile(r"^bearer(?:\s+|$)", re.IGNORECASE)


class TokenKind(StrEnum):
    """What a raw token-like string turned out to be."""

    BEARER = "bearer"
    LOGIN_URL = "login_url"
    ONE_TIME = "one_time"
    EMPTY = "empty"


@dataclass(frozen=True)
class TokenCandidate:
    """Classification result for a raw token-like string.

    Attributes:
        kind: The detected shape.
        value: The usable bearer token (``BEARER``), the link to visit once
            (``LOGIN_URL`` / ``ONE_TIME``), or None (``EMPTY``).
    """

    kind: TokenKind
    value: str | None

    @property
    def is_bearer(self) -> bool:
        return self.kind is TokenKind.BEARER

    @property
    def is_link(self) -> bool:
        return self.kind in (TokenKind.LOGIN_URL, TokenKind.ONE_TIME)


def _strip_bearer_prefix(value: str) -> str:
    """Remove any number of leading ``Bearer `` prefixes."""
    stripped = value.strip()
    while True:
        match = _BEARER_PREFIX.match(stripped)
        if not match:
            return stripped
        stripped = stripped[match.end() :].strip()


def _parse_absolute_url(value: str) -> ParseResult | None:
    """Parse *value* as an absolute URL (scheme and host required)."""
    if any(ch.isspace() for ch in value):
        return None
    try:
        parsed = urlparse(value)
    except ValueError:
        return None
    if parsed.scheme and parsed.netloc:
        return parsed
    return None


def is_url_shaped(value: str | None) -> bool:
    """Return True if *value* parses as an absolute URL."""
    if not value:
        return False
    return _parse_absolute_url(_strip_bearer_prefix(value)) is not None


def _fragment_params(parsed: ParseResult) -> dict[str, list[str]]:
    fragment = parsed.fragment
    if not fragment:
        return {}
    # SPA-style fragments ("#/callback?token=...") carry their own query part
    if "?" in fragment:
        fragment = fragment.split("?", 1)[1]
    return parse_qs(fragment)


def _first_param(params: dict[str, list[str]], names: tuple[str, ...]) -> str | None:
    for name in names:
        for value in params.get(name, []):
            if value.strip():
                return value
    return None


def extract_token_from_url(url: str) -> str | None:
    """Return the raw token embedded in a URL's query or fragment.

    Query parameters are searched first for every name in
    ``TOKEN_PARAMETER_NAMES``; the fragment is only consulted when the query
    has none of them.

    Example:
        >>> extract_token_from_url("https://example.com/cb?jwt=abc")
        'abc'
    """
    parsed = _parse_absolute_url(url.strip())
    if parsed is None:
        return None
    return _first_param(parse_qs(parsed.query), TOKEN_PARAMETER_NAMES) or _first_param(
        _fragment_params(parsed), TOKEN_PARAMETER_NAMES
    )


def normalize_bearer_token(value: object) -> str | None:
    """Normalize a raw token-like value into a usable bearer token.

    - Leading ``Bearer `` prefixes are stripped.
    - URL-shaped values yield the (normalized) token embedded in their query
      or fragment, or None when no token parameter is present. A URL is never
      returned as a token.
    - Blank or non-string values yield None.

    The function is idempotent: ``normalize(normalize(x)) == normalize(x)``.
    """
    if not isinstance(value, str):
        return None

    candidate = _strip_bearer_prefix(value)
    if not candidate:
        return None

    if _parse_absolute_url(candidate) is not None:
        embedded = extract_token_from_url(candidate)
        if embedded is None:
            return None
        return normalize_bearer_token(embedded)

    return candidate


def _is_one_time_link(parsed: ParseResult) -> bool:
    params = parse_qs(parsed.query)
    params.update(_fragment_params(parsed))
    if _first_param(params, ONE_TIME_LOGIN_PARAMETERS):
        return True
    return any(action.lower() == "token_login" for action in params.get("action", []))


def classify_token_candidate(value: object) -> TokenCandidate:
    """Classify a raw token-like value.

    Returns:
        ``BEARER`` with the normalized token, ``ONE_TIME`` or ``LOGIN_URL``
        with the link to visit once, or ``EMPTY``.
    """
    if not isinstance(value, str) or not _strip_bearer_prefix(value):
        return TokenCandidate(TokenKind.EMPTY, None)

    candidate = _strip_bearer_prefix(value)
    parsed = _parse_absolute_url(candidate)
    if parsed is None:
        return TokenCandidate(TokenKind.BEARER, candidate)

    token = normalize_bearer_token(candidate)
    if token is not None:
        LOG.debug("token_extracted_from_url", host=parsed.hostname)
        return TokenCandidate(TokenKind.BEARER, token)

    if _is_one_time_link(parsed):
        return TokenCandidate(TokenKind.ONE_TIME, candidate)
    return TokenCandidate(TokenKind.LOGIN_URL, candidate)
