"""Hand-managed cookie jar for WordPress session cookies.

The HTTP transport runs with its native cookie store disabled, so the
WordPress login cookies (``wordpress_logged_in_*``, ``wp-settings-*``,
``woocommerce_session_*``...) are mirrored here instead: parsed from
``Set-Cookie`` response headers, merged into one persisted ``Cookie``
header, and replayed on later requests.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final

import requests

from tcnauth.logging import get_logger
from tcnauth.storage.base import KeyValueStore
from tcnauth.storage.keys import StorageKey

LOG = get_logger(__name__)

# Cookie name prefixes mirrored into the jar (matched case-insensitively).
RECOGNIZED_COOKIE_PREFIXES: Final[tuple[str, ...]] = (
    "wordpress_",
    "wp-",
    "wp_",
    "woocommerce_",
)

_COOKIE_PAIR: Final[re.Pattern[str]] = re.compile(
    r"(?:^|[;,])\s*((?:"
    + "|".join(re.escape(prefix) for prefix in RECOGNIZED_COOKIE_PREFIXES)
    + r")[^=;,\s]*)=([^;,]*)",
    re.IGNORECASE,
)

_DELETED: Final[str] = "deleted"


def _case_insensitive_get(mapping: Mapping[str, str], key: str) -> str | None:
    lower_key = key.lower()
    return next((v for k, v in mapping.items() if k.lower() == lower_key), None)


def parse_cookie_header(header: str | None) -> dict[str, str]:
    """Parse a ``name=value; name2=value2`` header into an ordered dict."""
    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for part in header.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            cookies[name] = value
    return cookies


def serialize_cookie_header(cookies: Mapping[str, str]) -> str:
    """Serialize cookies into a single ``Cookie`` header value."""
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def extract_set_cookie_pairs(set_cookie_values: list[str]) -> list[tuple[str, str]]:
    """Return every recognized ``(name, value)`` pair in ``Set-Cookie`` values.

    Attributes such as ``path=/`` or ``expires=...`` never match because
    their names do not start with a recognized prefix.
    """
    pairs: list[tuple[str, str]] = []
    for header in set_cookie_values:
        for match in _COOKIE_PAIR.finditer(header):
            pairs.append((match.group(1), match.group(2).strip()))
    return pairs


def _set_cookie_values(response: requests.Response) -> list[str]:
    """Collect raw Set-Cookie header values from a response.

    urllib3 keeps repeated headers separately; requests' merged header view
    joins them with commas, which the pair regex also handles.
    """
    raw_headers = getattr(getattr(response, "raw", None), "headers", None)
    getlist = getattr(raw_headers, "getlist", None)
    if callable(getlist):
        values = [v for v in getlist("Set-Cookie") if isinstance(v, str)]
        if values:
            return values
    merged = response.headers.get("Set-Cookie")
    return [merged] if merged else []


class CookieJar:
    """Write-through cookie cache over a ``KeyValueStore``.

    The in-memory copy is hydrated lazily from storage on first use and only
    dropped by ``reset()`` (tests) or ``clear()`` (logout).
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._cookies: dict[str, str] | None = None

    def _hydrate(self) -> dict[str, str]:
        if self._cookies is None:
            self._cookies = parse_cookie_header(self._store.get(StorageKey.COOKIES))
            LOG.debug("cookie_jar_hydrated", count=len(self._cookies))
        return self._cookies

    @property
    def cookies(self) -> dict[str, str]:
        """A copy of the current cookies, in insertion order."""
        return dict(self._hydrate())

    def header(self) -> str | None:
        """The merged ``Cookie`` header, or None when the jar is empty."""
        cookies = self._hydrate()
        return serialize_cookie_header(cookies) if cookies else None

    def _persist(self) -> None:
        header = self.header()
        if header:
            self._store.set(StorageKey.COOKIES, header)
        else:
            self._store.remove(StorageKey.COOKIES)

    def build_request_headers(
        self,
        headers: Mapping[str, str] | None = None,
        *,
        with_credentials: bool = True,
    ) -> dict[str, str]:
        """Return request headers with the persisted ``Cookie`` attached.

        A ``Cookie`` header supplied by the caller (any casing) always wins,
        and ``with_credentials=False`` sends no cookies at all.
        """
        merged = dict(headers or {})
        if not with_credentials or _case_insensitive_get(merged, "Cookie") is not None:
            return merged
        header = self.header()
        if header:
            merged["Cookie"] = header
        return merged

    def apply_set_cookie(self, set_cookie_values: list[str]) -> bool:
        """Merge ``Set-Cookie`` values into the jar.

        Returns:
            True if the jar changed (and was persisted).
        """
        pairs = extract_set_cookie_pairs(set_cookie_values)
        if not pairs:
            return False

        cookies = self._hydrate()
        changed = False
        for name, value in pairs:
            if not value or value.lower() == _DELETED:
                if cookies.pop(name, None) is not None:
                    changed = True
                continue
            if cookies.get(name) != value:
                cookies[name] = value
                changed = True

        if changed:
            self._persist()
            LOG.debug("cookie_jar_updated", count=len(cookies))
        return changed

    def sync_from_response(self, response: requests.Response) -> bool:
        """Mirror recognized cookies from a response into the jar."""
        return self.apply_set_cookie(_set_cookie_values(response))

    def clear(self) -> None:
        """Forget all cookies, in memory and in storage."""
        self._cookies = {}
        self._store.remove(StorageKey.COOKIES)
        LOG.info("cookie_jar_cleared")

    def reset(self) -> None:
        """Drop the in-memory cache so the next access re-reads storage."""
        self._cookies = None
