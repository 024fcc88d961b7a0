"""WooCommerce storefront credentials.

The storefront REST namespace (``/wp-json/wc/...``) authenticates with a
consumer key/secret pair, either as query parameters or as a Basic
``Authorization`` header. The header is cached alongside the session so the
orchestrator can fall back to it when no bearer token is usable.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from tcnauth.logging import get_logger
from tcnauth.storage.base import KeyValueStore
from tcnauth.storage.keys import StorageKey

LOG = get_logger(__name__)

WOOCOMMERCE_PATH_PREFIX = "/wp-json/wc/"


@dataclass(frozen=True)
class WooCommerceCredentialBundle:
    """Consumer key/secret pair plus the Basic header derived from it."""

    consumer_key: str
    consumer_secret: str
    basic_authorization_header: str | None = None


def _normalize_basic_header(header: str) -> str:
    trimmed = header.strip()
    if trimmed.lower().startswith("basic "):
        return "Basic " + trimmed[6:].strip()
    return f"Basic {trimmed}"


def derive_woocommerce_bundle(
    consumer_key: str | None,
    consumer_secret: str | None,
    header: str | None = None,
) -> WooCommerceCredentialBundle | None:
    """Build a credential bundle, or None when key or secret is blank.

    Example:
        >>> derive_woocommerce_bundle("ck_test", "cs_test").basic_authorization_header
        'Basic Y2tfdGVzdDpjc190ZXN0'
    """
    key = (consumer_key or "").strip()
    secret = (consumer_secret or "").strip()
    if not key or not secret:
        return None

    if header and header.strip():
        authorization = _normalize_basic_header(header)
    else:
        encoded = base64.b64encode(f"{key}:{secret}".encode()).decode("ascii")
        authorization = f"Basic {encoded}"

    return WooCommerceCredentialBundle(
        consumer_key=key,
        consumer_secret=secret,
        basic_authorization_header=authorization,
    )


def is_woocommerce_path(path: str) -> bool:
    """Return True for paths in the storefront REST namespace."""
    return path.startswith(WOOCOMMERCE_PATH_PREFIX)


def append_woocommerce_credentials(
    url: str,
    path: str,
    bundle: WooCommerceCredentialBundle | None,
) -> str:
    """Append ``consumer_key``/``consumer_secret`` to a storefront URL.

    Non-storefront paths and URLs that already carry a parameter are left
    untouched for that parameter.
    """
    if bundle is None or not is_woocommerce_path(path):
        return url

    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    present = {name for name, _ in query}
    for name, value in (
        ("consumer_key", bundle.consumer_key),
        ("consumer_secret", bundle.consumer_secret),
    ):
        if name not in present:
            query.append((name, value))
    return urlunsplit(parts._replace(query=urlencode(query, safe="/")))


class WooCommerceAuthCache:
    """Persisted storefront ``Authorization`` header.

    Seeded from configuration at startup and overwritten when a login
    response carries fresh storefront credentials.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._header: str | None = None
        self._loaded = False

    def get(self) -> str | None:
        if not self._loaded:
            self._header = self._store.get(StorageKey.WOOCOMMERCE_AUTH_HEADER)
            self._loaded = True
        return self._header

    def set(self, header: str | None) -> None:
        if header and header.strip():
            normalized = _normalize_basic_header(header)
            if normalized == self.get():
                return
            self._header = normalized
            self._loaded = True
            self._store.set(StorageKey.WOOCOMMERCE_AUTH_HEADER, normalized)
            LOG.debug("woocommerce_auth_header_stored")
        else:
            self.clear()

    def store_bundle(self, bundle: WooCommerceCredentialBundle | None) -> None:
        """Cache the header of *bundle*; a None bundle leaves the cache as is."""
        if bundle is not None and bundle.basic_authorization_header:
            self.set(bundle.basic_authorization_header)

    def clear(self) -> None:
        self._header = None
        self._loaded = True
        self._store.remove(StorageKey.WOOCOMMERCE_AUTH_HEADER)
