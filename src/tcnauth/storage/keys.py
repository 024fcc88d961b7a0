"""Persisted key names.

These names are stable across releases: renaming one silently logs every
user out.
"""

from enum import StrEnum


class StorageKey(StrEnum):
    """Keys in the plain session key space."""

    TOKEN = "wp_token"
    REFRESH_TOKEN = "wp_refresh_token"
    TOKEN_EXPIRES_AT = "wp_token_expires_at"
    USER_PROFILE = "user_profile"
    SESSION_LOCK = "session_locked"
    PASSWORD_AUTHENTICATED = "password_authenticated"
    TOKEN_LOGIN_URL = "token_login_url"
    REST_NONCE = "wp_rest_nonce"
    COOKIES = "wp_cookies"
    WOOCOMMERCE_AUTH_HEADER = "wc_auth_header"


class SecretKey(StrEnum):
    """Keys in the encrypted credential cache."""

    REMEMBERED_EMAIL = "remembered_email"
    REMEMBERED_PASSWORD = "remembered_password"


# Everything removed by a full logout (cookies and the storefront header are
# cleared through their own owners so their in-memory caches stay in sync).
SESSION_KEYS: tuple[StorageKey, ...] = (
    StorageKey.TOKEN,
    StorageKey.REFRESH_TOKEN,
    StorageKey.TOKEN_EXPIRES_AT,
    StorageKey.USER_PROFILE,
    StorageKey.SESSION_LOCK,
    StorageKey.PASSWORD_AUTHENTICATED,
    StorageKey.TOKEN_LOGIN_URL,
    StorageKey.REST_NONCE,
)
