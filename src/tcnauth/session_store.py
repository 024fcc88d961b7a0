"""Persisted session state.

One ``SessionStore`` per process owns the session keys in the key/value
store, plus the cookie jar and storefront header that are cleared with it.
"""

from __future__ import annotations

import json
import time

from tcnauth.cookies import CookieJar
from tcnauth.credentials import normalize_bearer_token
from tcnauth.logging import get_logger, redact_token
from tcnauth.models import Session, User
from tcnauth.storage.base import KeyValueStore
from tcnauth.storage.keys import SESSION_KEYS, StorageKey
from tcnauth.woocommerce import WooCommerceAuthCache

LOG = get_logger(__name__)

_LOCKED = "locked"
_TRUE = "true"


class SessionStore:
    """Read/write access to the persisted session.

    The bearer token is cached in memory after the first read; every write
    goes through to storage immediately.
    """

    def __init__(
        self,
        store: KeyValueStore,
        cookie_jar: CookieJar,
        woocommerce_auth: WooCommerceAuthCache,
    ) -> None:
        self.store = store
        self.cookie_jar = cookie_jar
        self.woocommerce_auth = woocommerce_auth
        self._token: str | None = None
        self._token_loaded = False

    # -- snapshot -------------------------------------------------------------

    def restore(self) -> Session | None:
        """Load the persisted session, or None when nothing is stored."""
        values = self.store.get_many(
            [
                StorageKey.TOKEN,
                StorageKey.REFRESH_TOKEN,
                StorageKey.USER_PROFILE,
                StorageKey.SESSION_LOCK,
                StorageKey.TOKEN_LOGIN_URL,
                StorageKey.REST_NONCE,
                StorageKey.TOKEN_EXPIRES_AT,
            ]
        )
        token = values.get(StorageKey.TOKEN) or None
        user_json = values.get(StorageKey.USER_PROFILE)
        if not token and not user_json:
            return None

        return Session(
            token=token,
            refresh_token=values.get(StorageKey.REFRESH_TOKEN) or None,
            rest_nonce=values.get(StorageKey.REST_NONCE) or None,
            token_login_url=values.get(StorageKey.TOKEN_LOGIN_URL) or None,
            user=self._decode_user(user_json),
            locked=values.get(StorageKey.SESSION_LOCK) == _LOCKED,
            token_expires_at=self._decode_expiry(values.get(StorageKey.TOKEN_EXPIRES_AT)),
        )

    def persist(self, session: Session) -> None:
        """Write a full session snapshot; absent fields are removed."""
        token = normalize_bearer_token(session.token)
        fields: dict[StorageKey, str | None] = {
            StorageKey.TOKEN: token,
            StorageKey.REFRESH_TOKEN: session.refresh_token,
            StorageKey.USER_PROFILE: json.dumps(session.user.to_dict()) if session.user else None,
            StorageKey.TOKEN_LOGIN_URL: session.token_login_url,
            StorageKey.REST_NONCE: session.rest_nonce,
            StorageKey.TOKEN_EXPIRES_AT: (
                repr(session.token_expires_at) if session.token_expires_at is not None else None
            ),
            StorageKey.SESSION_LOCK: _LOCKED if session.locked else None,
        }
        entries = {str(key): value for key, value in fields.items() if value}
        removals = [str(key) for key, value in fields.items() if not value]

        self.store.set_many(entries)
        self.store.remove_many(removals)
        self._token = token
        self._token_loaded = True
        LOG.info(
            "session_persisted",
            token=redact_token(token),
            user_id=session.user.id if session.user else None,
            locked=session.locked,
        )

    def clear(self) -> None:
        """Remove every session key, the cookie jar, and the storefront header."""
        self.store.remove_many([str(key) for key in SESSION_KEYS])
        self.cookie_jar.clear()
        self.woocommerce_auth.clear()
        self._token = None
        self._token_loaded = True
        LOG.info("session_cleared")

    # -- tokens ---------------------------------------------------------------

    def get_token(self) -> str | None:
        if not self._token_loaded:
            self._token = self.store.get(StorageKey.TOKEN) or None
            self._token_loaded = True
        return self._token

    def get_refresh_token(self) -> str | None:
        return self.store.get(StorageKey.REFRESH_TOKEN) or None

    def get_token_expires_at(self) -> float | None:
        return self._decode_expiry(self.store.get(StorageKey.TOKEN_EXPIRES_AT))

    def is_token_expired(self, now: float | None = None) -> bool:
        """True only when an expiry is recorded and has elapsed."""
        expires_at = self.get_token_expires_at()
        if expires_at is None:
            return False
        return (now if now is not None else time.time()) >= expires_at

    def store_tokens(
        self,
        token: str,
        *,
        refresh_token: str | None = None,
        expires_in: float | None = None,
    ) -> None:
        """Store a fresh bearer token.

        The refresh token is only replaced when a new one is given; the expiry
        is replaced (or removed) on every call.
        """
        entries = {str(StorageKey.TOKEN): token}
        removals: list[str] = []
        if refresh_token:
            entries[str(StorageKey.REFRESH_TOKEN)] = refresh_token
        if expires_in is not None and expires_in > 0:
            entries[str(StorageKey.TOKEN_EXPIRES_AT)] = repr(time.time() + expires_in)
        else:
            removals.append(str(StorageKey.TOKEN_EXPIRES_AT))
        self.store.set_many(entries)
        self.store.remove_many(removals)
        self._token = token
        self._token_loaded = True
        LOG.debug("session_token_stored", token=redact_token(token), expires_in=expires_in)

    # -- flags ----------------------------------------------------------------

    def set_locked(self, locked: bool) -> None:
        if locked:
            self.store.set(StorageKey.SESSION_LOCK, _LOCKED)
        else:
            self.store.remove(StorageKey.SESSION_LOCK)

    def is_locked(self) -> bool:
        return self.store.get(StorageKey.SESSION_LOCK) == _LOCKED

    def mark_password_authenticated(self) -> None:
        self.store.set(StorageKey.PASSWORD_AUTHENTICATED, _TRUE)

    def clear_password_authenticated(self) -> None:
        self.store.remove(StorageKey.PASSWORD_AUTHENTICATED)

    def has_password_authenticated(self) -> bool:
        return self.store.get(StorageKey.PASSWORD_AUTHENTICATED) == _TRUE

    # -- misc -----------------------------------------------------------------

    def get_token_login_url(self) -> str | None:
        return self.store.get(StorageKey.TOKEN_LOGIN_URL) or None

    def get_rest_nonce(self) -> str | None:
        return self.store.get(StorageKey.REST_NONCE) or None

    def get_user(self) -> User | None:
        return self._decode_user(self.store.get(StorageKey.USER_PROFILE))

    def update_user(self, user: User) -> None:
        """Replace the persisted user profile."""
        self.store.set(StorageKey.USER_PROFILE, json.dumps(user.to_dict()))
        LOG.debug("session_user_updated", user_id=user.id)

    @staticmethod
    def _decode_user(raw: str | None) -> User | None:
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            LOG.warning("session_user_profile_corrupt")
            return None
        return User.from_dict(data) if isinstance(data, dict) else None

    @staticmethod
    def _decode_expiry(raw: str | None) -> float | None:
        if not raw:
            return None
        try:
            return float(raw)
        except ValueError:
            return None
