"""Token refresh and silent re-authentication.

Authenticated calls go through ``TokenRefreshOrchestrator.request``. A 401 or
403 answer (or an already elapsed token expiry) triggers one recovery:

1. refresh the bearer token against the token refresh endpoint;
2. if that fails and credentials were remembered, log in again with them;
3. if that fails too, clear the session and raise ``SessionExpiredError``.

A successful recovery replays the original call exactly once.

Concurrent callers share a single recovery: each caller records the token
generation it started with, and a caller that finds the generation already
advanced when it acquires the lock reuses that outcome instead of refreshing
again.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

import requests

from tcnauth.credentials import normalize_bearer_token
from tcnauth.endpoints import ENDPOINTS
from tcnauth.exceptions import AppError, SessionExpiredError, TokenUnavailableError
from tcnauth.logging import get_logger, redact_token
from tcnauth.models import Session
from tcnauth.profile import ProfileFetcher
from tcnauth.routing import RouteResolver
from tcnauth.session_store import SessionStore
from tcnauth.storage.base import SecretStore
from tcnauth.storage.keys import SecretKey
from tcnauth.text import parse_json_body
from tcnauth.transport import RequestSpec
from tcnauth.woocommerce import is_woocommerce_path

LOG = get_logger(__name__)

REJECTED_STATUSES = frozenset({401, 403})

# Performs a full password login; raises on failure.
LoginCallable = Callable[[str, str], Any]


class AuthState(StrEnum):
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    REAUTHENTICATING = "reauthenticating"
    UNAUTHENTICATED = "unauthenticated"


def _parse_expires_in(payload: dict[str, Any]) -> float | None:
    for key in ("expires_in", "token_expires_in"):
        value = payload.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, int | float) and value > 0:
            return float(value)
        if isinstance(value, str):
            try:
                parsed = float(value)
            except ValueError:
                continue
            if parsed > 0:
                return parsed
    return None


class TokenRefreshOrchestrator:
    """Issues authenticated calls and recovers from token expiry.

    Args:
        resolver: Route resolver used for every request.
        session_store: Persisted session.
        secrets: Store holding the remembered credential pair.
        profiles: Profile fetcher used by ``ensure_valid_session``.
        login: Full password login used for silent re-authentication.
        single_flight: Share one in-flight recovery between concurrent callers.
        clock: Time source (epoch seconds).
    """

    def __init__(
        self,
        resolver: RouteResolver,
        session_store: SessionStore,
        secrets: SecretStore,
        profiles: ProfileFetcher,
        *,
        login: LoginCallable | None = None,
        single_flight: bool = True,
        refresh_path: str = ENDPOINTS.token_refresh,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.resolver = resolver
        self.session_store = session_store
        self.secrets = secrets
        self.profiles = profiles
        self.login = login
        self.single_flight = single_flight
        self.refresh_path = refresh_path
        self._clock = clock
        self._lock = threading.Lock()
        self._generation = 0
        self.state = (
            AuthState.AUTHENTICATED if session_store.get_token() else AuthState.UNAUTHENTICATED
        )

    @property
    def generation(self) -> int:
        """Counter bumped by every completed recovery (success or failure)."""
        return self._generation

    def _set_state(self, state: AuthState) -> None:
        if state is not self.state:
            LOG.debug("auth_state_changed", previous=str(self.state), current=str(state))
        self.state = state

    # -- recovery steps -------------------------------------------------------

    def refresh(self) -> bool:
        """Exchange the current bearer for a new one.

        Returns:
            True when a new token was stored.
        """
        token = self.session_store.get_token()
        refresh_token = self.session_store.get_refresh_token()
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        body = {"refresh_token": refresh_token} if refresh_token else {}

        try:
            response = self.resolver.fetch(
                self.refresh_path, RequestSpec(method="POST", headers=headers, json=body)
            )
        except requests.RequestException as exc:
            LOG.warning("token_refresh_network_error", error=str(exc))
            return False

        payload = parse_json_body(response)
        if not response.ok or not isinstance(payload, dict):
            LOG.info("token_refresh_rejected", status=response.status_code)
            return False

        nested = payload.get("data")
        source = payload if "token" in payload or not isinstance(nested, dict) else nested
        new_token = normalize_bearer_token(source.get("token"))
        if new_token is None:
            LOG.info("token_refresh_missing_token", status=response.status_code)
            return False

        new_refresh = source.get("refresh_token")
        self.session_store.store_tokens(
            new_token,
            refresh_token=new_refresh if isinstance(new_refresh, str) and new_refresh else None,
            expires_in=_parse_expires_in(source),
        )
        LOG.info("token_refreshed", token=redact_token(new_token))
        return True

    def has_remembered_credentials(self) -> bool:
        if not self.secrets.available:
            return False
        return bool(
            self.secrets.get_secret(SecretKey.REMEMBERED_EMAIL)
            and self.secrets.get_secret(SecretKey.REMEMBERED_PASSWORD)
        )

    def reauthenticate(self) -> bool:
        """Log in again with the remembered credential pair.

        Returns:
            True when the login succeeded and produced a bearer token.
        """
        if self.login is None or not self.has_remembered_credentials():
            return False
        email = self.secrets.get_secret(SecretKey.REMEMBERED_EMAIL) or ""
        password = self.secrets.get_secret(SecretKey.REMEMBERED_PASSWORD) or ""
        try:
            self.login(email, password)
        except (AppError, requests.RequestException) as exc:
            LOG.warning("reauthentication_failed", error=str(exc))
            return False
        return self.session_store.get_token() is not None

    def _run_recovery(self, reason: str) -> str | None:
        LOG.info("token_recovery_started", reason=reason)
        self._set_state(AuthState.REFRESHING)
        if self.refresh():
            self._set_state(AuthState.AUTHENTICATED)
            return self.session_store.get_token()

        if self.has_remembered_credentials():
            self._set_state(AuthState.REAUTHENTICATING)
            if self.reauthenticate():
                LOG.info("reauthenticated_with_remembered_credentials")
                self._set_state(AuthState.AUTHENTICATED)
                return self.session_store.get_token()

        LOG.warning("token_recovery_failed", reason=reason)
        self.session_store.clear()
        self._set_state(AuthState.UNAUTHENTICATED)
        return None

    def recover(self, observed_generation: int | None = None, reason: str = "rejected") -> str | None:
        """Run one recovery, or reuse the outcome of a concurrent one.

        Args:
            observed_generation: ``generation`` read before the failing call.
            reason: Short label for logs.

        Returns:
            The usable token after recovery, or None when the session is gone.
        """
        if not self.single_flight:
            return self._run_recovery(reason)

        observed = self._generation if observed_generation is None else observed_generation
        with self._lock:
            if self._generation != observed:
                LOG.debug("token_recovery_reused", generation=self._generation)
                return self.session_store.get_token()
            try:
                return self._run_recovery(reason)
            finally:
                self._generation += 1

    # -- token access ---------------------------------------------------------

    def _preflight(self, generation: int) -> tuple[str | None, bool]:
        """Return ``(token, recovery_failed)`` after the expiry check."""
        token = self.session_store.get_token()
        if token and self.session_store.is_token_expired(self._clock()):
            token = self.recover(generation, reason="expired")
            return token, token is None
        return token, False

    def ensure_valid_token(self) -> str | None:
        """Return a usable bearer token, refreshing first when it has expired."""
        token, _ = self._preflight(self._generation)
        return token

    def require_token(self) -> str:
        """Return a usable bearer token or raise ``TokenUnavailableError``.

        No network call is made when no token is stored.
        """
        token = self.ensure_valid_token()
        if not token:
            raise TokenUnavailableError()
        return token

    # -- requests -------------------------------------------------------------

    def request(
        self,
        path: str,
        spec: RequestSpec | None = None,
        *,
        require_token: bool = True,
    ) -> requests.Response:
        """Perform an authenticated call with at most one recovery.

        Storefront paths fall back to the cached WooCommerce Basic header when
        no bearer is available, and retry once with it when the bearer is
        rejected, before any token recovery.

        Raises:
            TokenUnavailableError: No token and ``require_token`` is set.
            SessionExpiredError: Recovery failed; the session was cleared.
            requests.RequestException: Network failure.
        """
        spec = spec or RequestSpec()
        storefront_header = (
            self.session_store.woocommerce_auth.get() if is_woocommerce_path(path) else None
        )
        generation = self._generation
        token, recovery_failed = self._preflight(generation)
        if recovery_failed:
            raise SessionExpiredError(metadata={"endpoint": path, "reason": "expired"})

        if not token:
            if storefront_header:
                return self.resolver.fetch(path, spec.with_headers(Authorization=storefront_header))
            if require_token:
                raise TokenUnavailableError(metadata={"endpoint": path})
            return self.resolver.fetch(path, spec)

        response = self.resolver.fetch(path, spec.with_headers(Authorization=f"Bearer {token}"))
        if response.status_code not in REJECTED_STATUSES:
            return response

        status = response.status_code
        if storefront_header:
            LOG.info("storefront_basic_auth_retry", status=status)
            retried = self.resolver.fetch(path, spec.with_headers(Authorization=storefront_header))
            if retried.status_code not in REJECTED_STATUSES:
                return retried

        new_token = self.recover(generation, reason=f"http_{status}")
        if not new_token:
            raise SessionExpiredError(metadata={"status": status, "endpoint": path})

        LOG.debug("request_replayed", path=path.partition("?")[0])
        return self.resolver.fetch(path, spec.with_headers(Authorization=f"Bearer {new_token}"))

    # -- session validation ---------------------------------------------------

    def ensure_valid_session(self) -> Session | None:
        """Revalidate the persisted session against the backend.

        Locked sessions are returned untouched. Otherwise the profile is
        fetched with cookies, then with the bearer token; a fresh profile is
        persisted, an explicit rejection clears the session, and a network
        failure keeps the cached session.
        """
        session = self.session_store.restore()
        if session is None:
            self._set_state(AuthState.UNAUTHENTICATED)
            return None
        if session.locked:
            return session

        cookie_result = self.profiles.fetch_profile()
        if cookie_result.user is not None:
            self.session_store.update_user(cookie_result.user)
            session.user = cookie_result.user
            return session

        if session.token:
            token_result = self.profiles.fetch_profile(session.token)
            if token_result.user is not None:
                self.session_store.update_user(token_result.user)
                session.user = token_result.user
                self._set_state(AuthState.AUTHENTICATED)
                return session
            if token_result.rejected:
                LOG.info("session_rejected", status=token_result.status, via="bearer")
                self.session_store.clear()
                self._set_state(AuthState.UNAUTHENTICATED)
                return None
            if token_result.status == 0:
                return session

        if cookie_result.rejected:
            LOG.info("session_rejected", status=cookie_result.status, via="cookie")
            self.session_store.clear()
            self._set_state(AuthState.UNAUTHENTICATED)
            return None

        return session
