"""Password login, registration, and account flows.

Login goes through the GN password login endpoint, whose response has grown
several generations of token fields. ``login_with_password`` reconciles them
into one persisted ``Session``.
"""

from __future__ import annotations

import dataclasses
import mimetypes
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

import requests

from tcnauth.credentials import TokenKind, classify_token_candidate, is_url_shaped
from tcnauth.endpoints import ENDPOINTS, Endpoints
from tcnauth.exceptions import AppError
from tcnauth.logging import get_logger, redact_token
from tcnauth.models import AccountStatus, AccountType, Session, User
from tcnauth.orchestrator import AuthState, TokenRefreshOrchestrator
from tcnauth.profile import ProfileFetcher, parse_user_payload
from tcnauth.routing import RouteResolver
from tcnauth.session_store import SessionStore
from tcnauth.storage.base import SecretStore
from tcnauth.storage.keys import SecretKey
from tcnauth.text import (
    extract_message,
    extract_notice,
    extract_response_message,
    extract_success_flag,
    parse_json_body,
    sanitize_error_message,
)
from tcnauth.transport import RequestSpec
from tcnauth.woocommerce import derive_woocommerce_bundle

LOG = get_logger(__name__)

LoginMode = Literal["cookie", "token"]

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}

REGISTRATION_SUCCESS = "Registration successful. Please log in to continue."
VENDOR_REGISTRATION_SUCCESS = (
    "Registration received. Your vendor account will be available once approved."
)
ENTRY_MEMBERSHIP_TIER = "blue"
ENTRY_MEMBERSHIP_PLAN = "blue-membership"


@dataclass(frozen=True)
class RegistrationOptions:
    """Input for ``AuthService.register_account``."""

    username: str
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    account_type: AccountType = AccountType.MEMBER
    vendor_tier: str | None = None
    registration_date: str | None = None


def _string(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _expires_in(payload: dict[str, Any]) -> float | None:
    for key in ("token_expires_in", "expires_in"):
        value = payload.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, int | float) and value > 0:
            return float(value)
        if isinstance(value, str) and value.strip().isdigit():
            return float(value.strip())
    return None


@dataclass
class _LoginTokens:
    token: str | None = None
    token_login_url: str | None = None
    one_time_url: str | None = None


def _resolve_login_tokens(payload: dict[str, Any]) -> _LoginTokens:
    """Apply the login token priority: api_token, token, then login links."""
    result = _LoginTokens()

    api_token = classify_token_candidate(payload.get("api_token"))
    if api_token.is_bearer:
        result.token = api_token.value

    raw_token = payload.get("token")
    if isinstance(raw_token, str) and is_url_shaped(raw_token):
        candidate = classify_token_candidate(raw_token)
        if candidate.kind is TokenKind.ONE_TIME:
            result.one_time_url = candidate.value
        else:
            result.token_login_url = raw_token.strip()
            if candidate.is_bearer and result.token is None:
                result.token = candidate.value
    elif result.token is None:
        candidate = classify_token_candidate(raw_token)
        if candidate.is_bearer:
            result.token = candidate.value

    for key in ("token_login_url", "login_url"):
        link = _string(payload.get(key))
        if link is None:
            continue
        candidate = classify_token_candidate(link)
        if candidate.kind is TokenKind.ONE_TIME:
            result.one_time_url = result.one_time_url or link
            continue
        result.token_login_url = result.token_login_url or link
        if candidate.is_bearer and result.token is None:
            result.token = candidate.value

    return result


class AuthService:
    """Login and account flows over the session core.

    Args:
        resolver: Route resolver for unauthenticated calls.
        session_store: Persisted session.
        secrets: Remembered credential store.
        profiles: Profile fetcher.
        orchestrator: Authenticated request path.
        remember_enabled: Allow storing the credential pair on "remember me".
    """

    def __init__(
        self,
        resolver: RouteResolver,
        session_store: SessionStore,
        secrets: SecretStore,
        profiles: ProfileFetcher,
        orchestrator: TokenRefreshOrchestrator,
        *,
        remember_enabled: bool = True,
        endpoints: Endpoints = ENDPOINTS,
    ) -> None:
        self.resolver = resolver
        self.session_store = session_store
        self.secrets = secrets
        self.profiles = profiles
        self.orchestrator = orchestrator
        self.remember_enabled = remember_enabled
        self.endpoints = endpoints
        if orchestrator.login is None:
            orchestrator.login = self._reauthenticate

    def _reauthenticate(self, identifier: str, password: str) -> Session:
        return self.login_with_password(identifier, password, remember=True)

    # -- login ----------------------------------------------------------------

    def login_with_password(
        self,
        identifier: str,
        password: str,
        *,
        mode: LoginMode = "cookie",
        remember: bool = False,
    ) -> Session:
        """Log in and persist the resulting session.

        Raises:
            AppError: ``AUTH_LOGIN_MISSING_CREDENTIALS`` for blank input,
                ``AUTH_WORDPRESS_CREDENTIALS`` when the backend refuses,
                ``NETWORK_UNREACHABLE`` when it cannot be reached.
        """
        username = identifier.strip()
        if not username or not password:
            raise AppError("AUTH_LOGIN_MISSING_CREDENTIALS")

        spec = RequestSpec(
            method="POST",
            headers=dict(_JSON_HEADERS),
            json={"username": username, "password": password, "mode": mode, "remember": remember},
        )
        try:
            response = self.resolver.fetch(self.endpoints.login, spec)
        except requests.RequestException as exc:
            LOG.warning("login_network_error", error=str(exc))
            raise AppError(
                "NETWORK_UNREACHABLE", metadata={"endpoint": self.endpoints.login}
            ) from exc

        payload = parse_json_body(response)
        metadata = {"status": response.status_code, "endpoint": self.endpoints.login}
        if not isinstance(payload, dict):
            LOG.warning("login_undecodable_response", status=response.status_code)
            raise AppError("AUTH_WORDPRESS_CREDENTIALS", metadata=metadata)

        if not response.ok or extract_success_flag(payload) is not True:
            message = extract_message(payload)
            LOG.info("login_rejected", status=response.status_code)
            raise AppError(
                "AUTH_WORDPRESS_CREDENTIALS",
                message=sanitize_error_message(message) if message else None,
                metadata=metadata,
            )

        tokens = _resolve_login_tokens(payload)
        refresh_token = _string(payload.get("refresh_token"))
        expires_in = _expires_in(payload)
        rest_nonce = _string(payload.get("rest_nonce")) or _string(payload.get("nonce"))

        self._store_woocommerce_credentials(payload.get("woocommerce"))

        for link in (tokens.one_time_url, tokens.token_login_url):
            if link:
                self._hydrate_cookie_session(link, tokens.token)

        user_payload = payload.get("user")
        user = parse_user_payload(user_payload) if isinstance(user_payload, dict) else None
        if user is None:
            user = self.profiles.fetch_profile(tokens.token).user

        session = Session(
            token=tokens.token,
            refresh_token=refresh_token,
            rest_nonce=rest_nonce,
            token_login_url=tokens.token_login_url,
            user=user,
            locked=False,
            token_expires_at=time.time() + expires_in if expires_in else None,
        )
        self.session_store.persist(session)
        self.session_store.mark_password_authenticated()
        self._remember_credentials(username, password, remember)
        if tokens.token:
            self.orchestrator.state = AuthState.AUTHENTICATED

        LOG.info(
            "login_succeeded",
            mode=mode,
            user_id=user.id if user else None,
            token=redact_token(tokens.token),
            cookie_link=bool(tokens.token_login_url or tokens.one_time_url),
        )
        self._check_account_status(user)
        return session

    def _check_account_status(self, user: User | None) -> None:
        if user is None:
            return
        if user.account_status is AccountStatus.SUSPENDED:
            self.logout()
            raise AppError("AUTH_ACCOUNT_SUSPENDED", metadata={"user_id": user.id})
        if user.account_type is AccountType.VENDOR and (
            user.vendor_status is AccountStatus.PENDING
            or user.account_status is AccountStatus.PENDING
        ):
            self.logout()
            raise AppError("AUTH_VENDOR_PENDING", metadata={"user_id": user.id})

    def _store_woocommerce_credentials(self, raw: Any) -> None:
        if not isinstance(raw, dict):
            return
        bundle = derive_woocommerce_bundle(
            _string(raw.get("consumer_key")),
            _string(raw.get("consumer_secret")),
            _string(raw.get("basic_auth")),
        )
        if bundle is None:
            return
        self.resolver.woocommerce = bundle
        self.session_store.woocommerce_auth.store_bundle(bundle)
        LOG.info("woocommerce_credentials_received")

    def _hydrate_cookie_session(self, url: str, token: str | None) -> int:
        """Visit a token-login link once so its cookies land in the jar.

        Returns:
            The HTTP status, or 0 on network failure.
        """
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = self.resolver.visit(url, RequestSpec(method="GET", headers=headers))
        except requests.RequestException as exc:
            LOG.warning("cookie_session_hydration_failed", error=str(exc))
            return 0
        LOG.debug("cookie_session_hydrated", status=response.status_code)
        return response.status_code

    def ensure_cookie_session(self) -> int:
        """Re-visit the stored token-login URL; 0 when none is stored."""
        url = self.session_store.get_token_login_url()
        if not url:
            return 0
        return self._hydrate_cookie_session(url, self.session_store.get_token())

    def _remember_credentials(self, identifier: str, password: str, remember: bool) -> None:
        if remember and self.remember_enabled and self.secrets.available:
            self.secrets.set_secret(SecretKey.REMEMBERED_EMAIL, identifier)
            self.secrets.set_secret(SecretKey.REMEMBERED_PASSWORD, password)
            return
        self.forget_credentials()

    def forget_credentials(self) -> None:
        self.secrets.remove_secret(SecretKey.REMEMBERED_EMAIL)
        self.secrets.remove_secret(SecretKey.REMEMBERED_PASSWORD)

    def logout(self) -> None:
        """Clear the session, cookies, storefront header, and remembered credentials."""
        self.session_store.clear()
        self.forget_credentials()
        self.orchestrator.state = AuthState.UNAUTHENTICATED
        LOG.info("logged_out")

    # -- lock -----------------------------------------------------------------

    def lock_session(self) -> None:
        """Lock the stored session without discarding it.

        A locked session is kept as-is by ``ensure_valid_session`` and needs
        a fresh password login before it counts as password authenticated.
        """
        self.session_store.set_locked(True)
        self.session_store.clear_password_authenticated()
        LOG.info("session_locked")

    def unlock_session(self) -> Session:
        """Unlock the stored session, loading the user when it is missing.

        Raises:
            AppError: ``AUTH_NO_SAVED_SESSION`` when nothing is stored.
        """
        session = self.session_store.restore()
        if session is None:
            raise AppError("AUTH_NO_SAVED_SESSION")

        self.session_store.set_locked(False)
        session.locked = False
        if session.user is None:
            result = self.profiles.fetch_profile(session.token)
            if result.user is not None:
                self.session_store.update_user(result.user)
                session.user = result.user
        LOG.info("session_unlocked", user_id=session.user.id if session.user else None)
        return session

    # -- profile --------------------------------------------------------------

    def _session_headers(self, base: dict[str, str] | None = None) -> dict[str, str]:
        headers = dict(base or {"Accept": "application/json"})
        nonce = self.session_store.get_rest_nonce()
        if nonce:
            headers["X-WP-Nonce"] = nonce
        return headers

    def refresh_user_profile(self) -> User | None:
        """Refetch the current user and persist it."""
        token = self.orchestrator.ensure_valid_token()
        result = self.profiles.fetch_profile(token)
        if result.user is None:
            LOG.info("profile_refresh_failed", status=result.status)
            return None
        self.session_store.update_user(result.user)
        return result.user

    def _user_from_response(self, response: requests.Response) -> User | None:
        payload = parse_json_body(response)
        if not isinstance(payload, dict):
            return None
        source = payload.get("user") if isinstance(payload.get("user"), dict) else payload
        if not any(key in source for key in ("id", "ID", "user_id", "email", "avatar_urls")):
            return None
        user = parse_user_payload(source)
        self.session_store.update_user(user)
        return user

    def upload_avatar(
        self,
        source: Path | bytes,
        file_name: str | None = None,
        mime_type: str | None = None,
    ) -> User:
        """Upload a new profile photo (multipart ``avatar`` field).

        Raises:
            AppError: ``AUTH_IMAGE_SELECTION_REQUIRED`` for an empty or missing
                image, ``PROFILE_AVATAR_UPDATE_FAILED`` when the upload fails.
        """
        if isinstance(source, Path):
            if not source.is_file():
                raise AppError("AUTH_IMAGE_SELECTION_REQUIRED", metadata={"path": str(source)})
            content = source.read_bytes()
            file_name = file_name or source.name
        else:
            content = source
        if not content:
            raise AppError("AUTH_IMAGE_SELECTION_REQUIRED")

        name = (file_name or "").strip() or "avatar.jpg"
        content_type = (mime_type or "").strip() or mimetypes.guess_type(name)[0] or "image/jpeg"
        spec = RequestSpec(
            method="POST",
            headers=self._session_headers(),
            files={"avatar": (name, content, content_type)},
        )
        response = self.orchestrator.request(self.endpoints.avatar, spec, require_token=False)
        if not response.ok:
            raise AppError(
                "PROFILE_AVATAR_UPDATE_FAILED",
                message=extract_response_message(response, "Unable to update profile photo."),
                metadata={"status": response.status_code, "endpoint": self.endpoints.avatar},
            )

        user = self._user_from_response(response) or self.refresh_user_profile()
        if user is None:
            raise AppError(
                "PROFILE_AVATAR_UPDATE_FAILED", metadata={"endpoint": self.endpoints.avatar}
            )
        LOG.info("avatar_uploaded", user_id=user.id)
        return user

    def delete_avatar(self) -> User | None:
        """Remove the profile photo and return the updated user."""
        spec = RequestSpec(method="DELETE", headers=self._session_headers())
        response = self.orchestrator.request(self.endpoints.avatar, spec, require_token=False)
        if not response.ok:
            raise AppError(
                "PROFILE_AVATAR_REMOVE_FAILED",
                message=extract_response_message(response, "Unable to remove profile photo."),
                metadata={"status": response.status_code, "endpoint": self.endpoints.avatar},
            )
        LOG.info("avatar_removed")
        return self._user_from_response(response) or self.refresh_user_profile()

    # -- passwords ------------------------------------------------------------

    def _post_password_change(self, path: str, body: dict[str, Any]) -> None:
        spec = RequestSpec(method="POST", headers=self._session_headers(_JSON_HEADERS), json=body)
        response = self.orchestrator.request(path, spec, require_token=False)
        payload = parse_json_body(response)
        if not response.ok or extract_success_flag(payload) is False:
            raise AppError(
                "AUTH_CHANGE_PASSWORD_FAILED",
                message=extract_response_message(response, "Unable to change password."),
                metadata={"status": response.status_code, "endpoint": path},
            )

    def change_password(self, current: str, new: str, confirm: str | None = None) -> None:
        """Change the password, falling back to the direct endpoint.

        The direct endpoint is only tried when the primary one failed and the
        current user id is known.
        """
        current_trimmed = current.strip()
        new_trimmed = new.strip()
        confirm_trimmed = (confirm if confirm is not None else new).strip()
        if not current_trimmed or not new_trimmed:
            raise AppError("AUTH_CHANGE_PASSWORD_FAILED")
        if confirm_trimmed != new_trimmed:
            raise AppError("AUTH_PASSWORD_MISMATCH")

        self.ensure_cookie_session()
        body = {
            "current_password": current_trimmed,
            "new_password": new_trimmed,
            "confirm_password": confirm_trimmed,
        }
        try:
            self._post_password_change(self.endpoints.change_password, body)
        except AppError as primary_error:
            user = self.session_store.get_user()
            if user is None or user.id <= 0:
                raise
            LOG.info("change_password_direct_fallback", status=primary_error.status)
            direct_body = {"user_id": user.id, **body}
            if user.email:
                direct_body["identifier"] = user.email
            self._post_password_change(self.endpoints.change_password_direct, direct_body)

        LOG.info("password_changed")
        self.refresh_user_profile()

    @staticmethod
    def _identifier_fields(identifier: str) -> dict[str, str]:
        return {
            key: identifier
            for key in ("identifier", "user_login", "user_email", "username", "email", "login")
        }

    def _post_public(self, path: str, body: dict[str, Any], error_id: str, fallback: str) -> Any:
        try:
            response = self.resolver.fetch(
                path, RequestSpec(method="POST", headers=dict(_JSON_HEADERS), json=body)
            )
        except requests.RequestException as exc:
            raise AppError("NETWORK_UNREACHABLE", metadata={"endpoint": path}) from exc
        payload = parse_json_body(response)
        if not response.ok or extract_success_flag(payload) is False:
            raise AppError(
                error_id,
                message=extract_response_message(response, fallback),
                metadata={"status": response.status_code, "endpoint": path},
            )
        return payload

    def request_password_reset(self, identifier: str) -> str | None:
        """Ask the backend to email a reset code; returns the server notice."""
        trimmed = identifier.strip()
        if not trimmed:
            raise AppError("AUTH_PASSWORD_RESET_EMAIL_FAILED")
        payload = self._post_public(
            self.endpoints.forgot_password,
            self._identifier_fields(trimmed),
            "AUTH_PASSWORD_RESET_EMAIL_FAILED",
            "Unable to send password reset email.",
        )
        LOG.info("password_reset_requested")
        return extract_notice(payload)

    def reset_password_with_code(
        self, identifier: str, code: str, new_password: str
    ) -> str | None:
        """Set a new password using an emailed verification code."""
        trimmed_identifier = identifier.strip()
        trimmed_code = code.strip()
        trimmed_password = new_password.strip()
        if not trimmed_identifier or not trimmed_code or not trimmed_password:
            raise AppError("AUTH_RESET_PASSWORD_FAILED")
        body = {
            **self._identifier_fields(trimmed_identifier),
            "verification_code": trimmed_code,
            "code": trimmed_code,
            "password": trimmed_password,
            "new_password": trimmed_password,
        }
        payload = self._post_public(
            self.endpoints.reset_password,
            body,
            "AUTH_RESET_PASSWORD_FAILED",
            "Unable to reset password.",
        )
        LOG.info("password_reset_with_code")
        return extract_notice(payload)

    # -- registration ---------------------------------------------------------

    def register_account(self, options: RegistrationOptions) -> str:
        """Create a member or vendor account; returns a success message.

        Members get the entry membership tier with a completed zero-total
        storefront order; vendors are created pending approval and must pick
        a vendor tier.
        """
        username = options.username.strip()
        email = options.email.strip()
        if not username or not email or not options.password:
            raise AppError("AUTH_REGISTER_ACCOUNT_FAILED")

        if options.account_type is AccountType.VENDOR:
            tier = (options.vendor_tier or "").strip()
            if not tier:
                raise AppError("AUTH_VENDOR_TIER_REQUIRED")
            payload = build_vendor_registration(options, tier)
            success = VENDOR_REGISTRATION_SUCCESS
        else:
            payload = build_member_registration(options)
            success = REGISTRATION_SUCCESS

        self._post_public(
            self.endpoints.register,
            payload,
            "AUTH_REGISTER_ACCOUNT_FAILED",
            "Unable to register a new account.",
        )
        LOG.info("account_registered", account_type=str(options.account_type))
        return success

    # -- member QR ------------------------------------------------------------

    def issue_member_qr(self) -> dict[str, Any]:
        """Issue a member QR payload and store it on the cached user."""
        spec = RequestSpec(method="POST", headers=self._session_headers(_JSON_HEADERS), json={})
        response = self.orchestrator.request(self.endpoints.member_qr, spec)
        payload = parse_json_body(response)
        if not response.ok or not isinstance(payload, dict) or extract_success_flag(payload) is False:
            raise AppError(
                "AUTH_MEMBER_QR_ISSUE_FAILED",
                message=extract_response_message(response, "Unable to generate your member QR code."),
                metadata={"status": response.status_code, "endpoint": self.endpoints.member_qr},
            )

        qr_value = next(
            (
                payload[key]
                for key in ("payload", "qr_payload", "token", "qr_token")
                if isinstance(payload.get(key), str) and payload[key]
            ),
            None,
        )
        user = self.session_store.get_user()
        if qr_value and user is not None:
            self.session_store.update_user(dataclasses.replace(user, qr_payload=qr_value))
        return payload

    def validate_member_qr(self, qr_payload: str) -> dict[str, Any]:
        """Validate a scanned member QR payload."""
        spec = RequestSpec(
            method="POST",
            headers=self._session_headers(_JSON_HEADERS),
            json={"qr_token": qr_payload, "payload": qr_payload},
        )
        response = self.orchestrator.request(self.endpoints.member_qr_validate, spec)
        payload = parse_json_body(response)
        if not response.ok or not isinstance(payload, dict) or extract_success_flag(payload) is False:
            raise AppError(
                "AUTH_MEMBER_QR_VALIDATE_FAILED",
                message=extract_response_message(response, "Unable to validate member QR code."),
                metadata={
                    "status": response.status_code,
                    "endpoint": self.endpoints.member_qr_validate,
                },
            )
        return payload


def _registration_date(options: RegistrationOptions) -> str:
    if options.registration_date and options.registration_date.strip():
        return options.registration_date.strip()
    return datetime.now(UTC).isoformat()


def build_member_registration(options: RegistrationOptions) -> dict[str, Any]:
    """Registration payload for a member with the entry membership order."""
    username = options.username.strip()
    email = options.email.strip()
    first_name = (options.first_name or "").strip() or None
    last_name = (options.last_name or "").strip() or None
    date = _registration_date(options)
    membership_meta = [
        {"key": "membership_tier", "value": ENTRY_MEMBERSHIP_TIER},
        {"key": "membership_plan", "value": ENTRY_MEMBERSHIP_PLAN},
    ]
    billing = {"first_name": first_name, "last_name": last_name, "email": email}
    shipping = {"first_name": first_name, "last_name": last_name}

    payload: dict[str, Any] = {
        "username": username,
        "email": email,
        "password": options.password,
        "role": "customer",
        "account_type": str(AccountType.MEMBER),
        "membership_tier": ENTRY_MEMBERSHIP_TIER,
        "membership_plan": ENTRY_MEMBERSHIP_PLAN,
        "create_membership_order": True,
        "membership_order_status": "completed",
        "membership_status": "active",
        "membership_purchase_date": date,
        "membership_subscription_date": date,
        "suppress_emails": True,
        "suppress_registration_email": True,
        "suppress_order_email": True,
        "send_user_notification": False,
        "woocommerce_customer": {
            "role": "customer",
            "email": email,
            "username": username,
            "first_name": first_name,
            "last_name": last_name,
            "billing": billing,
            "shipping": shipping,
            "meta_data": membership_meta,
        },
        "woocommerce_order": {
            "status": "completed",
            "set_paid": True,
            "payment_method": "app_membership_auto",
            "payment_method_title": "TCN App Membership",
            "currency": "THB",
            "total": "0",
            "line_items": [
                {
                    "name": "Blue Membership",
                    "product_sku": ENTRY_MEMBERSHIP_PLAN,
                    "quantity": 1,
                    "subtotal": "0",
                    "total": "0",
                    "meta_data": membership_meta,
                }
            ],
            "billing": billing,
            "shipping": shipping,
            "date_created_gmt": date,
            "date_paid_gmt": date,
            "meta_data": [
                {"key": "membership_purchase_date", "value": date},
                {"key": "membership_subscription_date", "value": date},
            ],
        },
    }
    if first_name:
        payload["first_name"] = first_name
    if last_name:
        payload["last_name"] = last_name
    return payload


def build_vendor_registration(options: RegistrationOptions, vendor_tier: str) -> dict[str, Any]:
    """Registration payload for a vendor awaiting approval."""
    payload: dict[str, Any] = {
        "username": options.username.strip(),
        "email": options.email.strip(),
        "password": options.password,
        "role": "vendor",
        "account_type": str(AccountType.VENDOR),
        "account_status": str(AccountStatus.PENDING),
        "vendor_status": str(AccountStatus.PENDING),
        "vendor_tier": vendor_tier,
        "registration_date": _registration_date(options),
        "send_user_notification": False,
    }
    if options.first_name and options.first_name.strip():
        payload["first_name"] = options.first_name.strip()
    if options.last_name and options.last_name.strip():
        payload["last_name"] = options.last_name.strip()
    return payload
