"""User profile normalization and fetching.

The backend returns users in several shapes (core ``/wp/v2/users/me``, the
login plugin's ``user`` object, avatar upload responses). Each field is read
through an ordered tuple of candidate keys; dotted keys reach into nested
objects such as ``meta``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Final
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from tcnauth.endpoints import ENDPOINTS
from tcnauth.logging import get_logger
from tcnauth.models import AccountStatus, AccountType, MembershipBenefit, MembershipInfo, User
from tcnauth.routing import RouteResolver
from tcnauth.text import parse_json_body
from tcnauth.transport import RequestSpec

LOG = get_logger(__name__)

ID_KEYS: Final = ("id", "ID", "user_id")
EMAIL_KEYS: Final = ("email", "user_email")
NAME_KEYS: Final = (
    "name",
    "user_display_name",
    "display",
    "display_name",
    "nicename",
    "username",
    "login",
)
FIRST_NAME_KEYS: Final = (
    "first_name",
    "firstName",
    "meta.first_name",
    "meta.firstName",
    "meta_first_name",
)
LAST_NAME_KEYS: Final = (
    "last_name",
    "lastName",
    "meta.last_name",
    "meta.lastName",
    "meta_last_name",
)
MEMBERSHIP_KEYS: Final = ("membership", "meta.membership", "meta.membership_info")
TIER_KEYS: Final = ("tier", "level", "membership_tier")
EXPIRY_KEYS: Final = ("expiresAt", "expires_at", "expiry", "membership_expiry")
BENEFIT_KEYS: Final = ("benefits", "membership_benefits")
ACCOUNT_TYPE_KEYS: Final = ("account_type", "user_type", "meta.account_type")
ACCOUNT_STATUS_KEYS: Final = ("account_status", "meta.account_status", "status")
VENDOR_TIER_KEYS: Final = ("vendor_tier", "meta.vendor_tier", "vendor.tier")
VENDOR_STATUS_KEYS: Final = ("vendor_status", "meta.vendor_status", "vendor.status")
QR_PAYLOAD_KEYS: Final = ("qr_payload", "qr_code", "meta.qr_payload")

_ACCOUNT_TYPE_WORDS: Final[dict[str, AccountType]] = {
    "administrator": AccountType.ADMIN,
    "admin": AccountType.ADMIN,
    "vendor": AccountType.VENDOR,
    "merchant": AccountType.VENDOR,
    "partner": AccountType.VENDOR,
    "staff": AccountType.STAFF,
    "editor": AccountType.STAFF,
    "shop_manager": AccountType.STAFF,
}

_ACCOUNT_STATUS_WORDS: Final[dict[str, AccountStatus]] = {
    "active": AccountStatus.ACTIVE,
    "approved": AccountStatus.ACTIVE,
    "enabled": AccountStatus.ACTIVE,
    "pending": AccountStatus.PENDING,
    "awaiting_approval": AccountStatus.PENDING,
    "review": AccountStatus.PENDING,
    "pending_review": AccountStatus.PENDING,
    "rejected": AccountStatus.REJECTED,
    "denied": AccountStatus.REJECTED,
    "declined": AccountStatus.REJECTED,
    "suspended": AccountStatus.SUSPENDED,
    "banned": AccountStatus.SUSPENDED,
    "blocked": AccountStatus.SUSPENDED,
    "inactive": AccountStatus.INACTIVE,
    "disabled": AccountStatus.INACTIVE,
    "expired": AccountStatus.INACTIVE,
}


def _lookup(payload: dict[str, Any], key: str) -> Any:
    value: Any = payload
    for part in key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _first_value(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = _lookup(payload, key)
        if value is not None:
            return value
    return None


def _first_string(payload: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = _lookup(payload, key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _parse_id(value: Any) -> int:
    if isinstance(value, bool):
        return -1
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return -1
    return -1


def normalize_account_type(value: Any) -> AccountType | None:
    """Map a role or type word onto ``AccountType``; unknown words are members."""
    if not isinstance(value, str) or not value.strip():
        return None
    return _ACCOUNT_TYPE_WORDS.get(value.strip().lower(), AccountType.MEMBER)


def normalize_account_status(value: Any) -> AccountStatus | None:
    """Map a status word onto ``AccountStatus``; unknown words yield None."""
    if not isinstance(value, str) or not value.strip():
        return None
    return _ACCOUNT_STATUS_WORDS.get(value.strip().lower().replace("-", "_"))


def parse_discount_value(value: Any) -> float | None:
    """Parse ``10``, ``10.5`` or ``"10%"`` into a float."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace("%", "").strip())
        except ValueError:
            return None
    return None


def _parse_benefits(value: Any) -> tuple[MembershipBenefit, ...]:
    if not isinstance(value, list):
        return ()
    benefits = []
    for index, raw in enumerate(value):
        if not isinstance(raw, dict):
            continue
        title = _first_string(raw, ("title", "name", "label"))
        if title is None:
            continue
        discount = None
        for key in ("discountPercentage", "discount", "percent"):
            discount = parse_discount_value(raw.get(key))
            if discount is not None:
                break
        benefit_id = _first_value(raw, ("id", "slug", "key"))
        benefits.append(
            MembershipBenefit(
                id=str(benefit_id if benefit_id is not None else index),
                title=title,
                description=_first_string(raw, ("description", "summary", "details", "text")),
                discount_percentage=discount,
            )
        )
    return tuple(benefits)


def parse_membership(payload: dict[str, Any]) -> MembershipInfo | None:
    """Extract membership info, or None when no membership data is present."""
    source = _first_value(payload, MEMBERSHIP_KEYS)
    if not isinstance(source, dict):
        source = {}

    tier = _first_value(source, TIER_KEYS)
    if tier is None:
        tier = _first_value(payload, ("meta.membership_tier", "membership_tier"))
    expiry = _first_value(source, EXPIRY_KEYS)
    if expiry is None:
        expiry = _first_value(payload, ("meta.membership_expiry", "membership_expiry"))
    benefit_source = _first_value(source, BENEFIT_KEYS)
    if benefit_source is None:
        benefit_source = _first_value(payload, ("meta.membership_benefits", "membership_benefits"))
    benefits = _parse_benefits(benefit_source)

    if tier is None and expiry is None and not benefits:
        return None
    return MembershipInfo(
        tier=str(tier) if tier is not None else "",
        expires_at=str(expiry) if expiry is not None else None,
        benefits=benefits,
    )


def select_avatar_url(avatar_urls: Any) -> str | None:
    """Pick the best avatar from a WordPress ``avatar_urls`` map.

    Preference: ``full``, then numeric sizes from largest to smallest, then
    any other non-blank string value.
    """
    if not isinstance(avatar_urls, dict):
        return None

    def usable(value: Any) -> str | None:
        return value.strip() if isinstance(value, str) and value.strip() else None

    if url := usable(avatar_urls.get("full")):
        return url

    numeric = sorted(
        (str(key) for key in avatar_urls if str(key).isdigit()),
        key=int,
        reverse=True,
    )
    for key in numeric:
        if url := usable(avatar_urls.get(key)):
            return url

    for value in avatar_urls.values():
        if url := usable(value):
            return url
    return None


def add_cache_buster(url: str, stamp: int | None = None) -> str:
    """Set a ``v=<stamp>`` query parameter so clients refetch changed avatars."""
    stamp = stamp if stamp is not None else int(time.time() * 1000)
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "v"]
    query.append(("v", str(stamp)))
    return urlunsplit(parts._replace(query=urlencode(query)))


def parse_user_payload(payload: dict[str, Any]) -> User:
    """Normalize any backend user shape into a ``User``."""
    email = _first_string(payload, EMAIL_KEYS) or ""
    name = _first_string(payload, NAME_KEYS) or email

    avatar = select_avatar_url(payload.get("avatar_urls")) or _first_string(
        payload, ("avatar_url", "avatarUrl")
    )

    roles = payload.get("roles")
    account_type = normalize_account_type(_first_string(payload, ACCOUNT_TYPE_KEYS))
    if account_type is None and isinstance(roles, list) and roles:
        account_type = normalize_account_type(roles[0])

    qr_payload = _first_value(payload, QR_PAYLOAD_KEYS)

    return User(
        id=_parse_id(_first_value(payload, ID_KEYS)),
        email=email,
        name=name,
        first_name=_first_string(payload, FIRST_NAME_KEYS),
        last_name=_first_string(payload, LAST_NAME_KEYS),
        avatar_url=add_cache_buster(avatar) if avatar else None,
        membership=parse_membership(payload),
        account_type=account_type,
        account_status=normalize_account_status(_first_string(payload, ACCOUNT_STATUS_KEYS)),
        vendor_tier=_first_string(payload, VENDOR_TIER_KEYS),
        vendor_status=normalize_account_status(_first_string(payload, VENDOR_STATUS_KEYS)),
        qr_payload=qr_payload if isinstance(qr_payload, str) and qr_payload else None,
    )


@dataclass(frozen=True)
class ProfileFetchResult:
    """Outcome of a profile fetch.

    ``status`` is the HTTP status, or 0 when the request failed at the
    network level or the body could not be decoded.
    """

    user: User | None
    status: int

    @property
    def rejected(self) -> bool:
        return self.status in (401, 403)


class ProfileFetcher:
    """Fetches ``/wp-json/wp/v2/users/me`` with a bearer token or cookies."""

    def __init__(self, resolver: RouteResolver, path: str = ENDPOINTS.profile) -> None:
        self.resolver = resolver
        self.path = path

    def fetch_profile(self, token: str | None = None) -> ProfileFetchResult:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.resolver.fetch(self.path, RequestSpec(method="GET", headers=headers))
        except requests.RequestException as exc:
            LOG.warning("profile_fetch_network_error", error=str(exc))
            return ProfileFetchResult(None, 0)

        if not response.ok:
            LOG.debug("profile_fetch_rejected", status=response.status_code, bearer=bool(token))
            return ProfileFetchResult(None, response.status_code)

        payload = parse_json_body(response)
        if not isinstance(payload, dict):
            LOG.warning("profile_fetch_undecodable", status=response.status_code)
            return ProfileFetchResult(None, 0)

        return ProfileFetchResult(parse_user_payload(payload), response.status_code)
