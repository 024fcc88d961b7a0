"""Session and user data types.

``User`` instances are produced by ``tcnauth.profile.parse_user_payload`` and
round-trip through the persisted ``user_profile`` JSON via ``to_dict`` /
``from_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class AccountType(StrEnum):
    MEMBER = "member"
    VENDOR = "vendor"
    ADMIN = "admin"
    STAFF = "staff"


class AccountStatus(StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


def _enum_or_none(enum_cls: type[StrEnum], value: Any) -> Any:
    try:
        return enum_cls(value) if value else None
    except ValueError:
        return None


@dataclass(frozen=True)
class MembershipBenefit:
    id: str
    title: str
    description: str | None = None
    discount_percentage: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "discount_percentage": self.discount_percentage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MembershipBenefit:
        discount = data.get("discount_percentage")
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            description=data.get("description"),
            discount_percentage=float(discount) if isinstance(discount, int | float) else None,
        )


@dataclass(frozen=True)
class MembershipInfo:
    """Membership tier, expiry, and benefit list."""

    tier: str
    expires_at: str | None = None
    benefits: tuple[MembershipBenefit, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "expires_at": self.expires_at,
            "benefits": [benefit.to_dict() for benefit in self.benefits],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MembershipInfo:
        benefits = data.get("benefits") or []
        return cls(
            tier=str(data.get("tier", "")),
            expires_at=data.get("expires_at"),
            benefits=tuple(
                MembershipBenefit.from_dict(item) for item in benefits if isinstance(item, dict)
            ),
        )


@dataclass(frozen=True)
class User:
    """Normalized backend user.

    Attributes:
        id: Numeric user id, ``-1`` when the backend id was unparseable.
        email: Email address (may be empty).
        name: Display name, falling back to the email.
        avatar_url: Cache-busted avatar URL.
        qr_payload: Member QR code payload, when issued.
    """

    id: int
    email: str
    name: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    membership: MembershipInfo | None = None
    account_type: AccountType | None = None
    account_status: AccountStatus | None = None
    vendor_tier: str | None = None
    vendor_status: AccountStatus | None = None
    qr_payload: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar_url": self.avatar_url,
            "membership": self.membership.to_dict() if self.membership else None,
            "account_type": str(self.account_type) if self.account_type else None,
            "account_status": str(self.account_status) if self.account_status else None,
            "vendor_tier": self.vendor_tier,
            "vendor_status": str(self.vendor_status) if self.vendor_status else None,
            "qr_payload": self.qr_payload,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        """Rebuild a user persisted with ``to_dict``."""
        raw_id = data.get("id")
        membership = data.get("membership")
        return cls(
            id=raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else -1,
            email=str(data.get("email") or ""),
            name=str(data.get("name") or data.get("email") or ""),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            avatar_url=data.get("avatar_url"),
            membership=MembershipInfo.from_dict(membership) if isinstance(membership, dict) else None,
            account_type=_enum_or_none(AccountType, data.get("account_type")),
            account_status=_enum_or_none(AccountStatus, data.get("account_status")),
            vendor_tier=data.get("vendor_tier"),
            vendor_status=_enum_or_none(AccountStatus, data.get("vendor_status")),
            qr_payload=data.get("qr_payload"),
        )


@dataclass
class Session:
    """Snapshot of the persisted session.

    ``token`` is never a URL or one-time login link. ``locked`` suppresses
    automatic re-validation.
    """

    token: str | None = None
    refresh_token: str | None = None
    rest_nonce: str | None = None
    token_login_url: str | None = None
    user: User | None = None
    locked: bool = False
    token_expires_at: float | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) or self.user is not None
