"""Backend REST paths.

All paths are relative to the site root and start with ``/wp-json`` so the
route resolver can derive the ``?rest_route=`` fallback from them.
"""

from dataclasses import dataclass
from typing import Final

GN_NAMESPACE: Final[str] = "/wp-json/gn/v1"


@dataclass(frozen=True)
class Endpoints:
    """Backend surface used by the session core and feature helpers."""

    login: str = f"{GN_NAMESPACE}/login"
    token_refresh: str = f"{GN_NAMESPACE}/token/refresh"
    profile: str = "/wp-json/wp/v2/users/me"
    avatar: str = f"{GN_NAMESPACE}/profile/avatar"
    change_password: str = f"{GN_NAMESPACE}/profile/password"
    change_password_direct: str = f"{GN_NAMESPACE}/profile/password/direct"
    forgot_password: str = f"{GN_NAMESPACE}/forgot-password"
    reset_password: str = f"{GN_NAMESPACE}/reset-password"
    register: str = f"{GN_NAMESPACE}/register"
    member_qr: str = f"{GN_NAMESPACE}/member/qr"
    member_qr_validate: str = f"{GN_NAMESPACE}/member/qr/validate"
    discount_lookup: str = f"{GN_NAMESPACE}/discounts/lookup"
    discount_transactions: str = f"{GN_NAMESPACE}/discounts/transactions"
    discount_history: str = f"{GN_NAMESPACE}/discounts/history"
    vendor_tiers: str = f"{GN_NAMESPACE}/vendors/tiers"


ENDPOINTS: Final[Endpoints] = Endpoints()
