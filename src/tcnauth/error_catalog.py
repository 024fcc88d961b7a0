"""Stable error taxonomy surfaced to users and logs.

Every ``AppError`` is built from one of these descriptors. Codes are grouped
by family and never reused:

- ``E1xxx`` generic failures
- ``E2xxx`` authentication and account flows
- ``E3000``-``E3099`` session and membership payment
- ``E31xx`` transactions / discounts
- ``E32xx`` admin actions
- ``E33xx`` vendor catalog
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ErrorSeverity = Literal["info", "warning", "error"]


@dataclass(frozen=True)
class ErrorDescriptor:
    """Catalog entry for a single error id.

    Attributes:
        id: Identifier used in code (e.g. ``"SESSION_EXPIRED"``).
        code: Short code shown to end users (e.g. ``"E3007"``).
        default_message: English message used when no override is given.
        description: What the error means, for developers.
        http_status: Typical HTTP status when the error originates server-side.
        severity: Display severity.
    """

    id: str
    code: str
    default_message: str
    description: str
    http_status: int | None = None
    severity: ErrorSeverity = "error"


def _entry(
    error_id: str,
    code: str,
    message: str,
    description: str,
    *,
    http_status: int | None = None,
    severity: ErrorSeverity = "error",
) -> tuple[str, ErrorDescriptor]:
    return error_id, ErrorDescriptor(
        id=error_id,
        code=code,
        default_message=message,
        description=description,
        http_status=http_status,
        severity=severity,
    )


ERROR_CATALOG: dict[str, ErrorDescriptor] = dict(
    [
        # Generic
        _entry(
            "UNKNOWN",
            "E1000",
            "An unexpected error occurred.",
            "Fallback for failures without a more specific code.",
        ),
        _entry(
            "SECURE_CREDENTIAL_STORE_FAILED",
            "E1001",
            "Unable to access secure credential storage.",
            "Reading or writing the encrypted credential cache failed.",
        ),
        _entry(
            "NETWORK_UNREACHABLE",
            "E1002",
            "Unable to reach the server. Check your connection and try again.",
            "The transport raised before any HTTP status was received.",
        ),
        # Authentication
        _entry(
            "AUTH_PASSWORD_LOGIN_FAILED",
            "E2000",
            "Unable to complete password login.",
            "Password login failed or returned an unusable payload.",
        ),
        _entry(
            "AUTH_NO_SAVED_SESSION",
            "E2002",
            "No saved session. Please log in with your password first.",
            "Unlock attempted without a stored session snapshot.",
        ),
        _entry(
            "AUTH_WORDPRESS_CREDENTIALS",
            "E2012",
            "Unable to log in with WordPress credentials.",
            "The login endpoint rejected the credentials or returned invalid data.",
            http_status=401,
        ),
        _entry(
            "AUTH_PASSWORD_RESET_EMAIL_FAILED",
            "E2015",
            "Unable to send password reset email.",
            "The reset-request endpoint returned an error.",
        ),
        _entry(
            "AUTH_RESET_PASSWORD_FAILED",
            "E2016",
            "Unable to reset password.",
            "The direct reset endpoint rejected the verification code or password.",
        ),
        _entry(
            "AUTH_REGISTER_ACCOUNT_FAILED",
            "E2017",
            "Unable to register a new account.",
            "Registration endpoint returned an error or the input was incomplete.",
        ),
        _entry(
            "AUTH_PASSWORD_MISMATCH",
            "E2018",
            "Passwords do not match.",
            "Client-side validation of the password confirmation failed.",
            severity="warning",
        ),
        _entry(
            "AUTH_VENDOR_TIER_REQUIRED",
            "E2019",
            "Please select a vendor tier.",
            "Vendor registration attempted without a tier.",
            severity="warning",
        ),
        _entry(
            "AUTH_CHANGE_PASSWORD_FAILED",
            "E2020",
            "Unable to change password.",
            "Both the primary and the direct change-password endpoints failed.",
        ),
        _entry(
            "AUTH_VENDOR_PENDING",
            "E2022",
            "Your vendor account is awaiting approval.",
            "Login succeeded but the vendor account has not been approved yet.",
            severity="warning",
        ),
        _entry(
            "AUTH_ACCOUNT_SUSPENDED",
            "E2031",
            "This account has been suspended.",
            "Profile reports a suspended account status.",
            http_status=403,
        ),
        _entry(
            "AUTH_IMAGE_SELECTION_REQUIRED",
            "E2025",
            "A valid image selection is required.",
            "Avatar upload invoked without image content.",
            severity="warning",
        ),
        _entry(
            "PROFILE_AVATAR_UPDATE_FAILED",
            "E2026",
            "Unable to update profile photo.",
            "Avatar upload endpoint returned an error.",
        ),
        _entry(
            "PROFILE_AVATAR_REMOVE_FAILED",
            "E2027",
            "Unable to remove profile photo.",
            "Avatar delete endpoint returned an error.",
        ),
        _entry(
            "AUTH_MEMBER_QR_VALIDATE_FAILED",
            "E2028",
            "Unable to validate member QR code.",
            "QR validation endpoint rejected the payload.",
        ),
        _entry(
            "AUTH_LOGIN_MISSING_CREDENTIALS",
            "E2029",
            "Please enter your username and password.",
            "Login invoked with a blank identifier or password.",
            severity="warning",
        ),
        _entry(
            "AUTH_MEMBER_QR_ISSUE_FAILED",
            "E2032",
            "Unable to generate your member QR code.",
            "QR issuance endpoint returned an error.",
        ),
        # Session / payment
        _entry(
            "SESSION_TOKEN_UNAVAILABLE",
            "E3000",
            "Your session has ended. Please log in again.",
            "A call required a bearer token and none was stored or recoverable.",
            http_status=401,
        ),
        _entry(
            "MEMBERSHIP_PAYMENT_SESSION_FAILED",
            "E3003",
            "Unable to start membership payment.",
            "The storefront rejected the payment session request.",
        ),
        _entry(
            "SESSION_EXPIRED",
            "E3007",
            "Your session has expired. Please log in again.",
            "Refresh and re-authentication both failed; the session was cleared.",
            http_status=401,
        ),
        # Transactions
        _entry(
            "TRANSACTION_FETCH_FAILED",
            "E3100",
            "Unable to load transactions.",
            "Transaction endpoint returned an error.",
        ),
        _entry(
            "TRANSACTION_RECORD_FAILED",
            "E3101",
            "Unable to record the transaction.",
            "Recording a discount transaction failed.",
        ),
        _entry(
            "TRANSACTION_MEMBER_LOOKUP_FAILED",
            "E3102",
            "Unable to find this member.",
            "Discount lookup for a member failed.",
        ),
        _entry(
            "TRANSACTION_HISTORY_FETCH_FAILED",
            "E3104",
            "Unable to load transaction history.",
            "Discount history endpoint returned an error.",
        ),
        # Admin
        _entry(
            "ADMIN_DASHBOARD_LOAD_FAILED",
            "E3200",
            "Unable to load the admin dashboard.",
            "Admin account listing failed.",
        ),
        _entry(
            "ADMIN_VENDOR_APPROVE_FAILED",
            "E3201",
            "Unable to approve vendor.",
            "Admin vendor approval failed.",
        ),
        _entry(
            "ADMIN_VENDOR_REJECT_FAILED",
            "E3202",
            "Unable to reject vendor.",
            "Admin vendor rejection failed.",
        ),
        # Vendor catalog
        _entry(
            "REGISTER_VENDOR_TIER_FETCH_FAILED",
            "E3300",
            "Unable to load vendor tiers for registration.",
            "Vendor tier catalog failed during registration.",
        ),
        _entry(
            "VENDOR_TIERS_FETCH_FAILED",
            "E3301",
            "Unable to load vendor tiers.",
            "Vendor tier catalog endpoint returned an error.",
        ),
    ]
)


def get_error_descriptor(error_id: str) -> ErrorDescriptor:
    """Look up a descriptor, falling back to ``UNKNOWN`` for unknown ids."""
    return ERROR_CATALOG.get(error_id, ERROR_CATALOG["UNKNOWN"])


def find_descriptor_by_code(code: str) -> ErrorDescriptor | None:
    """Find the descriptor that owns a user-facing code such as ``E2012``."""
    return next((d for d in ERROR_CATALOG.values() if d.code == code), None)


def find_descriptor_by_message(message: str) -> ErrorDescriptor | None:
    """Find the descriptor whose default message equals *message*."""
    normalized = message.strip()
    return next((d for d in ERROR_CATALOG.values() if d.default_message == normalized), None)
