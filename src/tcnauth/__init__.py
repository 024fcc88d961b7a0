"""tcnauth - session and authentication core for the TCN member app backend.

Reconciles the WordPress backend's cookie sessions, bearer tokens, one-time
login links and WooCommerce consumer credentials into one persisted session.

This package provides:
- Bearer token normalization and token-login link detection
- A hand-managed WordPress cookie jar
- ``?rest_route=`` fallback for hosts without pretty permalinks
- Token refresh and silent re-authentication
- Login, registration and account flows

Example:
    >>> from tcnauth import TcnAuthClient
    >>> with TcnAuthClient() as client:
    ...     client.auth.login_with_password("member@example.com", "secret")
    ...     client.api.fetch_history("member")
"""

from tcnauth.auth import AuthService, RegistrationOptions
from tcnauth.client import TcnAuthClient
from tcnauth.config import TcnAuthSettings, get_settings
from tcnauth.cookies import CookieJar
from tcnauth.credentials import classify_token_candidate, normalize_bearer_token
from tcnauth.exceptions import (
    AppError,
    ConfigurationError,
    EncryptionError,
    SessionExpiredError,
    StorageError,
    TcnAuthError,
    TokenUnavailableError,
)
from tcnauth.models import AccountStatus, AccountType, MembershipInfo, Session, User
from tcnauth.orchestrator import AuthState, TokenRefreshOrchestrator
from tcnauth.routing import RouteResolver
from tcnauth.woocommerce import WooCommerceCredentialBundle, derive_woocommerce_bundle

__version__ = "0.4.0"

__all__ = [
    # Version
    "__version__",
    # Python API
    "TcnAuthClient",
    "AuthService",
    "RegistrationOptions",
    # Session core
    "CookieJar",
    "RouteResolver",
    "TokenRefreshOrchestrator",
    "AuthState",
    "normalize_bearer_token",
    "classify_token_candidate",
    "WooCommerceCredentialBundle",
    "derive_woocommerce_bundle",
    # Models
    "Session",
    "User",
    "MembershipInfo",
    "AccountType",
    "AccountStatus",
    # Configuration
    "TcnAuthSettings",
    "get_settings",
    # Exceptions
    "TcnAuthError",
    "AppError",
    "TokenUnavailableError",
    "SessionExpiredError",
    "ConfigurationError",
    "EncryptionError",
    "StorageError",
]
