"""First-class Python API for the tcnauth session core.

Provides ``TcnAuthClient``, the composition root that wires storage, the
cookie jar, route resolver, orchestrator and flows from settings. Create one
per process and pass it (or its collaborators) around explicitly.

Example::

    from tcnauth.client import TcnAuthClient

    with TcnAuthClient() as client:
        client.auth.login_with_password("member@example.com", "secret", remember=True)
        history = client.api.fetch_history("member")
"""

from __future__ import annotations

from tcnauth.api import FeatureApi
from tcnauth.auth import AuthService
from tcnauth.config import TcnAuthSettings, get_settings
from tcnauth.cookies import CookieJar
from tcnauth.logging import get_logger
from tcnauth.models import Session
from tcnauth.orchestrator import TokenRefreshOrchestrator
from tcnauth.profile import ProfileFetcher
from tcnauth.routing import RouteResolver
from tcnauth.session_store import SessionStore
from tcnauth.storage import (
    EncryptedSecretStore,
    KeyValueStore,
    LocalKeyValueStore,
    MemoryKeyValueStore,
    NullSecretStore,
    SecretStore,
)
from tcnauth.transport import HttpTransport, RequestsTransport
from tcnauth.woocommerce import WooCommerceAuthCache, derive_woocommerce_bundle

LOG = get_logger(__name__)


def create_key_value_store(settings: TcnAuthSettings) -> KeyValueStore:
    """Build the key/value store selected by ``TCNAUTH_STORAGE_BACKEND``.

    Raises:
        ValueError: If the backend is not supported.
    """
    config = settings.get_storage_config()
    if settings.storage_backend.lower() == "memory":
        return MemoryKeyValueStore()
    return LocalKeyValueStore(config["path"])


def create_secret_store(settings: TcnAuthSettings) -> SecretStore:
    """Encrypted credential cache, or a null store when remember-me is disabled."""
    if not settings.remember_credentials:
        return NullSecretStore()
    return EncryptedSecretStore(settings.secrets_file)


class TcnAuthClient:
    """Owns one session and every collaborator that touches it.

    Attributes:
        auth: Login, logout, and account flows.
        api: Discount and vendor catalog calls.
        orchestrator: Authenticated request path with token recovery.
        session_store: Persisted session state.
    """

    def __init__(
        self,
        settings: TcnAuthSettings | None = None,
        *,
        store: KeyValueStore | None = None,
        secrets: SecretStore | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store if store is not None else create_key_value_store(self.settings)
        self.secrets = secrets if secrets is not None else create_secret_store(self.settings)
        self.transport = transport or RequestsTransport(timeout=self.settings.request_timeout)

        self.cookie_jar = CookieJar(self.store)
        self.woocommerce_auth = WooCommerceAuthCache(self.store)
        bundle = derive_woocommerce_bundle(*self.settings.woocommerce_credentials())
        if bundle is not None and self.woocommerce_auth.get() is None:
            self.woocommerce_auth.store_bundle(bundle)

        self.resolver = RouteResolver(
            self.settings.base_url, self.transport, self.cookie_jar, bundle
        )
        self.session_store = SessionStore(self.store, self.cookie_jar, self.woocommerce_auth)
        self.profiles = ProfileFetcher(self.resolver)
        self.orchestrator = TokenRefreshOrchestrator(
            self.resolver,
            self.session_store,
            self.secrets,
            self.profiles,
            single_flight=self.settings.single_flight_refresh,
        )
        self.auth = AuthService(
            self.resolver,
            self.session_store,
            self.secrets,
            self.profiles,
            self.orchestrator,
            remember_enabled=self.settings.remember_credentials,
        )
        self.api = FeatureApi(self.orchestrator)
        LOG.debug(
            "client_initialized",
            base_url=self.settings.base_url,
            storage=self.settings.storage_backend,
            remember=self.secrets.available,
        )

    @property
    def session(self) -> Session | None:
        """The persisted session, without contacting the backend."""
        return self.session_store.restore()

    def ensure_valid_session(self) -> Session | None:
        return self.orchestrator.ensure_valid_session()

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Release the HTTP transport."""
        self.transport.close()

    def __enter__(self) -> TcnAuthClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
