"""Shared fixtures for unit tests.

Every collaborator is wired over in-memory storage and a scripted transport,
so tests never touch the network or the real config directory.
"""

import json
from dataclasses import dataclass, field
from typing import Any

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from tcnauth.auth import AuthService
from tcnauth.cookies import CookieJar
from tcnauth.orchestrator import TokenRefreshOrchestrator
from tcnauth.profile import ProfileFetcher
from tcnauth.routing import RouteResolver
from tcnauth.session_store import SessionStore
from tcnauth.storage.memory import MemoryKeyValueStore, MemorySecretStore
from tcnauth.woocommerce import WooCommerceAuthCache

BASE_URL = "https://example.com"


def make_response(
    status: int = 200,
    body: Any = None,
    headers: dict[str, str] | None = None,
    *,
    set_cookies: list[str] | None = None,
    url: str = BASE_URL,
) -> requests.Response:
    """Build a real ``requests.Response`` with a canned body.

    Args:
        status: HTTP status code.
        body: dict/list (sent as JSON), str, bytes, or None for an empty body.
        headers: Response headers.
        set_cookies: Set-Cookie values, merged the way requests merges them.
        url: Response URL.
    """
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.encoding = "utf-8"
    merged_headers = dict(headers or {})
    if isinstance(body, dict | list):
        response._content = json.dumps(body).encode("utf-8")
        merged_headers.setdefault("Content-Type", "application/json")
    elif isinstance(body, str):
        response._content = body.encode("utf-8")
    elif isinstance(body, bytes):
        response._content = body
    else:
        response._content = b""
    if set_cookies:
        merged_headers["Set-Cookie"] = ", ".join(set_cookies)
    response.headers = CaseInsensitiveDict(merged_headers)
    return response


@dataclass
class SentRequest:
    method: str
    url: str
    headers: dict[str, str]
    json: Any = None
    data: Any = None
    files: Any = None
    params: dict[str, Any] | None = None


@dataclass
class FakeTransport:
    """Scripted transport.

    Responses are served in order from ``responses``; an ``Exception`` entry
    is raised instead. When ``handler`` is set it answers every request.
    """

    responses: list[Any] = field(default_factory=list)
    handler: Any = None
    calls: list[SentRequest] = field(default_factory=list)
    closed: bool = False

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any = None,
        data: Any = None,
        files: Any = None,
        params: dict[str, Any] | None = None,
    ) -> requests.Response:
        request = SentRequest(method, url, dict(headers), json, data, files, params)
        self.calls.append(request)
        if self.handler is not None:
            return self.handler(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def respond():
    """The ``make_response`` helper."""
    return make_response


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def secrets() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def cookie_jar(store) -> CookieJar:
    return CookieJar(store)


@pytest.fixture
def woo_cache(store) -> WooCommerceAuthCache:
    return WooCommerceAuthCache(store)


@pytest.fixture
def resolver(transport, cookie_jar) -> RouteResolver:
    return RouteResolver(BASE_URL, transport, cookie_jar)


@pytest.fixture
def session_store(store, cookie_jar, woo_cache) -> SessionStore:
    return SessionStore(store, cookie_jar, woo_cache)


@pytest.fixture
def profiles(resolver) -> ProfileFetcher:
    return ProfileFetcher(resolver)


@pytest.fixture
def orchestrator(resolver, session_store, secrets, profiles) -> TokenRefreshOrchestrator:
    return TokenRefreshOrchestrator(resolver, session_store, secrets, profiles)


@pytest.fixture
def auth(resolver, session_store, secrets, profiles, orchestrator) -> AuthService:
    return AuthService(resolver, session_store, secrets, profiles, orchestrator)
