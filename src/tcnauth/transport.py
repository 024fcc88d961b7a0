"""HTTP transport: a requests.Session with its cookie store switched off.

Cookies are owned by ``tcnauth.cookies.CookieJar``; the session must never
add, store, or replay cookies on its own or the two copies drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Final, Protocol

import requests

from tcnauth.logging import get_logger

LOG = get_logger(__name__)

DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "User-Agent": "tcnauth",
}


@dataclass(frozen=True)
class RequestSpec:
    """Everything needed to issue (and re-issue) one request.

    Kept immutable so a fallback or replay attempt sends exactly the same
    request; headers are rebuilt per attempt by the caller.

    Attributes:
        method: HTTP method.
        headers: Caller headers (Cookie and Authorization are added later).
        json: JSON body.
        data: Form body.
        files: Multipart files, in requests' ``files=`` format.
        params: Query parameters.
        with_credentials: Attach the cookie jar's Cookie header.
    """

    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None
    data: Any = None
    files: Any = None
    params: dict[str, Any] | None = None
    with_credentials: bool = True

    def with_headers(self, **headers: str) -> RequestSpec:
        """Return a copy with *headers* merged over the existing ones."""
        merged = dict(self.headers)
        merged.update(headers)
        return replace(self, headers=merged)

    def without_header(self, name: str) -> RequestSpec:
        """Return a copy with *name* removed (case-insensitive)."""
        lower = name.lower()
        return replace(self, headers={k: v for k, v in self.headers.items() if k.lower() != lower})


class HttpTransport(Protocol):
    """Anything that can send a prepared request and return a response."""

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
    ) -> requests.Response: ...

    def close(self) -> None: ...


class _RejectAllCookies(DefaultCookiePolicy):
    def set_ok(self, cookie: Any, request: Any) -> bool:
        return False

    def return_ok(self, cookie: Any, request: Any) -> bool:
        return False


class RequestsTransport:
    """Blocking transport over ``requests.Session``.

    Redirects are not followed here: each hop carries ``Set-Cookie`` headers
    the cookie jar must see, so ``RouteResolver`` follows them itself.
    Network failures propagate as ``requests.RequestException``.
    """

    def __init__(self, timeout: float = 20.0, session: requests.Session | None = None) -> None:
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.cookies.set_policy(_RejectAllCookies())
        self.session.headers.update(DEFAULT_HEADERS)

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
        LOG.debug("http_request", method=method, url=url.split("?", 1)[0])
        response = self.session.request(
            method,
            url,
            headers=headers,
            json=json,
            data=data,
            files=files,
            params=params,
            timeout=self.timeout,
            allow_redirects=False,
        )
        LOG.debug("http_response", method=method, status=response.status_code)
        return response

    def close(self) -> None:
        self.session.close()
