"""Route resolution with the ``?rest_route=`` fallback.

Some hosts disable pretty permalinks, which makes every ``/wp-json/...`` path
404 with ``code: rest_no_route``. The same route is still reachable as
``/?rest_route=/...``; the resolver retries there exactly once.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Final
from urllib.parse import quote, urljoin, urlsplit

import requests

from tcnauth.cookies import CookieJar
from tcnauth.logging import get_logger
from tcnauth.text import parse_json_body
from tcnauth.transport import HttpTransport, RequestSpec
from tcnauth.woocommerce import WooCommerceCredentialBundle, append_woocommerce_credentials

LOG = get_logger(__name__)

REST_PREFIX = "/wp-json"
REST_NO_ROUTE = "rest_no_route"

MAX_REDIRECTS: Final[int] = 5
REDIRECT_STATUSES: Final[frozenset[int]] = frozenset({301, 302, 303, 307, 308})
_CREDENTIAL_HEADERS: Final[frozenset[str]] = frozenset({"authorization", "cookie"})


def is_rest_no_route(response: requests.Response) -> bool:
    """Return True for the WordPress "no route matched" 404."""
    if response.status_code != 404:
        return False
    payload = parse_json_body(response)
    return isinstance(payload, dict) and payload.get("code") == REST_NO_ROUTE


class RouteResolver:
    """Builds backend URLs and performs requests with route fallback.

    Every response (primary and fallback) is synced into the cookie jar.
    Network errors propagate as ``requests.RequestException``.
    """

    def __init__(
        self,
        base_url: str,
        transport: HttpTransport,
        cookie_jar: CookieJar,
        woocommerce: WooCommerceCredentialBundle | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.cookie_jar = cookie_jar
        self.woocommerce = woocommerce

    def build_url(self, path: str) -> str:
        """Canonical ``{base_url}{path}`` URL."""
        if not path.startswith("/"):
            path = f"/{path}"
        return append_woocommerce_credentials(f"{self.base_url}{path}", path, self.woocommerce)

    def build_rest_route_url(self, path: str) -> str:
        """Legacy ``{base_url}/?rest_route=...`` URL for *path*.

        Example:
            >>> resolver.build_rest_route_url("/wp-json/gn/v1/login")
            'https://example.com/?rest_route=/gn/v1/login'
        """
        route, _, query = path.partition("?")
        if route.startswith(REST_PREFIX):
            route = route[len(REST_PREFIX) :]
        if not route.startswith("/"):
            route = f"/{route}"
        url = f"{self.base_url}/?rest_route={quote(route, safe='/')}"
        if query:
            url = f"{url}&{query}"
        return append_woocommerce_credentials(url, path, self.woocommerce)

    def _send_once(self, url: str, spec: RequestSpec) -> requests.Response:
        headers = self.cookie_jar.build_request_headers(
            spec.headers, with_credentials=spec.with_credentials
        )
        response = self.transport.send(
            spec.method,
            url,
            headers=headers,
            json=spec.json,
            data=spec.data,
            files=spec.files,
            params=spec.params,
        )
        self.cookie_jar.sync_from_response(response)
        return response

    def _send(self, url: str, spec: RequestSpec) -> requests.Response:
        """Send *spec* and follow redirects, syncing cookies on every hop.

        The jar's Cookie header (and any Authorization) is only re-attached
        while the hop stays on the original host.

        Raises:
            requests.TooManyRedirects: After ``MAX_REDIRECTS`` hops.
        """
        origin = urlsplit(url).netloc.lower()
        history: list[requests.Response] = []
        response = self._send_once(url, spec)
        while response.status_code in REDIRECT_STATUSES:
            location = response.headers.get("Location")
            if not location:
                break
            if len(history) >= MAX_REDIRECTS:
                raise requests.TooManyRedirects(
                    f"Exceeded {MAX_REDIRECTS} redirects", response=response
                )
            history.append(response)
            url = urljoin(url, location)
            same_host = urlsplit(url).netloc.lower() == origin
            spec = _redirected_spec(spec, response.status_code, same_host)
            LOG.debug("http_redirect", status=response.status_code, url=url.split("?", 1)[0])
            response = self._send_once(url, spec)
        if history:
            response.history = history
        return response

    def visit(self, url: str, spec: RequestSpec | None = None) -> requests.Response:
        """Request an absolute URL (no route fallback), syncing its cookies.

        Used for token-login links, whose only purpose is the ``Set-Cookie``
        headers they answer with, usually on a redirect.
        """
        return self._send(url, spec or RequestSpec())

    def fetch(self, path: str, spec: RequestSpec | None = None) -> requests.Response:
        """Perform *spec* against *path*, falling back to ``?rest_route=`` once.

        Only a 404 whose JSON body has ``code == "rest_no_route"`` triggers
        the fallback; any other response is returned unmodified.
        """
        spec = spec or RequestSpec()
        response = self._send(self.build_url(path), spec)
        if not is_rest_no_route(response):
            return response

        LOG.info("rest_route_fallback", path=path.partition("?")[0], method=spec.method)
        return self._send(self.build_rest_route_url(path), spec)


def _redirected_spec(spec: RequestSpec, status: int, same_host: bool) -> RequestSpec:
    """The request to send to a redirect target.

    303 always becomes GET, and 301/302 turn a POST into a GET, dropping
    the body. Query parameters already live in the Location URL.
    """
    method = spec.method.upper()
    if (status == 303 and method != "HEAD") or (status in (301, 302) and method == "POST"):
        body_headers = {k: v for k, v in spec.headers.items() if k.lower() != "content-type"}
        spec = replace(spec, method="GET", headers=body_headers, json=None, data=None, files=None)
    spec = replace(spec, params=None)
    if same_host:
        return spec
    headers = {k: v for k, v in spec.headers.items() if k.lower() not in _CREDENTIAL_HEADERS}
    return replace(spec, headers=headers, with_credentials=False)
