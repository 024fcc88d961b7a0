"""Tests for the requests-based HTTP transport."""

from http.cookiejar import DefaultCookiePolicy
from unittest.mock import MagicMock

import requests

from tcnauth.transport import DEFAULT_HEADERS, RequestSpec, RequestsTransport


class TestRequestSpec:
    """Tests for RequestSpec."""

    def test_with_headers_returns_copy(self):
        spec = RequestSpec(method="POST", headers={"Accept": "application/json"}, json={"a": 1})

        updated = spec.with_headers(Authorization="Bearer T")

        assert updated.headers == {"Accept": "application/json", "Authorization": "Bearer T"}
        assert spec.headers == {"Accept": "application/json"}
        assert (updated.method, updated.json) == ("POST", {"a": 1})

    def test_with_headers_overrides(self):
        spec = RequestSpec(headers={"Authorization": "Bearer OLD"})
        assert spec.with_headers(Authorization="Bearer NEW").headers == {
            "Authorization": "Bearer NEW"
        }

    def test_without_header_is_case_insensitive(self):
        spec = RequestSpec(headers={"authorization": "Bearer T", "Accept": "x"})
        assert spec.without_header("Authorization").headers == {"Accept": "x"}


class TestRequestsTransport:
    """Tests for RequestsTransport."""

    def test_session_cookie_store_is_disabled(self):
        session = MagicMock()

        RequestsTransport(session=session)

        policy = session.cookies.set_policy.call_args.args[0]
        assert isinstance(policy, DefaultCookiePolicy)
        assert policy.set_ok(MagicMock(), MagicMock()) is False
        assert policy.return_ok(MagicMock(), MagicMock()) is False

    def test_real_session_rejects_cookies(self):
        transport = RequestsTransport()
        request = requests.Request("GET", "https://example.com/").prepare()
        cookie = requests.cookies.create_cookie("wordpress_logged_in_x", "v", domain="example.com")

        assert transport.session.cookies._policy.set_ok(cookie, request) is False
        assert len(transport.session.cookies) == 0
        transport.close()

    def test_send_does_not_follow_redirects(self):
        session = MagicMock()
        session.request.return_value.status_code = 200
        transport = RequestsTransport(timeout=5.0, session=session)

        transport.send(
            "POST",
            "https://example.com/wp-json/gn/v1/login",
            headers={"Content-Type": "application/json"},
            json={"username": "m"},
        )

        session.request.assert_called_once_with(
            "POST",
            "https://example.com/wp-json/gn/v1/login",
            headers={"Content-Type": "application/json"},
            json={"username": "m"},
            data=None,
            files=None,
            params=None,
            timeout=5.0,
            allow_redirects=False,
        )

    def test_default_headers(self):
        transport = RequestsTransport()
        for name, value in DEFAULT_HEADERS.items():
            assert transport.session.headers[name] == value
        transport.close()

    def test_close(self):
        session = MagicMock()
        RequestsTransport(session=session).close()
        session.close.assert_called_once()
