"""Tests for token refresh and silent re-authentication."""

import threading
import time

import pytest
import requests

from tcnauth.exceptions import SessionExpiredError, TokenUnavailableError
from tcnauth.models import Session, User
from tcnauth.orchestrator import AuthState, TokenRefreshOrchestrator
from tcnauth.storage.keys import SecretKey, StorageKey
from tcnauth.transport import RequestSpec

HISTORY = "/wp-json/gn/v1/discounts/history"
REFRESH_URL = "https://example.com/wp-json/gn/v1/token/refresh"
LOGIN_URL = "https://example.com/wp-json/gn/v1/login"


def _remember(secrets, email="m@example.com", password="pw"):
    secrets.set_secret(SecretKey.REMEMBERED_EMAIL, email)
    secrets.set_secret(SecretKey.REMEMBERED_PASSWORD, password)


class TestRefresh:
    """Tests for TokenRefreshOrchestrator.refresh."""

    def test_sends_bearer_and_refresh_token(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("OLD", refresh_token="R1")
        transport.queue(respond(200, {"token": "NEW"}))

        assert orchestrator.refresh()

        call = transport.calls[0]
        assert (call.method, call.url) == ("POST", REFRESH_URL)
        assert call.headers["Authorization"] == "Bearer OLD"
        assert call.json == {"refresh_token": "R1"}
        assert session_store.get_token() == "NEW"
        assert session_store.get_refresh_token() == "R1"

    def test_nested_payload_rotates_refresh_token(
        self, orchestrator, session_store, transport, respond, monkeypatch
    ):
        monkeypatch.setattr("tcnauth.session_store.time.time", lambda: 1000.0)
        session_store.store_tokens("OLD", refresh_token="R1")
        transport.queue(
            respond(200, {"data": {"token": "Bearer NEW", "refresh_token": "R2", "expires_in": "120"}})
        )

        assert orchestrator.refresh()

        assert session_store.get_token() == "NEW"
        assert session_store.get_refresh_token() == "R2"
        assert session_store.get_token_expires_at() == 1120.0

    def test_rejected(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("OLD")
        transport.queue(respond(401, {"code": "jwt_auth_invalid_token"}))

        assert not orchestrator.refresh()
        assert session_store.get_token() == "OLD"

    def test_missing_token(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("OLD")
        transport.queue(respond(200, {"token": "https://example.com/no-token-here"}))

        assert not orchestrator.refresh()

    def test_network_error(self, orchestrator, session_store, transport):
        session_store.store_tokens("OLD")
        transport.queue(requests.ConnectionError("offline"))

        assert not orchestrator.refresh()


class TestRequest:
    """Tests for TokenRefreshOrchestrator.request."""

    def test_success_sends_bearer(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("T")
        transport.queue(respond(200, {"items": []}))

        response = orchestrator.request(HISTORY)

        assert response.json() == {"items": []}
        assert transport.calls[0].headers["Authorization"] == "Bearer T"

    def test_rejection_refreshes_once_and_replays(
        self, orchestrator, session_store, transport, respond
    ):
        session_store.store_tokens("OLD", refresh_token="R")
        transport.queue(
            respond(401, {"code": "jwt_auth_invalid_token"}),
            respond(200, {"token": "NEW"}),
            respond(200, {"items": [1]}),
        )

        response = orchestrator.request(HISTORY, RequestSpec(params={"scope": "member"}))

        assert response.json() == {"items": [1]}
        assert [call.headers.get("Authorization") for call in transport.calls] == [
            "Bearer OLD",
            "Bearer OLD",
            "Bearer NEW",
        ]
        assert transport.calls[1].url == REFRESH_URL
        assert transport.calls[2].params == {"scope": "member"}
        assert orchestrator.state is AuthState.AUTHENTICATED

    def test_forbidden_also_recovers(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("OLD")
        transport.queue(respond(403, {}), respond(200, {"token": "NEW"}), respond(200, {}))

        assert orchestrator.request(HISTORY).status_code == 200

    def test_replay_is_not_retried_again(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("OLD")
        transport.queue(respond(401, {}), respond(200, {"token": "NEW"}), respond(401, {}))

        response = orchestrator.request(HISTORY)

        assert response.status_code == 401
        assert len(transport.calls) == 3

    def test_other_errors_are_not_recovered(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("T")
        transport.queue(respond(500, {"code": "internal"}))

        assert orchestrator.request(HISTORY).status_code == 500
        assert len(transport.calls) == 1

    def test_failed_recovery_clears_session(
        self, orchestrator, session_store, cookie_jar, transport, respond
    ):
        session_store.persist(Session(token="OLD", user=User(id=1, email="m@example.com", name="M")))
        cookie_jar.apply_set_cookie(["wordpress_logged_in_x=v"])
        transport.queue(respond(401, {}), respond(401, {}))

        with pytest.raises(SessionExpiredError) as exc_info:
            orchestrator.request(HISTORY)

        assert exc_info.value.code == "E3007"
        assert exc_info.value.metadata == {"status": 401, "endpoint": HISTORY}
        assert session_store.restore() is None
        assert session_store.get_token() is None
        assert cookie_jar.header() is None
        assert orchestrator.state is AuthState.UNAUTHENTICATED
        assert len(transport.calls) == 2

    def test_reauthenticates_with_remembered_credentials(
        self, auth, orchestrator, session_store, secrets, transport, respond
    ):
        session_store.store_tokens("OLD")
        _remember(secrets)
        transport.queue(
            respond(401, {}),
            respond(500, {"code": "refresh_failed"}),
            respond(200, {"success": True, "token": "NEW", "user": {"id": 7, "email": "m@example.com"}}),
            respond(200, {"items": []}),
        )

        response = orchestrator.request(HISTORY)

        assert response.status_code == 200
        login_call = transport.calls[2]
        assert login_call.url == LOGIN_URL
        assert login_call.json["username"] == "m@example.com"
        assert login_call.json["password"] == "pw"
        assert transport.calls[3].headers["Authorization"] == "Bearer NEW"
        assert session_store.get_user().id == 7

    def test_failed_reauthentication_clears_session(
        self, auth, orchestrator, session_store, secrets, transport, respond
    ):
        session_store.store_tokens("OLD")
        _remember(secrets)
        transport.queue(
            respond(401, {}),
            respond(401, {}),
            respond(403, {"success": False, "message": "<p>Wrong password</p>"}),
        )

        with pytest.raises(SessionExpiredError):
            orchestrator.request(HISTORY)

        assert session_store.get_token() is None
        assert orchestrator.state is AuthState.UNAUTHENTICATED

    def test_expired_token_is_refreshed_before_the_call(
        self, resolver, session_store, secrets, profiles, transport, respond
    ):
        orchestrator = TokenRefreshOrchestrator(
            resolver, session_store, secrets, profiles, clock=lambda: time.time() + 3600
        )
        session_store.store_tokens("OLD", expires_in=60)
        transport.queue(respond(200, {"token": "NEW"}), respond(200, {}))

        orchestrator.request(HISTORY)

        assert transport.calls[0].url == REFRESH_URL
        assert transport.calls[1].headers["Authorization"] == "Bearer NEW"

    def test_expired_token_without_recovery_raises(
        self, resolver, session_store, secrets, profiles, transport, respond
    ):
        orchestrator = TokenRefreshOrchestrator(
            resolver, session_store, secrets, profiles, clock=lambda: time.time() + 3600
        )
        session_store.store_tokens("OLD", expires_in=60)
        transport.queue(respond(401, {}))

        with pytest.raises(SessionExpiredError) as exc_info:
            orchestrator.request(HISTORY)

        assert exc_info.value.metadata["reason"] == "expired"
        assert [call.url for call in transport.calls] == [REFRESH_URL]

    def test_missing_token_raises_without_network(self, orchestrator, transport):
        with pytest.raises(TokenUnavailableError) as exc_info:
            orchestrator.request(HISTORY)

        assert exc_info.value.code == "E3000"
        assert transport.calls == []

    def test_optional_token_uses_cookies(self, orchestrator, cookie_jar, transport, respond):
        cookie_jar.apply_set_cookie(["wordpress_logged_in_x=v"])
        transport.queue(respond(200, {}))

        orchestrator.request("/wp-json/gn/v1/vendors/tiers", require_token=False)

        headers = transport.calls[0].headers
        assert "Authorization" not in headers
        assert headers["Cookie"] == "wordpress_logged_in_x=v"


class TestStorefrontFallback:
    """Tests for the WooCommerce Basic header fallback."""

    ORDERS = "/wp-json/wc/v3/orders"

    def test_no_token_uses_basic_header(self, orchestrator, woo_cache, transport, respond):
        woo_cache.set("Basic abc")
        transport.queue(respond(200, []))

        orchestrator.request(self.ORDERS)

        assert transport.calls[0].headers["Authorization"] == "Basic abc"

    def test_rejected_bearer_retries_with_basic_header(
        self, orchestrator, session_store, woo_cache, transport, respond
    ):
        session_store.store_tokens("T")
        woo_cache.set("Basic abc")
        transport.queue(respond(401, {}), respond(200, []))

        response = orchestrator.request(self.ORDERS)

        assert response.status_code == 200
        assert [call.headers["Authorization"] for call in transport.calls] == [
            "Bearer T",
            "Basic abc",
        ]

    def test_basic_header_only_for_storefront_paths(
        self, orchestrator, woo_cache, transport
    ):
        woo_cache.set("Basic abc")

        with pytest.raises(TokenUnavailableError):
            orchestrator.request(HISTORY)
        assert transport.calls == []


class TestTokenAccess:
    """Tests for ensure_valid_token and require_token."""

    def test_require_token_without_token(self, orchestrator, transport):
        with pytest.raises(TokenUnavailableError):
            orchestrator.require_token()
        assert transport.calls == []

    def test_require_token_returns_stored_token(self, orchestrator, session_store):
        session_store.store_tokens("T")
        assert orchestrator.require_token() == "T"

    def test_ensure_valid_token_refreshes_expired(
        self, resolver, session_store, secrets, profiles, transport, respond
    ):
        orchestrator = TokenRefreshOrchestrator(
            resolver, session_store, secrets, profiles, clock=lambda: time.time() + 3600
        )
        session_store.store_tokens("OLD", expires_in=1)
        transport.queue(respond(200, {"token": "NEW"}))

        assert orchestrator.ensure_valid_token() == "NEW"


class TestSingleFlight:
    """Tests for shared recovery between concurrent callers."""

    def test_stale_generation_reuses_outcome(self, orchestrator, session_store, transport, respond):
        session_store.store_tokens("OLD")
        observed = orchestrator.generation
        transport.queue(respond(200, {"token": "NEW"}))

        assert orchestrator.recover(observed) == "NEW"
        assert orchestrator.recover(observed) == "NEW"

        assert len(transport.calls) == 1
        assert orchestrator.generation == observed + 1

    def test_failed_recovery_also_advances_generation(
        self, orchestrator, session_store, transport, respond
    ):
        session_store.store_tokens("OLD")
        transport.queue(respond(401, {}))

        assert orchestrator.recover() is None
        assert orchestrator.generation == 1

    def test_concurrent_rejections_share_one_refresh(
        self, orchestrator, session_store, transport, respond
    ):
        session_store.store_tokens("OLD")
        barrier = threading.Barrier(2)

        def handler(request):
            if request.url == REFRESH_URL:
                time.sleep(0.05)
                return respond(200, {"token": "NEW"})
            if request.headers.get("Authorization") == "Bearer OLD":
                barrier.wait(timeout=5)
                return respond(401, {})
            return respond(200, {"ok": True})

        transport.handler = handler
        results: list[int] = []
        errors: list[Exception] = []

        def worker():
            try:
                results.append(orchestrator.request(HISTORY).status_code)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []
        assert results == [200, 200]
        assert sum(call.url == REFRESH_URL for call in transport.calls) == 1

    def test_disabled_single_flight_refreshes_every_time(
        self, resolver, session_store, secrets, profiles, transport, respond
    ):
        orchestrator = TokenRefreshOrchestrator(
            resolver, session_store, secrets, profiles, single_flight=False
        )
        session_store.store_tokens("OLD")
        transport.queue(respond(200, {"token": "A"}), respond(200, {"token": "B"}))

        assert orchestrator.recover(0) == "A"
        assert orchestrator.recover(0) == "B"
        assert len(transport.calls) == 2


class TestEnsureValidSession:
    """Tests for ensure_valid_session."""

    USER = User(id=1, email="m@example.com", name="Old Name")

    def test_no_session(self, orchestrator, transport):
        assert orchestrator.ensure_valid_session() is None
        assert transport.calls == []

    def test_locked_session_is_not_revalidated(self, orchestrator, session_store, transport):
        session_store.persist(Session(token="T", user=self.USER, locked=True))

        session = orchestrator.ensure_valid_session()

        assert session is not None and session.locked
        assert transport.calls == []

    def test_cookie_profile_refreshes_user(self, orchestrator, session_store, transport, respond):
        session_store.persist(Session(token="T", user=self.USER))
        transport.queue(respond(200, {"id": 1, "name": "New Name"}))

        session = orchestrator.ensure_valid_session()

        assert session.user.name == "New Name"
        assert session_store.get_user().name == "New Name"
        assert "Authorization" not in transport.calls[0].headers

    def test_bearer_profile_after_cookie_rejection(
        self, orchestrator, session_store, transport, respond
    ):
        session_store.persist(Session(token="T", user=self.USER))
        transport.queue(respond(401, {}), respond(200, {"id": 1, "name": "Via Bearer"}))

        session = orchestrator.ensure_valid_session()

        assert session.user.name == "Via Bearer"
        assert transport.calls[1].headers["Authorization"] == "Bearer T"

    def test_rejected_bearer_clears_session(self, orchestrator, session_store, transport, respond):
        session_store.persist(Session(token="T", user=self.USER))
        transport.queue(respond(401, {}), respond(403, {}))

        assert orchestrator.ensure_valid_session() is None
        assert session_store.restore() is None

    def test_network_failure_keeps_cached_session(
        self, orchestrator, session_store, transport, respond
    ):
        session_store.persist(Session(token="T", user=self.USER))
        transport.queue(respond(401, {}), requests.ConnectionError("offline"))

        session = orchestrator.ensure_valid_session()

        assert session is not None and session.user == self.USER
        assert session_store.get_token() == "T"

    def test_cookie_only_session_rejected(self, orchestrator, session_store, transport, respond):
        session_store.persist(Session(user=self.USER))
        transport.queue(respond(401, {}))

        assert orchestrator.ensure_valid_session() is None
        assert StorageKey.USER_PROFILE not in session_store.store.data
