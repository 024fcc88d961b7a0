"""Tests for the hand-managed WordPress cookie jar."""

from tcnauth.cookies import (
    CookieJar,
    extract_set_cookie_pairs,
    parse_cookie_header,
    serialize_cookie_header,
)
from tcnauth.storage.keys import StorageKey
from tcnauth.storage.memory import MemoryKeyValueStore


class TestCookieHeaderHelpers:
    """Tests for cookie header parsing and serialization."""

    def test_parse_preserves_order(self):
        cookies = parse_cookie_header("b=2; a=1; wp-settings-1=x")
        assert list(cookies) == ["b", "a", "wp-settings-1"]
        assert cookies["a"] == "1"

    def test_parse_skips_malformed_parts(self):
        assert parse_cookie_header("novalue; =orphan; ok=1") == {"ok": "1"}

    def test_parse_empty(self):
        assert parse_cookie_header(None) == {}
        assert parse_cookie_header("") == {}

    def test_round_trip(self):
        header = "wordpress_logged_in_abc=v1; wp-settings-1=x"
        assert serialize_cookie_header(parse_cookie_header(header)) == header


class TestExtractSetCookiePairs:
    """Tests for extract_set_cookie_pairs."""

    def test_attributes_are_ignored(self):
        pairs = extract_set_cookie_pairs(
            ["wordpress_logged_in_abc=v1; path=/; secure; HttpOnly"]
        )
        assert pairs == [("wordpress_logged_in_abc", "v1")]

    def test_merged_header_with_expiry_commas(self):
        merged = (
            "wordpress_logged_in_abc=v1; expires=Thu, 01-Jan-2030 00:00:00 GMT; path=/, "
            "wp-settings-time-1=123; path=/"
        )
        assert extract_set_cookie_pairs([merged]) == [
            ("wordpress_logged_in_abc", "v1"),
            ("wp-settings-time-1", "123"),
        ]

    def test_unrecognized_cookies_are_skipped(self):
        assert extract_set_cookie_pairs(["PHPSESSID=abc; path=/"]) == []

    def test_prefix_match_is_case_insensitive(self):
        assert extract_set_cookie_pairs(["WooCommerce_session_1=s"]) == [
            ("WooCommerce_session_1", "s")
        ]


class TestCookieJar:
    """Tests for CookieJar."""

    def test_apply_set_cookie_persists(self, store):
        jar = CookieJar(store)
        assert jar.apply_set_cookie(["wordpress_logged_in_abc=v1; path=/"])
        assert store.get(StorageKey.COOKIES) == "wordpress_logged_in_abc=v1"

    def test_new_values_replace_old(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1"])
        jar.apply_set_cookie(["wordpress_logged_in_abc=v2"])
        assert jar.cookies == {"wordpress_logged_in_abc": "v2"}

    def test_unchanged_values_skip_storage_write(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1"])
        writes = store.writes

        assert jar.apply_set_cookie(["wordpress_logged_in_abc=v1; path=/"]) is False
        assert store.writes == writes

    def test_deleted_value_removes_cookie(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1", "wp-settings-1=x"])

        jar.apply_set_cookie(["wordpress_logged_in_abc=deleted; expires=Thu, 01-Jan-1970"])

        assert jar.cookies == {"wp-settings-1": "x"}
        assert store.get(StorageKey.COOKIES) == "wp-settings-1=x"

    def test_empty_value_removes_cookie(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1"])

        jar.apply_set_cookie(["wordpress_logged_in_abc=; path=/"])

        assert jar.header() is None
        assert store.get(StorageKey.COOKIES) is None

    def test_deleting_unknown_cookie_is_not_a_change(self, store):
        jar = CookieJar(store)
        assert jar.apply_set_cookie(["wordpress_logged_in_abc=deleted"]) is False
        assert store.writes == 0

    def test_hydrates_from_storage(self):
        store = MemoryKeyValueStore({StorageKey.COOKIES: "wp-settings-1=x; wp_lang=en"})
        jar = CookieJar(store)
        assert jar.header() == "wp-settings-1=x; wp_lang=en"

    def test_reset_rereads_storage(self, store):
        jar = CookieJar(store)
        assert jar.header() is None
        store.set(StorageKey.COOKIES, "wp_lang=en")

        jar.reset()

        assert jar.header() == "wp_lang=en"

    def test_build_request_headers_attaches_cookie(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1"])

        headers = jar.build_request_headers({"Accept": "application/json"})

        assert headers == {
            "Accept": "application/json",
            "Cookie": "wordpress_logged_in_abc=v1",
        }

    def test_caller_cookie_header_wins(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1"])

        headers = jar.build_request_headers({"cookie": "custom=1"})

        assert headers == {"cookie": "custom=1"}

    def test_without_credentials_sends_no_cookie(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1"])

        assert jar.build_request_headers({}, with_credentials=False) == {}

    def test_empty_jar_adds_nothing(self, store):
        assert CookieJar(store).build_request_headers({"A": "1"}) == {"A": "1"}

    def test_sync_from_response(self, store, respond):
        jar = CookieJar(store)
        response = respond(
            200,
            {},
            set_cookies=["wordpress_logged_in_abc=v1; path=/", "wp-settings-1=x; path=/"],
        )

        assert jar.sync_from_response(response)
        assert jar.cookies == {"wordpress_logged_in_abc": "v1", "wp-settings-1": "x"}

    def test_sync_without_set_cookie(self, store, respond):
        assert CookieJar(store).sync_from_response(respond(200, {})) is False

    def test_clear(self, store):
        jar = CookieJar(store)
        jar.apply_set_cookie(["wordpress_logged_in_abc=v1"])

        jar.clear()

        assert jar.header() is None
        assert StorageKey.COOKIES not in store.data
