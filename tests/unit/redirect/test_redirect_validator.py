"""Tests for post-authentication redirect validation."""

import pytest

from dndtracker.core.modules.redirect.validator import (
    RedirectKind,
    RedirectValidator,
    get_origin,
    is_local_hostname,
    normalize_development_origin,
)

BASE_URL = "https://example.com"


@pytest.fixture
def development():
    return RedirectValidator(production=False, trusted_domains=["dndtracker.com"])


@pytest.fixture
def production():
    return RedirectValidator(production=True, trusted_domains=["dndtracker.com", "www.dndtracker.com"])


class TestLocalHostnames:
    """Tests for local and private host detection."""

    @pytest.mark.parametrize(
        "hostname",
        ["localhost", "localhost:3000", "0.0.0.0", "127.0.0.1", "127.1.2.3", "10.0.0.5", "172.16.4.1", "192.168.1.20"],
    )
    def test_local(self, hostname):
        assert is_local_hostname(hostname)

    @pytest.mark.parametrize("hostname", ["dndtracker.com", "172.32.0.1", "8.8.8.8", "localhost.evil.com"])
    def test_not_local(self, hostname):
        assert not is_local_hostname(hostname)


class TestGetOrigin:
    """Tests for origin extraction."""

    def test_default_port_dropped(self):
        assert get_origin("https://example.com:443/path?q=1") == "https://example.com"

    def test_custom_port_kept(self):
        assert get_origin("http://localhost:3000/dashboard") == "http://localhost:3000"

    @pytest.mark.parametrize("url", ["dashboard", "javascript:alert(1)", "ftp://example.com/file", "http://"])
    def test_no_origin(self, url):
        assert get_origin(url) is None


class TestDecide:
    """Tests for redirect target decisions."""

    def test_relative_path_joined_to_base(self, development):
        assert development.validate("/dashboard", BASE_URL) == "https://example.com/dashboard"

    def test_relative_path_with_trailing_slash_base(self, development):
        assert development.validate("/dashboard", "https://example.com/") == "https://example.com/dashboard"

    def test_protocol_relative_stays_on_base(self, development):
        decision = development.decide("//evil.example/x", BASE_URL)

        assert decision.kind is RedirectKind.RELATIVE
        assert get_origin(decision.url) == BASE_URL

    def test_same_origin_allowed(self, development):
        decision = development.decide("https://example.com/characters?id=1", BASE_URL)

        assert decision.kind is RedirectKind.SAME_ORIGIN
        assert decision.url == "https://example.com/characters?id=1"

    def test_untrusted_origin_falls_back_to_base(self, development):
        assert development.validate("https://evil.example/x", BASE_URL) == BASE_URL

    def test_untrusted_origin_falls_back_in_production(self, production):
        assert production.validate("https://evil.example/x", BASE_URL) == BASE_URL

    def test_malformed_rejected(self, development):
        decision = development.decide("javascript:alert(1)", BASE_URL)

        assert decision.kind is RedirectKind.REJECTED
        assert not decision.allowed
        assert decision.url == BASE_URL

    def test_trusted_domain_allowed_in_production(self, production):
        decision = production.decide("https://www.dndtracker.com/parties", BASE_URL)

        assert decision.kind is RedirectKind.TRUSTED_CROSS_ORIGIN
        assert decision.url == "https://www.dndtracker.com/parties"

    def test_trusted_domain_rejected_outside_production(self, development):
        assert development.validate("https://dndtracker.com/parties", BASE_URL) == BASE_URL

    def test_trusted_domain_requires_exact_hostname(self, production):
        assert production.validate("https://evil.dndtracker.com.attacker.io/", BASE_URL) == BASE_URL


class TestBaseUrl:
    """Tests for validating the application's own base URL."""

    def test_valid_public_url(self, production):
        assert production.validate_base_url("https://dndtracker.com") == "https://dndtracker.com"

    def test_local_url_refused_in_production(self, production):
        assert production.validate_base_url("http://0.0.0.0:3000") is None

    def test_local_url_accepted_with_trust_host(self, production):
        assert production.validate_base_url("http://0.0.0.0:3000", trust_host=True) == "http://0.0.0.0:3000"

    def test_local_url_accepted_in_development(self, development):
        assert development.validate_base_url("http://localhost:3000") == "http://localhost:3000"

    @pytest.mark.parametrize("url", [None, "", "not a url"])
    def test_unusable(self, production, url):
        assert production.validate_base_url(url) is None

    def test_production_hostname(self, production, development):
        assert not production.is_valid_production_hostname("127.0.0.1")
        assert production.is_valid_production_hostname("dndtracker.com")
        assert development.is_valid_production_hostname("127.0.0.1")


class TestCallbackUrls:
    """Tests for callback URL checks used by the sign-in page."""

    def test_relative_allowed(self, development):
        assert development.is_valid_callback_url("/dashboard", "http://localhost:3000")

    def test_relative_disallowed_on_request(self, development):
        assert not development.is_valid_callback_url("/dashboard", "http://localhost:3000", allow_relative=False)

    def test_protocol_relative_rejected(self, development):
        assert not development.is_valid_callback_url("//evil.example/x", "http://localhost:3000")

    def test_local_origins_equivalent_in_development(self, development):
        assert development.is_valid_callback_url("http://127.0.0.1:3000/dashboard", "http://localhost:3000")

    def test_local_origins_distinct_in_production(self, production):
        assert not production.is_valid_callback_url("http://127.0.0.1:3000/dashboard", "http://localhost:3000")

    def test_different_ports_not_equivalent(self, development):
        assert not development.are_origins_equivalent("http://localhost:3000", "http://127.0.0.1:4000")

    def test_allowed_domain_and_subdomain(self, production):
        current = "https://dndtracker.com"
        assert production.is_valid_callback_url("https://fly.dev/x", current, allowed_domains=["fly.dev"])
        assert production.is_valid_callback_url("https://app.fly.dev/x", current, allowed_domains=["fly.dev"])
        assert not production.is_valid_callback_url("https://evilfly.dev/x", current, allowed_domains=["fly.dev"])

    def test_garbage_rejected(self, production):
        assert not production.is_valid_callback_url("javascript:alert(1)", "https://dndtracker.com")

    def test_normalize_development_origin(self):
        assert normalize_development_origin("http://192.168.1.20:3000") == "http://localhost:3000"
        assert normalize_development_origin("https://dndtracker.com") == "https://dndtracker.com"
