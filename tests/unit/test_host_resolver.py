"""Tests for host resolution and the routing cache."""

from unittest.mock import MagicMock

import pytest

from sitekit.config import Settings
from sitekit.execution import RetryConfig, RetryPolicy
from sitekit.services.host_cache import MISSING, HostCache
from sitekit.services.host_resolver import HostKind, HostResolver, normalize_host
from sitekit.utils.exceptions import StoreUnavailableError


def _verified(binding_service, dns, site_id: str, domain: str):
    setup = binding_service.request_binding(site_id, domain)
    dns.publish_txt(setup.domain, setup.verification_token)
    binding_service.verify(setup.domain_id)
    return setup


class TestNormalizeHost:
    """Tests for Host header normalization."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Example.COM", "example.com"),
            ("example.com:8443", "example.com"),
            ("example.com.", "example.com"),
            ("[::1]:8080", "[::1]"),
            (None, ""),
        ],
    )
    def test_normalize(self, header, expected):
        """Case, port and trailing dot are ignored."""
        assert normalize_host(header) == expected


class TestPlatformHosts:
    """Tests for requests to the platform itself."""

    @pytest.mark.parametrize("host", ["builder.com", "www.builder.com", "BUILDER.com:443", "10.0.0.1"])
    def test_platform_host(self, resolver, host):
        """The builder host and configured IPs are platform requests."""
        resolution = resolver.resolve(host)

        assert resolution.kind == HostKind.PLATFORM
        assert resolution.site_id is None

    def test_unconfigured_ip_is_not_found(self, resolver):
        """An IP that is not a platform IP routes nowhere."""
        assert resolver.resolve("192.168.1.20").kind == HostKind.NOT_FOUND

    def test_empty_host(self, resolver):
        """A missing Host header is not found."""
        assert resolver.resolve("").kind == HostKind.NOT_FOUND
        assert resolver.resolve(None).kind == HostKind.NOT_FOUND


class TestSubdomains:
    """Tests for <site_id>.<builder host> routing."""

    def test_subdomain_resolves_without_domain_records(self, make_site, host_cache):
        """Subdomain routing only confirms the site exists."""
        make_site("acme")
        domain_repo = MagicMock()
        resolver = HostResolver(domain_repo=domain_repo, cache=host_cache)

        resolution = resolver.resolve("acme.builder.com")

        assert resolution.kind == HostKind.SITE
        assert resolution.site_id == "acme"
        assert resolution.via == "subdomain"
        domain_repo.get_by_domain.assert_not_called()

    def test_missing_site(self, resolver, dynamodb_table):
        """A subdomain without a site is not found."""
        assert resolver.resolve("ghost.builder.com").kind == HostKind.NOT_FOUND

    def test_www_subdomain(self, resolver, make_site):
        """www. in front of a site subdomain routes to the same site."""
        make_site("acme")

        assert resolver.resolve("www.acme.builder.com").site_id == "acme"

    def test_nested_labels_are_not_sites(self, resolver, make_site):
        """Only a single label below the builder host can name a site."""
        make_site("acme")

        assert resolver.resolve("shop.acme.builder.com").kind == HostKind.NOT_FOUND

    def test_builder_domain_with_port(self, dynamodb_table, make_site, host_cache):
        """A builder domain configured with a port still matches bare hosts."""
        make_site("acme")
        settings = Settings(table_name="sitekit-test", builder_domain="localhost:3000")
        resolver = HostResolver(settings=settings, cache=host_cache)

        assert resolver.resolve("acme.localhost:3000").site_id == "acme"
        assert resolver.resolve("localhost:3000").kind == HostKind.PLATFORM


class TestCustomDomains:
    """Tests for custom-domain routing."""

    def test_apex_and_www_resolve(self, resolver, binding_service, make_site, dns):
        """A verified binding routes the domain with or without www and port."""
        make_site("site-42")
        _verified(binding_service, dns, "site-42", "example.com")

        for host in ("example.com", "www.example.com", "Example.com:443"):
            resolution = resolver.resolve(host)
            assert resolution.site_id == "site-42"
            assert resolution.via == "custom_domain"

    def test_other_subdomains_are_not_found(self, resolver, binding_service, make_site, dns):
        """Only the bound domain and its www variant route."""
        make_site("site-42")
        _verified(binding_service, dns, "site-42", "example.com")

        assert resolver.resolve("staging.example.com").kind == HostKind.NOT_FOUND

    def test_unverified_binding_does_not_route(self, resolver, binding_service, make_site):
        """Pending bindings are invisible to routing."""
        make_site("site-42")
        binding_service.request_binding("site-42", "example.com")

        assert resolver.resolve("example.com").kind == HostKind.NOT_FOUND

    def test_unknown_domain(self, resolver, dynamodb_table):
        """Unmapped hosts are a normal not-found outcome."""
        assert resolver.resolve("nobody.example").kind == HostKind.NOT_FOUND

    def test_host_as_sent_is_looked_up_first(self, host_cache):
        """www.<domain> is tried before <domain>."""
        domain_repo = MagicMock()
        domain_repo.get_by_domain.return_value = None
        resolver = HostResolver(site_repo=MagicMock(), domain_repo=domain_repo, cache=host_cache)

        resolver.resolve("www.example.com")

        looked_up = [c.args[0] for c in domain_repo.get_by_domain.call_args_list]
        assert looked_up == ["www.example.com", "example.com"]


class TestCaching:
    """Tests for routing cache behaviour in the resolver."""

    def test_hits_are_cached(self, resolver, binding_service, make_site, dns, monkeypatch):
        """A resolved host is not looked up again within the TTL."""
        make_site("site-42")
        _verified(binding_service, dns, "site-42", "example.com")
        resolver.resolve("example.com")

        lookup = MagicMock(side_effect=AssertionError("store read"))
        monkeypatch.setattr(resolver.domain_repo, "get_by_domain", lookup)

        assert resolver.resolve("example.com").site_id == "site-42"

    def test_misses_expire_quickly(self, resolver, binding_service, make_site, dns, host_cache, monkeypatch):
        """A cached miss stops hiding a binding after the negative TTL."""
        make_site("site-42")
        setup = binding_service.request_binding("site-42", "example.com")
        assert resolver.resolve("example.com").found is False

        # Verified by another container: this cache is not invalidated
        dns.publish_txt("example.com", setup.verification_token)
        monkeypatch.setattr(binding_service.cache, "invalidate", lambda domain: None)
        binding_service.verify(setup.domain_id)

        assert resolver.resolve("example.com").found is False
        host_cache.clock.advance(6)
        assert resolver.resolve("example.com").site_id == "site-42"

    def test_store_outage_is_retried(self, host_cache):
        """Transient store errors are retried before giving up."""
        domain_repo = MagicMock()
        domain_repo.get_by_domain.side_effect = [StoreUnavailableError(), None, None]
        resolver = HostResolver(
            site_repo=MagicMock(),
            domain_repo=domain_repo,
            cache=host_cache,
            retry_policy=RetryPolicy(RetryConfig(max_retries=2), sleep=lambda _: None),
        )

        assert resolver.resolve("example.com").kind == HostKind.NOT_FOUND
        assert domain_repo.get_by_domain.call_count == 2

    def test_store_outage_propagates(self, host_cache):
        """A persistent outage is an error, not a not-found."""
        domain_repo = MagicMock()
        domain_repo.get_by_domain.side_effect = StoreUnavailableError()
        resolver = HostResolver(
            site_repo=MagicMock(),
            domain_repo=domain_repo,
            cache=host_cache,
            retry_policy=RetryPolicy(RetryConfig(max_retries=1), sleep=lambda _: None),
        )

        with pytest.raises(StoreUnavailableError):
            resolver.resolve("example.com")

        assert host_cache.get("example.com") is MISSING


class TestHostCache:
    """Tests for the TTL cache itself."""

    def test_get_and_set(self, host_cache):
        """Hits and misses are both cached."""
        assert host_cache.get("a.com") is MISSING

        host_cache.set("a.com", "site-a")
        host_cache.set("b.com", None)

        assert host_cache.get("a.com") == "site-a"
        assert host_cache.get("b.com") is None

    def test_ttls(self, host_cache):
        """Misses expire before hits."""
        host_cache.set("a.com", "site-a")
        host_cache.set("b.com", None)

        host_cache.clock.advance(5)
        assert host_cache.get("a.com") == "site-a"
        assert host_cache.get("b.com") is MISSING

        host_cache.clock.advance(25)
        assert host_cache.get("a.com") is MISSING

    def test_invalidate_covers_www(self, host_cache):
        """Invalidating a domain drops its www variant too."""
        host_cache.set("a.com", "site-a")
        host_cache.set("www.a.com", "site-a")
        host_cache.set("b.com", "site-b")

        host_cache.invalidate("a.com")

        assert host_cache.get("a.com") is MISSING
        assert host_cache.get("www.a.com") is MISSING
        assert host_cache.get("b.com") == "site-b"

    def test_size_bound(self):
        """The oldest entries are evicted past max_entries."""
        cache = HostCache(max_entries=2)
        cache.set("a.com", "a")
        cache.set("b.com", "b")
        cache.set("c.com", "c")

        assert len(cache) == 2
        assert cache.get("a.com") is MISSING
        assert cache.get("c.com") == "c"

    def test_zero_ttl_disables_caching(self):
        """A non-positive TTL stores nothing."""
        cache = HostCache(ttl=0, negative_ttl=0)
        cache.set("a.com", "a")

        assert cache.get("a.com") is MISSING
