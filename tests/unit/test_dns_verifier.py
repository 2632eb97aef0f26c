"""Tests for DNS ownership verification."""

from unittest.mock import MagicMock

import dns.exception
import dns.resolver
import pytest

from sitekit.config import Settings
from sitekit.services.dns_verifier import (
    DnsLookupError,
    DnsVerifier,
    ResolverDnsVerifier,
    StaticDnsVerifier,
    get_dns_verifier,
)

TOKEN = "sitekit-verify=abc123"


def _txt(*chunks: bytes):
    rdata = MagicMock()
    rdata.strings = list(chunks)
    return rdata


@pytest.fixture
def verifier():
    verifier = ResolverDnsVerifier(timeout=2)
    verifier._resolver = MagicMock()
    return verifier


class TestCheck:
    """Tests for the TXT token check."""

    def test_matching_token(self):
        """A published token verifies."""
        result = StaticDnsVerifier(txt_records={"example.com": ["other", TOKEN]}).check(
            "example.com", "example.com", TOKEN
        )

        assert result.verified is True
        assert TOKEN in result.txt_values

    def test_missing_record(self):
        """No TXT record is unverified with a reason."""
        result = StaticDnsVerifier().check("example.com", "example.com", TOKEN)

        assert result.verified is False
        assert result.reason == "No TXT record found at example.com"

    def test_wrong_record(self):
        """Another value is unverified."""
        result = StaticDnsVerifier(txt_records={"example.com": ["v=spf1 -all"]}).check(
            "example.com", "example.com", TOKEN
        )

        assert result.verified is False
        assert "does not match" in result.reason

    def test_lookup_failure_never_raises(self):
        """Lookup errors become unverified results."""
        result = StaticDnsVerifier(fail_with="DNS lookup for example.com timed out after 3s").check(
            "example.com", "example.com", TOKEN
        )

        assert result.verified is False
        assert "timed out" in result.reason

    def test_cname_is_reported(self):
        """The CNAME target is reported alongside the TXT check."""
        result = StaticDnsVerifier(
            txt_records={"example.com": [TOKEN]},
            cname_records={"example.com": "acme.builder.com"},
        ).check("example.com", "example.com", TOKEN)

        assert result.cname_target == "acme.builder.com"


class TestResolverDnsVerifier:
    """Tests for the dnspython-backed verifier."""

    def test_joins_split_txt_strings(self, verifier):
        """Long TXT values split into chunks are rejoined."""
        verifier._resolver.resolve.return_value = [_txt(b"sitekit-verify=", b"abc123")]

        assert verifier.lookup_txt("example.com") == [TOKEN]
        verifier._resolver.resolve.assert_called_once_with("example.com", "TXT", lifetime=2)

    @pytest.mark.parametrize("error", [dns.resolver.NXDOMAIN(), dns.resolver.NoAnswer()])
    def test_missing_name_is_empty(self, verifier, error):
        """Nonexistent names and empty answers mean no records."""
        verifier._resolver.resolve.side_effect = error

        assert verifier.lookup_txt("example.com") == []
        assert verifier.lookup_cname("example.com") is None

    def test_timeout(self, verifier):
        """Timeouts raise DnsLookupError with the configured timeout."""
        verifier._resolver.resolve.side_effect = dns.exception.Timeout()

        with pytest.raises(DnsLookupError, match="timed out after 2s"):
            verifier.lookup_txt("example.com")

    def test_timeout_is_unverified(self, verifier):
        """Through check(), a timeout is an unverified result."""
        verifier._resolver.resolve.side_effect = dns.exception.Timeout()

        result = verifier.check("example.com", "example.com", TOKEN)

        assert result.verified is False
        assert "timed out" in result.reason

    def test_cname_target(self, verifier):
        """CNAME targets are lowercased without the trailing dot."""
        rdata = MagicMock()
        rdata.target = "Acme.Builder.com."
        verifier._resolver.resolve.return_value = [rdata]

        assert verifier.lookup_cname("www.example.com") == "acme.builder.com"

    def test_lookups_share_one_budget(self):
        """The CNAME lookup only gets what the TXT lookup left of the timeout."""
        ticks = iter([100.0, 101.5])
        verifier = ResolverDnsVerifier(timeout=2, clock=lambda: next(ticks))
        verifier._resolver = MagicMock()
        verifier._resolver.resolve.side_effect = dns.resolver.NoAnswer()

        verifier.check("example.com", "example.com", TOKEN)

        calls = verifier._resolver.resolve.call_args_list
        assert calls[0].args == ("example.com", "TXT")
        assert calls[0].kwargs["lifetime"] == 2
        assert calls[1].args == ("example.com", "CNAME")
        assert calls[1].kwargs["lifetime"] == pytest.approx(0.5)

    def test_spent_budget_skips_cname(self):
        """A TXT lookup that used the whole timeout leaves no CNAME lookup."""
        ticks = iter([100.0, 102.5])
        verifier = ResolverDnsVerifier(timeout=2, clock=lambda: next(ticks))
        verifier._resolver = MagicMock()
        verifier._resolver.resolve.return_value = [_txt(TOKEN.encode())]

        result = verifier.check("example.com", "example.com", TOKEN)

        assert result.verified is True
        assert result.cname_target is None
        verifier._resolver.resolve.assert_called_once_with("example.com", "TXT", lifetime=2)

    def test_verifier_interface_is_abstract(self):
        """A verifier must implement both lookups."""

        class TxtOnly(DnsVerifier):
            def lookup_txt(self, name, timeout=None):
                return []

        with pytest.raises(TypeError):
            TxtOnly()

    def test_resolver_configuration(self):
        """Timeout and nameservers are applied to the resolver."""
        verifier = ResolverDnsVerifier(timeout=1.5, nameservers=["1.1.1.1"])

        assert verifier.resolver.lifetime == 1.5
        assert verifier.resolver.nameservers == ["1.1.1.1"]


class TestGetDnsVerifier:
    """Tests for picking the deployment's verifier."""

    def test_simulated(self):
        """Simulate mode approves every domain."""
        verifier = get_dns_verifier(Settings(dns_verification_mode="simulate"))

        assert isinstance(verifier, StaticDnsVerifier)
        assert verifier.check("example.com", "example.com", TOKEN).verified is True

    def test_real_dns(self):
        """DNS mode uses the resolver with the configured timeout."""
        verifier = get_dns_verifier(Settings(dns_timeout=4))

        assert isinstance(verifier, ResolverDnsVerifier)
        assert verifier.timeout == 4
