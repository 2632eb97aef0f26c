"""DNS verification for custom domain ownership.

Ownership is proven by a TXT record carrying the binding's verification
token. Traffic is routed by a CNAME to the site's platform hostname, which
is reported but not required for verification (apex domains often cannot
carry a CNAME).

Example DNS setup required by the site owner:
    # TXT record (proves ownership)
    example.com       TXT    "sitekit-verify=3f1c..."

    # CNAME record (routes traffic)
    www.example.com   CNAME  acme-1a2b3c.builder.com
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

import dns.exception
import dns.resolver
import structlog

from sitekit.config import Settings, get_settings

logger = structlog.get_logger()


class DnsLookupError(Exception):
    """Raised when a DNS query cannot be answered (timeout, no nameservers)."""


@dataclass
class DnsCheckResult:
    """Outcome of checking a domain's verification record."""

    verified: bool
    reason: str = ""
    txt_values: list[str] = field(default_factory=list)
    cname_target: str | None = None


class DnsVerifier(ABC):
    """Checks a domain's TXT record against its expected token.

    Subclasses provide the actual lookups. When ``timeout`` is set, both
    lookups of one check share that budget.
    """

    timeout: float | None = None
    clock: Callable[[], float] = staticmethod(time.monotonic)

    @abstractmethod
    def lookup_txt(self, name: str, timeout: float | None = None) -> list[str]:
        """Return the TXT values published at ``name`` (empty if none)."""

    @abstractmethod
    def lookup_cname(self, name: str, timeout: float | None = None) -> str | None:
        """Return the CNAME target of ``name``, or None."""

    def check(self, domain: str, txt_name: str, expected_token: str) -> DnsCheckResult:
        """Check that ``txt_name`` publishes ``expected_token``.

        Lookup failures are reported as an unverified result with a reason;
        they never raise.

        Args:
            domain: The custom domain (used for the CNAME lookup).
            txt_name: DNS name holding the verification TXT record.
            expected_token: The binding's verification token.

        Returns:
            DnsCheckResult describing what was found.
        """
        started = self.clock()
        try:
            txt_values = self.lookup_txt(txt_name, timeout=self.timeout)
        except DnsLookupError as e:
            logger.info("TXT lookup failed", domain=domain, txt_name=txt_name, error=str(e))
            return DnsCheckResult(verified=False, reason=str(e))

        remaining = None
        if self.timeout is not None:
            remaining = self.timeout - (self.clock() - started)

        cname_target = None
        if remaining is None or remaining > 0:
            try:
                cname_target = self.lookup_cname(domain, timeout=remaining)
            except DnsLookupError:
                cname_target = None
        else:
            logger.info("Skipped CNAME lookup, DNS budget spent", domain=domain)

        if expected_token in txt_values:
            return DnsCheckResult(
                verified=True,
                txt_values=txt_values,
                cname_target=cname_target,
            )

        if not txt_values:
            reason = f"No TXT record found at {txt_name}"
        else:
            reason = f"TXT record at {txt_name} does not match the verification token"

        return DnsCheckResult(
            verified=False,
            reason=reason,
            txt_values=txt_values,
            cname_target=cname_target,
        )


class ResolverDnsVerifier(DnsVerifier):
    """Verifier backed by real DNS queries through dnspython."""

    def __init__(
        self,
        timeout: float = 3.0,
        nameservers: list[str] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        """Initialize resolver.

        Args:
            timeout: Total seconds allowed per check, shared by its lookups.
            nameservers: Optional nameserver IPs; system resolvers by default.
            clock: Monotonic clock used to track the shared budget.
        """
        self.timeout = timeout
        self.nameservers = nameservers
        if clock is not None:
            self.clock = clock
        self._resolver: dns.resolver.Resolver | None = None

    @property
    def resolver(self) -> dns.resolver.Resolver:
        """Get DNS resolver (lazy initialization)."""
        if self._resolver is None:
            # Explicit nameservers skip reading the system resolver config
            resolver = dns.resolver.Resolver(configure=not self.nameservers)
            if self.nameservers:
                resolver.nameservers = self.nameservers
            resolver.timeout = self.timeout
            resolver.lifetime = self.timeout
            self._resolver = resolver
        return self._resolver

    def _resolve(self, name: str, record_type: str, timeout: float | None = None):
        lifetime = self.timeout if timeout is None else timeout
        try:
            return self.resolver.resolve(name, record_type, lifetime=lifetime)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return None
        except dns.exception.Timeout as e:
            raise DnsLookupError(f"DNS lookup for {name} timed out after {lifetime:g}s") from e
        except dns.resolver.NoNameservers as e:
            raise DnsLookupError(f"No nameserver answered for {name}") from e
        except dns.exception.DNSException as e:
            raise DnsLookupError(f"DNS lookup for {name} failed: {e}") from e

    def lookup_txt(self, name: str, timeout: float | None = None) -> list[str]:
        answers = self._resolve(name, "TXT", timeout)
        if answers is None:
            return []

        values = []
        for rdata in answers:
            # Long TXT values arrive split into 255-byte strings
            value = b"".join(rdata.strings).decode("utf-8", errors="replace")
            values.append(value.strip().strip('"'))
        return values

    def lookup_cname(self, name: str, timeout: float | None = None) -> str | None:
        answers = self._resolve(name, "CNAME", timeout)
        if answers is None:
            return None
        for rdata in answers:
            return str(rdata.target).rstrip(".").lower()
        return None


class StaticDnsVerifier(DnsVerifier):
    """Verifier answering from in-memory records.

    With ``approve_all`` every check succeeds; development deployments
    use this to skip real DNS.
    """

    def __init__(
        self,
        txt_records: dict[str, list[str]] | None = None,
        cname_records: dict[str, str] | None = None,
        approve_all: bool = False,
        fail_with: str | None = None,
    ):
        """Initialize static verifier.

        Args:
            txt_records: Map of DNS name to TXT values.
            cname_records: Map of DNS name to CNAME target.
            approve_all: Report every domain as verified.
            fail_with: When set, every lookup raises DnsLookupError with this
                message (simulates timeouts).
        """
        self.txt_records = txt_records if txt_records is not None else {}
        self.cname_records = cname_records if cname_records is not None else {}
        self.approve_all = approve_all
        self.fail_with = fail_with
        self.lookups: list[str] = []

    def publish_txt(self, name: str, value: str) -> None:
        self.txt_records.setdefault(name, []).append(value)

    def lookup_txt(self, name: str, timeout: float | None = None) -> list[str]:
        self.lookups.append(name)
        if self.fail_with:
            raise DnsLookupError(self.fail_with)
        return list(self.txt_records.get(name, []))

    def lookup_cname(self, name: str, timeout: float | None = None) -> str | None:
        if self.fail_with:
            raise DnsLookupError(self.fail_with)
        return self.cname_records.get(name)

    def check(self, domain: str, txt_name: str, expected_token: str) -> DnsCheckResult:
        if self.approve_all:
            self.lookups.append(txt_name)
            return DnsCheckResult(verified=True, txt_values=[expected_token])
        return super().check(domain, txt_name, expected_token)


def get_dns_verifier(settings: Settings | None = None) -> DnsVerifier:
    """Build the verifier for this deployment (simulated or real DNS)."""
    settings = settings or get_settings()
    if settings.simulate_dns:
        logger.info("DNS verification simulated", stage=settings.stage)
        return StaticDnsVerifier(approve_all=True)
    return ResolverDnsVerifier(timeout=settings.dns_timeout)
