"""Host resolution: maps an inbound request's Host header to a site.

Resolution order (first match wins):
1. The builder host itself, or a configured platform IP, is a platform
   request and resolves to no site.
2. ``<site_id>.<builder host>`` resolves to ``site_id`` once the site is
   confirmed to exist. Domain records are never consulted on this path.
3. Anything else is a custom domain: the verified binding for the host as
   sent, then for the host without ``www.``.

An unmapped host is a normal NOT_FOUND outcome, never an exception. Store
outages still raise StoreUnavailableError once read retries are spent.
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum

import structlog

from sitekit.config import Settings, get_settings, strip_port
from sitekit.execution import RetryPolicy
from sitekit.repositories.domain import DomainRepository
from sitekit.repositories.site import SiteRepository
from sitekit.services.host_cache import MISSING, HostCache, get_host_cache

logger = structlog.get_logger()


class HostKind(str, Enum):
    """What a host resolved to."""

    PLATFORM = "platform"
    SITE = "site"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class HostResolution:
    """Result of resolving a host."""

    kind: HostKind
    host: str = ""
    site_id: str | None = None
    via: str | None = None  # "subdomain" or "custom_domain"

    @property
    def found(self) -> bool:
        return self.kind == HostKind.SITE

    @classmethod
    def not_found(cls, host: str) -> "HostResolution":
        return cls(kind=HostKind.NOT_FOUND, host=host)


def normalize_host(host_header: str | None) -> str:
    """Lowercase a Host header and strip its port and trailing dot."""
    return strip_port(host_header or "").lower().rstrip(".")


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


class HostResolver:
    """Resolves hosts to site IDs; safe to share across concurrent requests."""

    def __init__(
        self,
        settings: Settings | None = None,
        site_repo: SiteRepository | None = None,
        domain_repo: DomainRepository | None = None,
        cache: HostCache | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize resolver.

        Args:
            settings: Platform settings (builder host, platform IPs).
            site_repo: Site repository, for confirming subdomain sites.
            domain_repo: Domain repository, for custom-domain bindings.
            cache: Routing cache. Defaults to the container-wide cache.
            retry_policy: Backoff policy for store reads.
        """
        self.settings = settings or get_settings()
        self.site_repo = site_repo or SiteRepository()
        self.domain_repo = domain_repo or DomainRepository()
        self.cache = cache if cache is not None else get_host_cache(self.settings)
        self.retry_policy = retry_policy or RetryPolicy()

    def resolve(self, host_header: str | None) -> HostResolution:
        """Resolve a Host header.

        Args:
            host_header: Raw Host header value, port included if sent.

        Returns:
            HostResolution (PLATFORM, SITE or NOT_FOUND).

        Raises:
            StoreUnavailableError: If the store stays unavailable after retries.
        """
        host = normalize_host(host_header)
        if not host:
            return HostResolution.not_found(host)

        bare = _strip_www(host)
        builder_host = self.settings.builder_host

        if bare == builder_host or host.strip("[]") in self.settings.platform_ips:
            return HostResolution(kind=HostKind.PLATFORM, host=host)

        suffix = f".{builder_host}"
        if bare.endswith(suffix):
            return self._resolve_subdomain(host, bare[: -len(suffix)])

        if _is_ip_literal(host):
            return HostResolution.not_found(host)

        return self._resolve_custom_domain(host, bare)

    def _resolve_subdomain(self, host: str, label: str) -> HostResolution:
        # Only a single DNS label can be a site ID
        if not label or "." in label:
            return HostResolution.not_found(host)

        cached = self.cache.get(host)
        if cached is MISSING:
            site = self.retry_policy.call(
                lambda: self.site_repo.get_by_site_id(label),
                context={"host": host},
            )
            cached = site.site_id if site else None
            self.cache.set(host, cached)

        if cached is None:
            logger.info("No site for subdomain", host=host, site_id=label)
            return HostResolution.not_found(host)
        return HostResolution(kind=HostKind.SITE, host=host, site_id=cached, via="subdomain")

    def _resolve_custom_domain(self, host: str, bare: str) -> HostResolution:
        cached = self.cache.get(host)
        if cached is MISSING:
            cached = self._lookup_binding(host)
            if cached is None and bare != host:
                cached = self._lookup_binding(bare)
            self.cache.set(host, cached)

        if cached is None:
            logger.info("No verified binding for host", host=host)
            return HostResolution.not_found(host)
        return HostResolution(kind=HostKind.SITE, host=host, site_id=cached, via="custom_domain")

    def _lookup_binding(self, domain: str) -> str | None:
        binding = self.retry_policy.call(
            lambda: self.domain_repo.get_by_domain(domain),
            context={"domain": domain},
        )
        if binding is None or not binding.verified:
            return None
        return binding.site_id
