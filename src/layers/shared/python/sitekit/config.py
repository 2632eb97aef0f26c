"""Environment-driven platform settings."""

import os
from dataclasses import dataclass, field
from functools import lru_cache


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


def strip_port(host: str) -> str:
    """Remove a trailing ``:port`` from a host (IPv6 literals keep their brackets)."""
    host = host.strip()
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]


@dataclass(frozen=True)
class Settings:
    """Platform configuration.

    ``builder_domain`` may carry a port for local development
    (e.g. ``localhost:3000``); ``builder_host`` is the bare host used for
    request routing.
    """

    table_name: str = "sitekit-dev"
    stage: str = "dev"
    builder_domain: str = "localhost:3000"
    platform_ips: tuple[str, ...] = field(default_factory=tuple)

    domain_cache_ttl: float = 30.0
    domain_negative_cache_ttl: float = 5.0
    domain_cache_max_entries: int = 10_000

    dns_verification_mode: str = "dns"  # "dns" or "simulate"
    dns_timeout: float = 3.0
    txt_record_prefix: str = ""

    revalidate_url: str = ""
    revalidate_secret: str = ""
    revalidate_timeout: float = 5.0

    autosave_quiet_period: float = 2.0

    @property
    def builder_host(self) -> str:
        """Builder domain without port, lowercased."""
        return strip_port(self.builder_domain).lower()

    @property
    def simulate_dns(self) -> bool:
        return self.dns_verification_mode == "simulate"

    def site_hostname(self, site_id: str) -> str:
        """Canonical platform hostname for a site (the CNAME target)."""
        return f"{site_id}.{self.builder_host}"

    def txt_record_name(self, domain: str) -> str:
        """DNS name at which the verification TXT record must be published."""
        if self.txt_record_prefix:
            return f"{self.txt_record_prefix}.{domain}"
        return domain

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ
        return cls(
            table_name=env.get("TABLE_NAME", "sitekit-dev"),
            stage=env.get("STAGE", "dev"),
            builder_domain=env.get("BUILDER_DOMAIN", "localhost:3000"),
            platform_ips=_split_csv(env.get("PLATFORM_IPS", "")),
            domain_cache_ttl=float(env.get("DOMAIN_CACHE_TTL_SECONDS", "30")),
            domain_negative_cache_ttl=float(env.get("DOMAIN_NEGATIVE_CACHE_TTL_SECONDS", "5")),
            domain_cache_max_entries=int(env.get("DOMAIN_CACHE_MAX_ENTRIES", "10000")),
            dns_verification_mode=env.get("DNS_VERIFICATION_MODE", "dns").lower(),
            dns_timeout=float(env.get("DNS_TIMEOUT_SECONDS", "3")),
            txt_record_prefix=env.get("TXT_RECORD_PREFIX", "").strip("."),
            revalidate_url=env.get("REVALIDATE_URL", ""),
            revalidate_secret=env.get("REVALIDATE_SECRET", ""),
            revalidate_timeout=float(env.get("REVALIDATE_TIMEOUT_SECONDS", "5")),
            autosave_quiet_period=float(env.get("AUTOSAVE_QUIET_PERIOD_SECONDS", "2")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get process-wide settings (loaded once per Lambda container)."""
    return Settings.from_env()
