"""Service classes for business logic."""

from sitekit.services.dns_verifier import (
    DnsCheckResult,
    DnsLookupError,
    DnsVerifier,
    ResolverDnsVerifier,
    StaticDnsVerifier,
    get_dns_verifier,
)
from sitekit.services.host_cache import HostCache, get_host_cache, reset_host_cache
from sitekit.services.host_resolver import HostKind, HostResolution, HostResolver
from sitekit.services.revalidation import RevalidationClient
from sitekit.services.section_registry import (
    SectionRegistry,
    create_default_registry,
    default_registry,
    render_page_html,
)
from sitekit.services.domain_binding import DomainBindingService
from sitekit.services.publish import PublishPipeline, PublishResult
from sitekit.services.site_service import SiteService, TemplateUpdateInfo
from sitekit.services.editor_session import EditorSession, SessionState, site_service_saver

__all__ = [
    "DnsCheckResult",
    "DnsLookupError",
    "DnsVerifier",
    "DomainBindingService",
    "EditorSession",
    "HostCache",
    "HostKind",
    "HostResolution",
    "HostResolver",
    "PublishPipeline",
    "PublishResult",
    "ResolverDnsVerifier",
    "RevalidationClient",
    "SectionRegistry",
    "SessionState",
    "SiteService",
    "StaticDnsVerifier",
    "TemplateUpdateInfo",
    "create_default_registry",
    "default_registry",
    "get_dns_verifier",
    "get_host_cache",
    "render_page_html",
    "reset_host_cache",
    "site_service_saver",
]
