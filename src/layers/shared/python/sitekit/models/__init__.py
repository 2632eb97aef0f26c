"""Pydantic models for sitekit entities."""

from sitekit.models.base import BaseModel, TimestampMixin
from sitekit.models.content import NavItem, Page, Section, SiteContent, Theme, find_page, normalize_slug
from sitekit.models.domain import (
    CreateDomainRequest,
    DnsRecord,
    Domain,
    DomainSetupInfo,
    ReassignDomainRequest,
    VerificationResult,
    is_valid_domain,
    normalize_domain,
)
from sitekit.models.site import (
    CreateSiteRequest,
    DeploymentStatus,
    PublishSiteRequest,
    Site,
    UpdateDraftRequest,
    UpdateSiteDomainRequest,
)
from sitekit.models.template import ChangelogEntry, Template, VersionChangelog

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    # Content
    "SiteContent",
    "Page",
    "Section",
    "Theme",
    "NavItem",
    "find_page",
    "normalize_slug",
    # Template
    "Template",
    "ChangelogEntry",
    "VersionChangelog",
    # Site
    "Site",
    "DeploymentStatus",
    "CreateSiteRequest",
    "UpdateDraftRequest",
    "PublishSiteRequest",
    "UpdateSiteDomainRequest",
    # Domain
    "Domain",
    "DnsRecord",
    "DomainSetupInfo",
    "VerificationResult",
    "CreateDomainRequest",
    "ReassignDomainRequest",
    "normalize_domain",
    "is_valid_domain",
]
