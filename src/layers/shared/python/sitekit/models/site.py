"""Site model: a user's copy of a template with draft and published content."""

import re
import secrets
from datetime import datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel as PydanticBaseModel, Field, field_validator, model_validator

from sitekit.models.base import BaseModel
from sitekit.models.content import SiteContent

_SLUG_CHARS = re.compile(r"[^a-z0-9]+")

SITE_ID_PATTERN = r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$"


class DeploymentStatus(str, Enum):
    """Site deployment status."""

    DRAFT = "draft"  # Never published
    PUBLISHED = "published"
    UPDATING = "updating"  # Publish in progress
    FAILED = "failed"


def generate_site_id(name: str) -> str:
    """Generate a DNS-label-safe site ID from a display name.

    The site ID doubles as the platform subdomain, so it is lowercase
    alphanumerics and hyphens only.
    """
    slug = _SLUG_CHARS.sub("-", name.lower()).strip("-")[:40].strip("-")
    suffix = secrets.token_hex(3)
    return f"{slug}-{suffix}" if slug else f"site-{suffix}"


class Site(BaseModel):
    """Site entity.

    ``draft_content`` is the only content an editor mutates;
    ``published_content`` changes only as a snapshot taken by publish.

    Key Pattern:
        PK: SITE#{site_id}
        SK: SITE#{site_id}
        GSI1PK: USER#{user_id}#SITES
        GSI1SK: SITE#{site_id}
    """

    _pk_prefix: ClassVar[str] = "SITE#"
    _sk_prefix: ClassVar[str] = "SITE#"

    site_id: str = Field(..., min_length=1, max_length=63, pattern=SITE_ID_PATTERN)
    user_id: str = Field(..., description="Owning user")
    template_id: str = Field(..., description="Template the site was cloned from")
    template_version: str = Field(..., description="Template version of the clone")
    name: str = Field(..., min_length=1, max_length=255)

    draft_content: SiteContent = Field(default_factory=SiteContent)
    published_content: SiteContent | None = None
    deployment_status: DeploymentStatus = DeploymentStatus.DRAFT
    published_at: datetime | None = None

    custom_domain: str | None = None
    domain_verified: bool = False

    @model_validator(mode="after")
    def check_domain_invariant(self) -> "Site":
        """A verified domain flag requires a custom domain."""
        if self.domain_verified and not self.custom_domain:
            raise ValueError("domain_verified requires custom_domain")
        return self

    def get_pk(self) -> str:
        """Get partition key: SITE#{site_id}."""
        return f"SITE#{self.site_id}"

    def get_sk(self) -> str:
        """Get sort key: SITE#{site_id}."""
        return f"SITE#{self.site_id}"

    def get_gsi_keys(self) -> dict[str, str]:
        """Get GSI1 keys for listing sites by user."""
        return {
            "GSI1PK": f"USER#{self.user_id}#SITES",
            "GSI1SK": f"SITE#{self.site_id}",
        }

    @property
    def is_published(self) -> bool:
        return self.published_content is not None


class CreateSiteRequest(PydanticBaseModel):
    """Request model for cloning a template into a new site."""

    template_id: str = Field(..., min_length=1)
    name: str | None = Field(None, max_length=255)


class UpdateDraftRequest(PydanticBaseModel):
    """Request model for replacing a site's draft content."""

    content: SiteContent


class PublishSiteRequest(PydanticBaseModel):
    """Request model for publishing a site."""

    custom_domain: str | None = Field(None, max_length=253)

    @field_validator("custom_domain")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat an empty domain as absent."""
        if v is not None and not v.strip():
            return None
        return v


class UpdateSiteDomainRequest(PydanticBaseModel):
    """Request model for setting or removing a site's custom domain."""

    domain: str | None = Field(None, max_length=253)
