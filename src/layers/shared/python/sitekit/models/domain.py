"""Custom domain binding model."""

import re
import secrets
from datetime import datetime
from typing import ClassVar, Literal

from pydantic import BaseModel as PydanticBaseModel, Field

from sitekit.models.base import BaseModel

MAX_DOMAIN_LENGTH = 253

# Labels of [a-z0-9-] (no leading/trailing hyphen), final label alphabetic
DOMAIN_PATTERN = re.compile(r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$")


def normalize_domain(domain: str) -> str:
    """Normalize a domain for comparison and storage.

    Lowercases, trims whitespace and a trailing root dot, and strips a
    leading ``www.``.
    """
    normalized = domain.strip().lower().rstrip(".")
    if normalized.startswith("www."):
        normalized = normalized[4:]
    return normalized


def is_valid_domain(domain: str) -> bool:
    """Check a domain string against the label grammar (case-insensitive)."""
    candidate = domain.strip().lower().rstrip(".")
    return 0 < len(candidate) <= MAX_DOMAIN_LENGTH and bool(DOMAIN_PATTERN.match(candidate))


def generate_verification_token() -> str:
    """Generate a random verification token for a TXT record."""
    return f"sitekit-verify={secrets.token_hex(16)}"


class Domain(BaseModel):
    """Domain binding entity.

    At most one record exists per normalized domain; the partition key is
    the uniqueness constraint.

    Key Pattern:
        PK: DOMAIN#{domain}
        SK: BINDING
        GSI1PK: USER#{user_id}#DOMAINS
        GSI1SK: DOMAIN#{domain}
        GSI2PK: DOMAIN_ID#{id}
        GSI2SK: DOMAIN_ID#{id}
    """

    _pk_prefix: ClassVar[str] = "DOMAIN#"
    _sk_prefix: ClassVar[str] = "BINDING"

    domain: str = Field(..., min_length=4, max_length=MAX_DOMAIN_LENGTH)
    site_id: str = Field(..., description="Current owning site")
    user_id: str = Field(default="", description="Owner of the site at claim time")
    verification_token: str = Field(default_factory=generate_verification_token)
    verified: bool = False
    verified_at: datetime | None = None

    def get_pk(self) -> str:
        """Get partition key: DOMAIN#{domain}."""
        return f"DOMAIN#{self.domain}"

    def get_sk(self) -> str:
        """Get sort key: BINDING."""
        return "BINDING"

    def get_gsi_keys(self) -> dict[str, str]:
        """Get GSI1 (by user) and GSI2 (by record ID) keys."""
        return {
            "GSI1PK": f"USER#{self.user_id}#DOMAINS",
            "GSI1SK": f"DOMAIN#{self.domain}",
            "GSI2PK": f"DOMAIN_ID#{self.id}",
            "GSI2SK": f"DOMAIN_ID#{self.id}",
        }


class DnsRecord(PydanticBaseModel):
    """A DNS record the domain owner must publish."""

    record_type: Literal["TXT", "CNAME"]
    name: str
    value: str


class DomainSetupInfo(PydanticBaseModel):
    """Verification instructions returned when a binding is requested."""

    domain_id: str
    domain: str
    site_id: str
    verification_token: str
    verified: bool = False
    records: list[DnsRecord] = Field(default_factory=list)
    instructions: str = ""


class VerificationResult(PydanticBaseModel):
    """Outcome of a DNS check for a domain."""

    domain_id: str
    domain: str
    verified: bool
    verified_at: datetime | None = None
    message: str = ""
    txt_values: list[str] = Field(default_factory=list)
    cname_target: str | None = None


class CreateDomainRequest(PydanticBaseModel):
    """Request to bind a custom domain to a site."""

    domain: str = Field(..., min_length=1, max_length=MAX_DOMAIN_LENGTH)
    site_id: str = Field(..., min_length=1)


class ReassignDomainRequest(PydanticBaseModel):
    """Request to unlink a domain from its current site and bind it to another."""

    site_id: str = Field(..., min_length=1)
    domain: str = Field(..., min_length=1, max_length=MAX_DOMAIN_LENGTH)
