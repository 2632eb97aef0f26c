"""Template model: versioned starting configurations sites are cloned from."""

from typing import ClassVar, Literal

from pydantic import BaseModel as PydanticBaseModel, Field

from sitekit.models.base import BaseModel
from sitekit.models.content import SiteContent


class ChangelogEntry(PydanticBaseModel):
    """A single change introduced by a template version."""

    type: Literal["added", "removed", "modified", "fixed"]
    description: str
    path: str | None = None


class VersionChangelog(PydanticBaseModel):
    """Changes shipped in one template version."""

    version: str
    date: str = ""
    changes: list[ChangelogEntry] = Field(default_factory=list)


def parse_version(version: str) -> tuple[int, ...]:
    """Parse a dotted version string into a comparable tuple.

    Non-numeric parts compare as 0 so malformed versions still sort.
    """
    parts = []
    for part in version.strip().lstrip("v").split("."):
        digits = "".join(ch for ch in part if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


class Template(BaseModel):
    """Template entity, immutable once a version is stored.

    Key Pattern:
        PK: TEMPLATE#{template_id}
        SK: VERSION#{version}
        GSI1PK: TEMPLATES
        GSI1SK: {template_id}#{version}
    """

    _pk_prefix: ClassVar[str] = "TEMPLATE#"
    _sk_prefix: ClassVar[str] = "VERSION#"

    template_id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    template_version: str = Field(default="1.0.0", min_length=1, max_length=50)
    description: str | None = None
    category: str | None = None
    thumbnail: str | None = None
    config: SiteContent = Field(default_factory=SiteContent)
    is_active: bool = True
    changelog: list[VersionChangelog] = Field(default_factory=list)

    def get_pk(self) -> str:
        """Get partition key: TEMPLATE#{template_id}."""
        return f"TEMPLATE#{self.template_id}"

    def get_sk(self) -> str:
        """Get sort key: VERSION#{template_version}."""
        return f"VERSION#{self.template_version}"

    def get_gsi_keys(self) -> dict[str, str]:
        """Get GSI1 keys for listing all templates."""
        return {
            "GSI1PK": "TEMPLATES",
            "GSI1SK": f"{self.template_id}#{self.template_version}",
        }

    def changes_since(self, version: str) -> list[VersionChangelog]:
        """Changelog entries for versions newer than ``version``, oldest first."""
        current = parse_version(version)
        newer = [c for c in self.changelog if parse_version(c.version) > current]
        return sorted(newer, key=lambda c: parse_version(c.version))
