"""Site content models: pages, sections, theme and navigation.

The same structure backs a template's configuration, a site's draft and a
site's published snapshot.
"""

from typing import Any

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field

ROOT_SLUGS = frozenset({"", "index"})


class Section(PydanticBaseModel):
    """A section on a page; ``type`` selects the renderer."""

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    props: dict[str, Any] = Field(default_factory=dict)


class Page(PydanticBaseModel):
    """A page of a site."""

    id: str = Field(..., min_length=1)
    slug: str = ""
    title: str = ""
    seo: dict[str, Any] | None = None
    sections: list[Section] = Field(default_factory=list)


class NavItem(PydanticBaseModel):
    """Navigation link."""

    label: str
    href: str


class Theme(PydanticBaseModel):
    """Theme configuration; unknown keys are preserved."""

    model_config = ConfigDict(extra="allow")

    color: dict[str, str] = Field(default_factory=dict)
    font: str | None = None


class SiteContent(PydanticBaseModel):
    """Pages, theme, navigation and footer of a site or template."""

    pages: list[Page] = Field(default_factory=list)
    theme: Theme = Field(default_factory=Theme)
    navigation: list[NavItem] = Field(default_factory=list)
    footer: dict[str, Any] = Field(default_factory=dict)

    def snapshot(self) -> "SiteContent":
        """Return an independent deep copy of this content."""
        return self.model_copy(deep=True)

    def get_page(self, page_id: str) -> Page | None:
        """Find a page by ID."""
        for page in self.pages:
            if page.id == page_id:
                return page
        return None


def normalize_slug(slug: str | None) -> str:
    """Normalize a page slug or request path for comparison.

    Leading/trailing slashes are stripped and ``index`` is treated as the
    root page, so ``"/"``, ``""`` and ``"index"`` all normalize to ``""``.
    """
    normalized = (slug or "").strip().strip("/")
    if normalized in ROOT_SLUGS:
        return ""
    return normalized


def find_page(content: SiteContent, path: str | None) -> Page | None:
    """Pick the page to serve for a request path.

    The first page whose normalized slug matches wins. When nothing matches
    and the request targets the root, the first page is served; any other
    unmatched path is not found.
    """
    target = normalize_slug(path)

    for page in content.pages:
        if normalize_slug(page.slug) == target:
            return page

    if target == "" and content.pages:
        return content.pages[0]

    return None
