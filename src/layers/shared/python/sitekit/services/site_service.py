"""Site lifecycle: cloning templates, draft edits, template upgrades and public reads."""

import structlog
from pydantic import BaseModel as PydanticBaseModel, Field

from sitekit.execution import RetryPolicy
from sitekit.models.content import SiteContent
from sitekit.models.site import Site, generate_site_id
from sitekit.models.template import Template, VersionChangelog, parse_version
from sitekit.repositories.site import SiteRepository
from sitekit.repositories.template import TemplateRepository
from sitekit.utils.exceptions import ConflictError, ForbiddenError, NotFoundError

logger = structlog.get_logger()

MAX_ID_ATTEMPTS = 3
MAX_DRAFT_SAVE_ATTEMPTS = 3


class TemplateUpdateInfo(PydanticBaseModel):
    """Whether a newer template version is available for a site."""

    has_update: bool
    current_version: str
    latest_version: str | None = None
    changelog: list[VersionChangelog] = Field(default_factory=list)


def merge_template_update(draft: SiteContent, template: SiteContent) -> SiteContent:
    """Bring new template material into a draft without overwriting edits.

    Pages whose IDs the draft lacks are appended; theme colors and keys the
    draft lacks are filled in; navigation and footer are only taken from the
    template when the draft has none.
    """
    merged = draft.snapshot()

    existing_ids = {page.id for page in merged.pages}
    for page in template.pages:
        if page.id not in existing_ids:
            merged.pages.append(page.model_copy(deep=True))

    theme = merged.theme.model_dump()
    for key, value in template.theme.model_dump().items():
        if key == "color":
            theme["color"] = {**value, **theme.get("color", {})}
        elif theme.get(key) in (None, "", {}):
            theme[key] = value
    merged.theme = type(merged.theme).model_validate(theme)

    if not merged.navigation:
        merged.navigation = [item.model_copy() for item in template.navigation]
    merged.footer = {**template.footer, **merged.footer}
    return merged


class SiteService:
    """Operations on sites other than domain binding and publishing."""

    def __init__(
        self,
        site_repo: SiteRepository | None = None,
        template_repo: TemplateRepository | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.site_repo = site_repo or SiteRepository()
        self.template_repo = template_repo or TemplateRepository()
        self.retry_policy = retry_policy or RetryPolicy()

    def _get_template(self, template_id: str) -> Template:
        template = self.template_repo.get_latest(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        return template

    def get_site(self, site_id: str, user_id: str | None = None) -> Site:
        """Get a site, enforcing ownership when ``user_id`` is given.

        Raises:
            NotFoundError: If the site does not exist.
            ForbiddenError: If the site belongs to another user.
        """
        site = self.site_repo.get_by_site_id(site_id, consistent_read=True)
        if site is None:
            raise NotFoundError("Site", site_id)
        if user_id is not None and site.user_id != user_id:
            raise ForbiddenError(
                message="You don't have access to this site",
                resource_type="Site",
                action="access",
            )
        return site

    def list_sites(self, user_id: str, limit: int = 50) -> list[Site]:
        sites, _ = self.site_repo.list_by_user(user_id, limit=limit)
        return sites

    def create_site(self, user_id: str, template_id: str, name: str | None = None) -> Site:
        """Clone the latest version of a template into a new draft site."""
        template = self._get_template(template_id)
        name = (name or "").strip() or template.name

        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            site = Site(
                site_id=generate_site_id(name),
                user_id=user_id,
                template_id=template.template_id,
                template_version=template.template_version,
                name=name,
                draft_content=template.config.snapshot(),
            )
            try:
                self.site_repo.create_site(site)
            except ConflictError:
                if attempt == MAX_ID_ATTEMPTS:
                    raise
                logger.info("Site ID taken, regenerating", site_id=site.site_id)
                continue

            logger.info(
                "Site created",
                site_id=site.site_id,
                user_id=user_id,
                template_id=template.template_id,
                template_version=template.template_version,
            )
            return site

    def update_draft(self, site_id: str, user_id: str, content: SiteContent) -> Site:
        """Replace a site's draft content.

        Only the draft is written; published content is untouched. Version
        conflicts from concurrent status or domain changes are retried
        against a fresh read, since the editor is the draft's only writer.
        """
        for attempt in range(1, MAX_DRAFT_SAVE_ATTEMPTS + 1):
            site = self.get_site(site_id, user_id)
            site.draft_content = content.snapshot()
            try:
                self.site_repo.update_site(site)
            except ConflictError:
                if attempt == MAX_DRAFT_SAVE_ATTEMPTS:
                    raise
                continue

            logger.debug("Draft saved", site_id=site_id, pages=len(content.pages))
            return site

    def get_preview(self, site_id: str, user_id: str) -> SiteContent:
        """Draft content for the owner's preview."""
        return self.get_site(site_id, user_id).draft_content

    def get_public_site(self, site_id: str) -> Site:
        """Get a published site for public serving (read path, retried).

        Raises:
            NotFoundError: If the site does not exist or was never published.
        """
        site = self.retry_policy.call(
            lambda: self.site_repo.get_by_site_id(site_id),
            context={"site_id": site_id},
        )
        if site is None or site.published_content is None:
            raise NotFoundError("Site", site_id)
        return site

    def get_published(self, site_id: str, user_id: str | None = None) -> SiteContent:
        """Published content of a site."""
        if user_id is not None:
            site = self.get_site(site_id, user_id)
            if site.published_content is None:
                raise NotFoundError("Site", site_id, message=f"Site '{site_id}' has not been published")
            return site.published_content
        return self.get_public_site(site_id).published_content

    def check_updates(self, site_id: str, user_id: str) -> TemplateUpdateInfo:
        """Report template versions newer than the one the site was cloned from."""
        site = self.get_site(site_id, user_id)
        latest = self.template_repo.get_latest(site.template_id)

        if latest is None or parse_version(latest.template_version) <= parse_version(
            site.template_version
        ):
            return TemplateUpdateInfo(
                has_update=False,
                current_version=site.template_version,
                latest_version=latest.template_version if latest else None,
            )

        return TemplateUpdateInfo(
            has_update=True,
            current_version=site.template_version,
            latest_version=latest.template_version,
            changelog=latest.changes_since(site.template_version),
        )

    def apply_update(self, site_id: str, user_id: str) -> Site:
        """Move a site's draft to the latest template version."""
        site = self.get_site(site_id, user_id)
        latest = self._get_template(site.template_id)

        if parse_version(latest.template_version) <= parse_version(site.template_version):
            return site

        previous_version = site.template_version
        site.draft_content = merge_template_update(site.draft_content, latest.config)
        site.template_version = latest.template_version
        self.site_repo.update_site(site)

        logger.info(
            "Template update applied",
            site_id=site_id,
            from_version=previous_version,
            to_version=latest.template_version,
        )
        return site
