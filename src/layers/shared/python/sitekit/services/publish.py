"""Publish pipeline: snapshots a site's draft into its published content."""

from datetime import datetime

import structlog
from pydantic import BaseModel as PydanticBaseModel, Field

from sitekit.config import Settings, get_settings
from sitekit.models.base import utc_now
from sitekit.models.domain import DomainSetupInfo
from sitekit.models.site import DeploymentStatus, Site
from sitekit.repositories.site import SiteRepository
from sitekit.services.domain_binding import DomainBindingService
from sitekit.services.revalidation import RevalidationClient
from sitekit.utils.exceptions import NotFoundError

logger = structlog.get_logger()


class PublishResult(PydanticBaseModel):
    """Outcome of a successful publish."""

    site_id: str
    deployment_status: DeploymentStatus
    published_at: datetime
    urls: list[str] = Field(default_factory=list)
    custom_domain: str | None = None
    domain_verified: bool = False
    domain_setup: DomainSetupInfo | None = None
    revalidated: bool = False


class PublishPipeline:
    """Publishes sites.

    Steps:
    1. On a first publish with a custom domain, claim the domain. A
       collision aborts the publish before anything is written.
    2. Mark the site ``updating``.
    3. Copy the draft into the published content, mark it ``published``.
    4. Signal revalidation of the site's cached pages.

    If step 2 or 3 fails the status is rolled back to what it was, so a
    site is never stuck in ``updating``; the caller may simply retry.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        site_repo: SiteRepository | None = None,
        binding_service: DomainBindingService | None = None,
        revalidation: RevalidationClient | None = None,
    ):
        self.settings = settings or get_settings()
        self.site_repo = site_repo or SiteRepository()
        self.binding_service = binding_service or DomainBindingService(
            settings=self.settings, site_repo=self.site_repo
        )
        self.revalidation = revalidation or RevalidationClient(self.settings)

    def publish(self, site_id: str, custom_domain: str | None = None) -> PublishResult:
        """Publish a site's current draft.

        Args:
            site_id: The site to publish.
            custom_domain: Domain to claim, honored on the first publish only.

        Returns:
            PublishResult.

        Raises:
            NotFoundError: If the site does not exist.
            CollisionError: If ``custom_domain`` belongs to another site.
            ConflictError: If the site changed while publishing.
            StoreUnavailableError: If the store failed; status was rolled back.
        """
        site = self._get_site(site_id)

        domain_setup = None
        if custom_domain and not site.is_published:
            domain_setup = self.binding_service.request_binding(site_id, custom_domain)
            # The claim bumped the site's version
            site = self._get_site(site_id)

        previous_status = site.deployment_status
        site.deployment_status = DeploymentStatus.UPDATING
        self.site_repo.update_site(site)

        try:
            site.published_content = site.draft_content.snapshot()
            site.deployment_status = DeploymentStatus.PUBLISHED
            site.published_at = utc_now()
            self.site_repo.update_site(site)
        except Exception as e:
            logger.warning(
                "Publish failed, restoring status",
                site_id=site_id,
                previous_status=previous_status,
                error=str(e),
            )
            self._restore_status(site_id, previous_status)
            raise

        revalidated = self.revalidation.notify(site_id)

        logger.info(
            "Site published",
            site_id=site_id,
            pages=len(site.published_content.pages),
            revalidated=revalidated,
        )
        return PublishResult(
            site_id=site.site_id,
            deployment_status=DeploymentStatus.PUBLISHED,
            published_at=site.published_at,
            urls=self._site_urls(site),
            custom_domain=site.custom_domain,
            domain_verified=site.domain_verified,
            domain_setup=domain_setup,
            revalidated=revalidated,
        )

    def _get_site(self, site_id: str) -> Site:
        site = self.site_repo.get_by_site_id(site_id, consistent_read=True)
        if site is None:
            raise NotFoundError("Site", site_id)
        return site

    def _restore_status(self, site_id: str, previous_status: DeploymentStatus) -> None:
        try:
            restored = self.site_repo.set_deployment_status(
                site_id,
                status=previous_status,
                expected_status=DeploymentStatus.UPDATING,
            )
        except Exception:
            logger.exception("Failed to restore deployment status", site_id=site_id)
            return

        if not restored:
            logger.warning("Deployment status already moved on", site_id=site_id)

    def _site_urls(self, site: Site) -> list[str]:
        urls = [f"https://{self.settings.site_hostname(site.site_id)}"]
        if site.custom_domain and site.domain_verified:
            urls.append(f"https://{site.custom_domain}")
        return urls
