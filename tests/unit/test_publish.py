"""Tests for the publish pipeline."""

import httpx
import pytest

from sitekit.config import Settings
from sitekit.models.site import DeploymentStatus
from sitekit.repositories.domain import DomainRepository
from sitekit.repositories.site import SiteRepository
from sitekit.services.publish import PublishPipeline
from sitekit.services.revalidation import RevalidationClient
from sitekit.utils.exceptions import CollisionError, NotFoundError, StoreUnavailableError


@pytest.fixture
def revalidation_calls():
    return []


@pytest.fixture
def pipeline(binding_service, revalidation_calls):
    """Publish pipeline with a recording revalidation endpoint."""
    def handle(request: httpx.Request) -> httpx.Response:
        revalidation_calls.append(request)
        return httpx.Response(200, json={"revalidated": True})

    settings = Settings(
        table_name="sitekit-test",
        builder_domain="builder.com",
        revalidate_url="https://render.example/api/revalidate",
        revalidate_secret="s3cret",
    )
    return PublishPipeline(
        settings=settings,
        site_repo=binding_service.site_repo,
        binding_service=binding_service,
        revalidation=RevalidationClient(settings, transport=httpx.MockTransport(handle)),
    )


def _site(site_id: str):
    return SiteRepository().get_by_site_id(site_id, consistent_read=True)


class TestPublish:
    """Tests for publishing drafts."""

    def test_publish_copies_draft(self, pipeline, make_site, revalidation_calls):
        """The draft becomes the published content and revalidation is signalled."""
        site = make_site("site-42")

        result = pipeline.publish("site-42")

        assert result.deployment_status == DeploymentStatus.PUBLISHED
        assert result.urls == ["https://site-42.builder.com"]
        assert result.revalidated is True
        assert len(revalidation_calls) == 1

        stored = _site("site-42")
        assert stored.deployment_status == DeploymentStatus.PUBLISHED.value
        assert stored.published_content == site.draft_content
        assert stored.published_at is not None

    def test_published_content_is_independent_of_later_drafts(self, pipeline, make_site, sample_content):
        """Editing the draft after publishing does not change the live site."""
        make_site("site-42")
        pipeline.publish("site-42")

        site = _site("site-42")
        site.draft_content.pages[0].title = "Edited"
        SiteRepository().update_site(site)

        assert _site("site-42").published_content.pages[0].title == "Home"

    def test_republish_updates_content(self, pipeline, make_site):
        """Publishing again replaces the published snapshot."""
        make_site("site-42")
        pipeline.publish("site-42")

        site = _site("site-42")
        site.draft_content.pages[0].title = "Version two"
        SiteRepository().update_site(site)
        pipeline.publish("site-42")

        assert _site("site-42").published_content.pages[0].title == "Version two"

    def test_first_publish_claims_domain(self, pipeline, make_site):
        """A first publish with a domain claims it."""
        make_site("site-42")

        result = pipeline.publish("site-42", custom_domain="example.com")

        assert result.domain_setup is not None
        assert result.domain_setup.domain == "example.com"
        assert result.custom_domain == "example.com"
        assert result.domain_verified is False
        # Unverified domains are not advertised as live URLs
        assert result.urls == ["https://site-42.builder.com"]
        assert DomainRepository().get_by_domain("example.com", consistent_read=True).site_id == "site-42"

    def test_domain_ignored_on_republish(self, pipeline, make_site):
        """Later publishes leave domain binding to the domain endpoints."""
        make_site("site-42")
        pipeline.publish("site-42")

        result = pipeline.publish("site-42", custom_domain="example.com")

        assert result.domain_setup is None
        assert DomainRepository().get_by_domain("example.com", consistent_read=True) is None

    def test_collision_aborts_publish(self, pipeline, binding_service, make_site):
        """A taken domain fails the publish before anything is written."""
        make_site("site-a")
        make_site("site-b")
        binding_service.request_binding("site-a", "example.com")

        with pytest.raises(CollisionError):
            pipeline.publish("site-b", custom_domain="example.com")

        site = _site("site-b")
        assert site.deployment_status == DeploymentStatus.DRAFT.value
        assert site.published_content is None

    def test_verified_domain_in_urls(self, pipeline, binding_service, make_site, dns):
        """A verified custom domain is listed with the platform URL."""
        make_site("site-42")
        setup = binding_service.request_binding("site-42", "example.com")
        dns.publish_txt("example.com", setup.verification_token)
        binding_service.verify(setup.domain_id)

        result = pipeline.publish("site-42")

        assert result.urls == ["https://site-42.builder.com", "https://example.com"]

    def test_failed_write_restores_status(self, pipeline, make_site, monkeypatch):
        """A failure after marking the site updating rolls the status back."""
        make_site("site-42")
        repo = pipeline.site_repo
        real_update = repo.update_site
        calls = []

        def failing_update(site):
            calls.append(site.deployment_status)
            if len(calls) == 2:
                raise StoreUnavailableError()
            return real_update(site)

        monkeypatch.setattr(repo, "update_site", failing_update)

        with pytest.raises(StoreUnavailableError):
            pipeline.publish("site-42")

        site = _site("site-42")
        assert site.deployment_status == DeploymentStatus.DRAFT.value
        assert site.published_content is None

    def test_revalidation_failure_does_not_fail_publish(self, binding_service, make_site):
        """Publishing succeeds even if the revalidation endpoint is down."""
        def handle(request):
            raise httpx.ConnectError("connection refused", request=request)

        settings = Settings(
            table_name="sitekit-test",
            builder_domain="builder.com",
            revalidate_url="https://render.example/api/revalidate",
        )
        pipeline = PublishPipeline(
            settings=settings,
            binding_service=binding_service,
            revalidation=RevalidationClient(settings, transport=httpx.MockTransport(handle)),
        )
        make_site("site-42")

        result = pipeline.publish("site-42")

        assert result.revalidated is False
        assert _site("site-42").deployment_status == DeploymentStatus.PUBLISHED.value

    def test_unknown_site(self, pipeline, dynamodb_table):
        """Publishing a missing site is not found."""
        with pytest.raises(NotFoundError):
            pipeline.publish("ghost")
