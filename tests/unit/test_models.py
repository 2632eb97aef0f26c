"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from sitekit.models.content import Page, SiteContent, find_page, normalize_slug
from sitekit.models.domain import Domain, is_valid_domain, normalize_domain
from sitekit.models.site import DeploymentStatus, PublishSiteRequest, Site, generate_site_id
from sitekit.models.template import ChangelogEntry, Template, VersionChangelog, parse_version


class TestDomainNormalization:
    """Tests for domain grammar and normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Example.COM", "example.com"),
            ("www.example.com", "example.com"),
            ("  shop.example.co.uk.  ", "shop.example.co.uk"),
            ("my-site.example.org", "my-site.example.org"),
        ],
    )
    def test_normalize_domain(self, raw, expected):
        """Domains are lowercased, trimmed and lose a leading www."""
        assert normalize_domain(raw) == expected

    @pytest.mark.parametrize(
        "domain",
        ["example.com", "EXAMPLE.COM", "a-b.example.io", "sub.domain.example.travel"],
    )
    def test_valid_domains(self, domain):
        """Labels of letters, digits and inner hyphens with an alphabetic TLD are valid."""
        assert is_valid_domain(domain)

    @pytest.mark.parametrize(
        "domain",
        ["", "localhost", "-bad.com", "bad-.com", "example.c", "example.c0m", "exa mple.com", "http://example.com"],
    )
    def test_invalid_domains(self, domain):
        """Malformed domains are rejected."""
        assert not is_valid_domain(domain)

    def test_domain_keys(self):
        """Domain records are keyed by the normalized domain and indexed by ID."""
        binding = Domain(domain="example.com", site_id="site-42", user_id="user-1")

        assert binding.get_keys() == {"PK": "DOMAIN#example.com", "SK": "BINDING"}
        gsi = binding.get_gsi_keys()
        assert gsi["GSI1PK"] == "USER#user-1#DOMAINS"
        assert gsi["GSI2PK"] == f"DOMAIN_ID#{binding.id}"

    def test_verification_tokens_are_unique(self):
        """Each binding gets a fresh random token."""
        first = Domain(domain="example.com", site_id="a")
        second = Domain(domain="example.com", site_id="a")

        assert first.verification_token != second.verification_token
        assert first.verification_token.startswith("sitekit-verify=")


class TestSlugs:
    """Tests for page slug normalization and page lookup."""

    @pytest.mark.parametrize("slug", ["/", "", "index", "/index/", None])
    def test_root_slugs_normalize_to_empty(self, slug):
        """All spellings of the root page are equivalent."""
        assert normalize_slug(slug) == ""

    def test_slashes_are_stripped(self):
        """Leading and trailing slashes do not matter."""
        assert normalize_slug("/about/") == "about"
        assert normalize_slug("blog/post-1") == "blog/post-1"

    @pytest.mark.parametrize("root_slug", ["/", "", "index"])
    def test_root_request_matches_any_root_spelling(self, root_slug):
        """An empty path finds the page whose slug is a root spelling."""
        content = SiteContent(pages=[
            Page(id="about", slug="about"),
            Page(id="home", slug=root_slug),
        ])

        assert find_page(content, "").id == "home"
        assert find_page(content, "/").id == "home"

    def test_first_match_wins(self):
        """Duplicate slugs resolve to the first page deterministically."""
        content = SiteContent(pages=[
            Page(id="first", slug="/pricing"),
            Page(id="second", slug="pricing/"),
        ])

        assert find_page(content, "pricing").id == "first"

    def test_root_falls_back_to_first_page(self):
        """Without a root page, the root request serves the first page."""
        content = SiteContent(pages=[Page(id="landing", slug="landing"), Page(id="about", slug="about")])

        assert find_page(content, "/").id == "landing"

    def test_unknown_path_is_not_found(self):
        """Only the root falls back; other unmatched paths are not found."""
        content = SiteContent(pages=[Page(id="home", slug="/")])

        assert find_page(content, "/missing") is None

    def test_no_pages(self):
        """A site without pages finds nothing."""
        assert find_page(SiteContent(), "/") is None


class TestSite:
    """Tests for the Site model."""

    def _site(self, **overrides) -> Site:
        data = {
            "site_id": "acme-1a2b3c",
            "user_id": "user-1",
            "template_id": "starter",
            "template_version": "1.0.0",
            "name": "Acme",
        }
        data.update(overrides)
        return Site(**data)

    def test_defaults(self):
        """A new site is an unpublished draft without a domain."""
        site = self._site()

        assert site.deployment_status == DeploymentStatus.DRAFT.value
        assert site.published_content is None
        assert site.is_published is False
        assert site.custom_domain is None
        assert site.domain_verified is False

    def test_verified_flag_requires_domain(self):
        """domain_verified cannot be set without a custom domain."""
        with pytest.raises(PydanticValidationError):
            self._site(domain_verified=True)

        site = self._site(custom_domain="example.com", domain_verified=True)
        assert site.domain_verified is True

    def test_site_id_must_be_dns_label(self):
        """Site IDs double as subdomains."""
        with pytest.raises(PydanticValidationError):
            self._site(site_id="Not A Label")

    def test_generate_site_id(self):
        """Generated IDs are slugified names with a random suffix."""
        site_id = generate_site_id("My Great Site!")

        assert site_id.startswith("my-great-site-")
        assert len(site_id) == len("my-great-site-") + 6
        assert generate_site_id("!!!").startswith("site-")

    def test_dynamodb_round_trip_keeps_content_strings(self, sample_content):
        """Content strings that look like timestamps stay strings."""
        sample_content.pages[0].sections[0].props["date"] = "2024-01-01T00:00:00"
        site = self._site(draft_content=sample_content)

        item = site.to_dynamodb()
        item.update(site.get_keys())
        restored = Site.from_dynamodb(item)

        assert restored.draft_content.pages[0].sections[0].props["date"] == "2024-01-01T00:00:00"
        assert restored.draft_content == site.draft_content
        assert restored.created_at == site.created_at

    def test_publish_request_blank_domain(self):
        """A blank custom domain on publish means no domain."""
        assert PublishSiteRequest(custom_domain="  ").custom_domain is None
        assert PublishSiteRequest(custom_domain="example.com").custom_domain == "example.com"


class TestTemplate:
    """Tests for the Template model."""

    def test_parse_version(self):
        """Versions compare numerically."""
        assert parse_version("1.10.0") > parse_version("1.9.3")
        assert parse_version("v2.0") == (2, 0)

    def test_changes_since(self):
        """Only versions newer than the given one are reported, oldest first."""
        template = Template(
            template_id="starter",
            name="Starter",
            template_version="1.2.0",
            changelog=[
                VersionChangelog(version="1.2.0", changes=[ChangelogEntry(type="added", description="FAQ")]),
                VersionChangelog(version="1.0.0", changes=[]),
                VersionChangelog(version="1.1.0", changes=[ChangelogEntry(type="fixed", description="Footer")]),
            ],
        )

        changes = template.changes_since("1.0.0")

        assert [c.version for c in changes] == ["1.1.0", "1.2.0"]

    def test_keys(self):
        """Each template version is its own item."""
        template = Template(template_id="starter", name="Starter", template_version="2.0.0")

        assert template.get_keys() == {"PK": "TEMPLATE#starter", "SK": "VERSION#2.0.0"}
        assert template.get_gsi_keys()["GSI1PK"] == "TEMPLATES"
