"""Pytest configuration and fixtures."""

import json
import os

import pytest

# Set environment variables before imports
os.environ["TABLE_NAME"] = "sitekit-test"
os.environ["STAGE"] = "test"
os.environ["BUILDER_DOMAIN"] = "builder.com"
os.environ["PLATFORM_IPS"] = "10.0.0.1"
os.environ["DNS_VERIFICATION_MODE"] = "dns"
os.environ["REVALIDATE_URL"] = ""
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"


@pytest.fixture(autouse=True)
def reset_process_state():
    """Settings and the host cache are per-container singletons."""
    from sitekit.config import get_settings
    from sitekit.services.host_cache import reset_host_cache

    get_settings.cache_clear()
    reset_host_cache()
    yield
    get_settings.cache_clear()
    reset_host_cache()


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def dynamodb_table(aws_credentials):
    """Create mocked DynamoDB table."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        table = dynamodb.create_table(
            TableName="sitekit-test",
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI1SK", "AttributeType": "S"},
                {"AttributeName": "GSI2PK", "AttributeType": "S"},
                {"AttributeName": "GSI2SK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
                {
                    "IndexName": "GSI2",
                    "KeySchema": [
                        {"AttributeName": "GSI2PK", "KeyType": "HASH"},
                        {"AttributeName": "GSI2SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
            BillingMode="PAY_PER_REQUEST",
        )

        table.wait_until_exists()

        yield table


@pytest.fixture
def sample_content():
    """Site content with a root page and an about page."""
    from sitekit.models.content import NavItem, Page, Section, SiteContent, Theme

    return SiteContent(
        pages=[
            Page(
                id="home",
                slug="/",
                title="Home",
                sections=[
                    Section(id="hero-1", type="hero", props={"headline": "Welcome", "cta": "Start"}),
                    Section(id="features-1", type="features", props={"title": "Why us", "features": []}),
                ],
            ),
            Page(
                id="about",
                slug="about",
                title="About",
                sections=[
                    Section(id="content-1", type="content", props={"title": "Our story", "content": "Since 2020."}),
                ],
            ),
        ],
        theme=Theme(color={"primary": "#7c3aed"}, font="Inter"),
        navigation=[NavItem(label="Home", href="/"), NavItem(label="About", href="/about")],
        footer={"text": "Copyright Acme"},
    )


@pytest.fixture
def seeded_template(dynamodb_table, sample_content):
    """Store a starter template (version 1.0.0)."""
    from sitekit.models.template import Template
    from sitekit.repositories.template import TemplateRepository

    template = Template(
        template_id="starter",
        name="Starter",
        template_version="1.0.0",
        category="business",
        config=sample_content,
    )
    return TemplateRepository().create_template(template)


@pytest.fixture
def make_site(dynamodb_table, sample_content):
    """Factory storing a site directly through the repository."""
    from sitekit.models.site import Site
    from sitekit.repositories.site import SiteRepository

    repo = SiteRepository()

    def _make_site(site_id: str, user_id: str = "test-user-123", name: str | None = None) -> Site:
        site = Site(
            site_id=site_id,
            user_id=user_id,
            template_id="starter",
            template_version="1.0.0",
            name=name or site_id.title(),
            draft_content=sample_content.snapshot(),
        )
        return repo.create_site(site)

    return _make_site


@pytest.fixture
def dns():
    """In-memory DNS records for verification."""
    from sitekit.services.dns_verifier import StaticDnsVerifier

    return StaticDnsVerifier()


@pytest.fixture
def host_cache():
    """A private routing cache with a controllable clock."""
    from sitekit.services.host_cache import HostCache

    class Clock:
        def __init__(self):
            self.now = 1000.0

        def __call__(self):
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    clock = Clock()
    cache = HostCache(ttl=30, negative_ttl=5, max_entries=100, clock=clock)
    cache.clock = clock
    return cache


@pytest.fixture
def binding_service(dynamodb_table, dns, host_cache):
    """Domain binding service wired to the mocked table and DNS."""
    from sitekit.services.domain_binding import DomainBindingService

    return DomainBindingService(dns_verifier=dns, cache=host_cache)


@pytest.fixture
def resolver(dynamodb_table, host_cache):
    """Host resolver sharing the binding service's cache."""
    from sitekit.execution import RetryConfig, RetryPolicy
    from sitekit.services.host_resolver import HostResolver

    return HostResolver(
        cache=host_cache,
        retry_policy=RetryPolicy(RetryConfig(max_retries=1, base_delay=0), sleep=lambda _: None),
    )


@pytest.fixture
def api_gateway_event():
    """Create a sample API Gateway event."""
    def _create_event(
        method: str = "GET",
        path: str = "/",
        path_params: dict = None,
        query_params: dict = None,
        body: dict = None,
        user_id: str | None = "test-user-123",
        headers: dict = None,
    ):
        event_headers = {
            "Authorization": "Bearer test-token",
            "Content-Type": "application/json",
        }
        event_headers.update(headers or {})

        authorizer = {}
        if user_id:
            authorizer = {
                "userId": user_id,
                "email": "test@example.com",
                "isAdmin": "false",
            }

        return {
            "httpMethod": method,
            "path": path,
            "pathParameters": path_params or {},
            "queryStringParameters": query_params or {},
            "body": body if isinstance(body, str) else (json.dumps(body) if body else None),
            "headers": event_headers,
            "requestContext": {"authorizer": authorizer},
        }

    return _create_event


class LambdaContext:
    """Mock Lambda context."""

    def __init__(self):
        self.function_name = "test-function"
        self.memory_limit_in_mb = 128
        self.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        self.aws_request_id = "test-request-id"

    def get_remaining_time_in_millis(self):
        return 30000


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    return LambdaContext()
