"""Public site serving API handler (no authentication)."""

from typing import Any

import structlog

from sitekit.models.content import find_page
from sitekit.services.host_resolver import HostKind, HostResolver
from sitekit.services.section_registry import render_not_found_html, render_page_html
from sitekit.services.site_service import SiteService
from sitekit.utils.exceptions import NotFoundError, SiteKitError, StoreUnavailableError
from sitekit.utils.responses import error, from_exception, html, not_found, service_unavailable, success

logger = structlog.get_logger()

# Shared-cache lifetime of rendered pages; revalidation refreshes sooner
PAGE_CACHE_SECONDS = 60


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle public site requests.

    Routes:
        GET /public/sites/{site_id}            - Published content as JSON
        GET /public/domains/lookup/{domain}    - Site ID routed from a host
        GET /public/render/{proxy+}            - Rendered page for the Host header
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}

        if http_method != "GET":
            return error("Method not allowed", 405)

        if path.startswith("/public/render"):
            return render_request(event)
        elif "/public/domains/lookup/" in path:
            return lookup_domain(path_params.get("domain", ""))
        elif path_params.get("site_id"):
            return get_public_site(path_params["site_id"])
        else:
            return error("Not found", 404)

    except StoreUnavailableError:
        return service_unavailable()
    except SiteKitError as e:
        return from_exception(e)
    except Exception as e:
        logger.exception("Public sites handler error", error=str(e))
        return error("Internal server error", 500)


def _header(event: dict, name: str) -> str | None:
    headers = event.get("headers", {}) or {}
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def get_public_site(site_id: str) -> dict:
    """Published content of a site."""
    site = SiteService().get_public_site(site_id)
    return success({
        "site_id": site.site_id,
        "name": site.name,
        "published_at": site.published_at.isoformat() if site.published_at else None,
        "content": site.published_content.model_dump(mode="json"),
    })


def lookup_domain(domain: str) -> dict:
    """Resolve a host the way inbound requests are routed."""
    resolution = HostResolver().resolve(domain)
    if resolution.kind != HostKind.SITE:
        return not_found("Domain", domain)
    return success({
        "host": resolution.host,
        "site_id": resolution.site_id,
        "via": resolution.via,
    })


def render_request(event: dict) -> dict:
    """Render the page a visitor asked for.

    The site comes from the Host header (X-Forwarded-Host when behind a
    CDN). On the platform host itself, ``?site_id=`` selects the site.
    Unresolved hosts, unpublished sites and unknown pages are 404 pages.
    """
    path_params = event.get("pathParameters", {}) or {}
    query_params = event.get("queryStringParameters", {}) or {}
    host = _header(event, "x-forwarded-host") or _header(event, "host")
    page_path = path_params.get("proxy") or query_params.get("path") or "/"

    resolution = HostResolver().resolve(host)
    site_id = resolution.site_id
    if resolution.kind == HostKind.PLATFORM:
        site_id = query_params.get("site_id")

    if not site_id:
        logger.info("Unresolved host", host=host)
        return html(render_not_found_html(), status_code=404)

    try:
        site = SiteService().get_public_site(site_id)
    except NotFoundError:
        return html(render_not_found_html("This site has not been published yet."), status_code=404)

    page = find_page(site.published_content, page_path)
    if page is None:
        return html(render_not_found_html("This page does not exist."), status_code=404)

    body = render_page_html(site.published_content, page, site_name=site.name)
    logger.info("Rendered page", site_id=site_id, page_id=page.id, host=resolution.host)
    return html(body, max_age=PAGE_CACHE_SECONDS)
