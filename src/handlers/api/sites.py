"""Sites API handler."""

import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from sitekit.models.site import CreateSiteRequest, PublishSiteRequest, UpdateDraftRequest, UpdateSiteDomainRequest
from sitekit.services.domain_binding import DomainBindingService
from sitekit.services.publish import PublishPipeline
from sitekit.services.site_service import SiteService
from sitekit.utils.auth import AuthContext, get_auth_context, require_site_owner
from sitekit.utils.exceptions import (
    SiteKitError,
    StoreUnavailableError,
    ValidationError,
)
from sitekit.utils.responses import created, error, from_exception, service_unavailable, success, validation_error

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle sites API requests.

    Routes:
        GET    /sites
        POST   /sites
        GET    /sites/{site_id}
        PUT    /sites/{site_id}/draft
        GET    /sites/{site_id}/preview
        GET    /sites/{site_id}/published
        POST   /sites/{site_id}/publish
        PUT    /sites/{site_id}/domain
        GET    /sites/{site_id}/check-updates
        POST   /sites/{site_id}/apply-update
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        site_id = path_params.get("site_id")

        auth = get_auth_context(event)
        service = SiteService()

        if not site_id:
            if http_method == "GET":
                return list_sites(service, auth, event)
            elif http_method == "POST":
                return create_site(service, auth, event)
            return error("Method not allowed", 405)

        if http_method == "PUT" and path.endswith("/draft"):
            return update_draft(service, auth, site_id, event)
        elif http_method == "GET" and path.endswith("/preview"):
            return get_preview(service, auth, site_id)
        elif http_method == "GET" and path.endswith("/published"):
            return get_published(service, auth, site_id)
        elif http_method == "POST" and path.endswith("/publish"):
            return publish_site(service, auth, site_id, event)
        elif http_method == "PUT" and path.endswith("/domain"):
            return update_domain(service, auth, site_id, event)
        elif http_method == "GET" and path.endswith("/check-updates"):
            return check_updates(service, auth, site_id)
        elif http_method == "POST" and path.endswith("/apply-update"):
            return apply_update(service, auth, site_id)
        elif http_method == "GET":
            return get_site(service, auth, site_id)
        else:
            return error("Method not allowed", 405)

    except ValidationError as e:
        return validation_error(e.errors)
    except StoreUnavailableError:
        return service_unavailable()
    except SiteKitError as e:
        return from_exception(e)
    except Exception as e:
        logger.exception("Sites handler error", error=str(e))
        return error("Internal server error", 500)


def _parse_body(event: dict, model: type):
    """Parse and validate a JSON body, raising ValidationError on bad input."""
    try:
        body = json.loads(event.get("body") or "{}")
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body", [{"field": "body", "message": "Invalid JSON"}])


def _owned_site(service: SiteService, auth: AuthContext, site_id: str):
    site = service.get_site(site_id)
    require_site_owner(auth, site)
    return site


def _site_summary(site) -> dict:
    data = site.model_dump(mode="json", exclude={"draft_content", "published_content"})
    data["is_published"] = site.is_published
    return data


def list_sites(service: SiteService, auth: AuthContext, event: dict) -> dict:
    """List the caller's sites."""
    query_params = event.get("queryStringParameters", {}) or {}
    try:
        limit = min(int(query_params.get("limit", 50)), 100)
    except (TypeError, ValueError):
        limit = 0
    if limit < 1:
        raise ValidationError("Invalid limit", [{"field": "limit", "message": "Must be a number from 1 to 100"}])

    sites = service.list_sites(auth.user_id, limit=limit)
    return success({"items": [_site_summary(s) for s in sites]})


def create_site(service: SiteService, auth: AuthContext, event: dict) -> dict:
    """Clone a template into a new site."""
    request = _parse_body(event, CreateSiteRequest)
    site = service.create_site(auth.user_id, request.template_id, request.name)
    return created(site.model_dump(mode="json"))


def get_site(service: SiteService, auth: AuthContext, site_id: str) -> dict:
    """Get a site with its draft and published content."""
    site = _owned_site(service, auth, site_id)
    return success(site.model_dump(mode="json"))


def update_draft(service: SiteService, auth: AuthContext, site_id: str, event: dict) -> dict:
    """Replace a site's draft content (editor autosave)."""
    site = _owned_site(service, auth, site_id)
    request = _parse_body(event, UpdateDraftRequest)

    site = service.update_draft(site_id, site.user_id, request.content)
    return success({
        "site_id": site.site_id,
        "version": site.version,
        "updated_at": site.updated_at.isoformat(),
    })


def get_preview(service: SiteService, auth: AuthContext, site_id: str) -> dict:
    """Draft content for preview."""
    site = _owned_site(service, auth, site_id)
    return success(site.draft_content)


def get_published(service: SiteService, auth: AuthContext, site_id: str) -> dict:
    """Published content as last snapshotted."""
    site = _owned_site(service, auth, site_id)
    return success(service.get_published(site_id, site.user_id))


def publish_site(service: SiteService, auth: AuthContext, site_id: str, event: dict) -> dict:
    """Publish the current draft, optionally claiming a domain on first publish."""
    _owned_site(service, auth, site_id)
    request = _parse_body(event, PublishSiteRequest)

    pipeline = PublishPipeline(site_repo=service.site_repo)
    result = pipeline.publish(site_id, custom_domain=request.custom_domain)
    return success(result)


def update_domain(service: SiteService, auth: AuthContext, site_id: str, event: dict) -> dict:
    """Set a site's custom domain, or remove it when the domain is empty."""
    _owned_site(service, auth, site_id)
    request = _parse_body(event, UpdateSiteDomainRequest)

    binding_service = DomainBindingService(site_repo=service.site_repo)
    setup = binding_service.request_binding(site_id, request.domain)
    if setup is None:
        return success({"site_id": site_id, "custom_domain": None, "domain_verified": False})
    return success(setup)


def check_updates(service: SiteService, auth: AuthContext, site_id: str) -> dict:
    """Template changes available since the site was cloned or last updated."""
    site = _owned_site(service, auth, site_id)
    return success(service.check_updates(site_id, site.user_id))


def apply_update(service: SiteService, auth: AuthContext, site_id: str) -> dict:
    """Upgrade the site's draft to the latest template version."""
    site = _owned_site(service, auth, site_id)
    site = service.apply_update(site_id, site.user_id)
    return success({
        "site_id": site.site_id,
        "template_version": site.template_version,
        "draft_content": site.draft_content.model_dump(mode="json"),
    })
