"""Custom domain management API handler."""

import json
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from sitekit.models.domain import CreateDomainRequest, Domain, ReassignDomainRequest
from sitekit.repositories.site import SiteRepository
from sitekit.services.domain_binding import DomainBindingService
from sitekit.utils.auth import AuthContext, get_auth_context, require_site_owner
from sitekit.utils.exceptions import (
    NotFoundError,
    SiteKitError,
    StoreUnavailableError,
    ValidationError,
)
from sitekit.utils.responses import (
    created,
    error,
    from_exception,
    no_content,
    service_unavailable,
    success,
    validation_error,
)

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle domain management API requests.

    Routes:
        GET    /domains                          - List the caller's domains
        POST   /domains                          - Bind a domain to a site
        POST   /domains/{domain_id}/verify       - Check DNS and verify
        GET    /domains/{domain_id}/dns-status   - Inspect DNS without changing state
        POST   /domains/{domain_id}/reassign     - Unlink from its site and bind to another
        DELETE /domains/{domain_id}              - Remove the binding
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        domain_id = path_params.get("domain_id")

        auth = get_auth_context(event)
        site_repo = SiteRepository()
        service = DomainBindingService(site_repo=site_repo)

        if http_method == "POST" and domain_id and path.endswith("/verify"):
            return verify_domain(service, site_repo, auth, domain_id)
        elif http_method == "POST" and domain_id and path.endswith("/reassign"):
            return reassign_domain(service, site_repo, auth, domain_id, event)
        elif http_method == "GET" and domain_id and path.endswith("/dns-status"):
            return get_dns_status(service, site_repo, auth, domain_id)
        elif http_method == "DELETE" and domain_id:
            return delete_domain(service, site_repo, auth, domain_id)
        elif http_method == "GET" and not domain_id:
            return list_domains(service, auth)
        elif http_method == "POST" and not domain_id:
            return create_domain(service, site_repo, auth, event)
        else:
            return error("Method not allowed", 405)

    except ValidationError as e:
        return validation_error(e.errors)
    except StoreUnavailableError:
        return service_unavailable()
    except SiteKitError as e:
        return from_exception(e)
    except Exception as e:
        logger.exception("Domain handler error", error=str(e))
        return error("Internal server error", 500)


def _parse_body(event: dict, model: type):
    try:
        body = json.loads(event.get("body") or "{}")
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body", [{"field": "body", "message": "Invalid JSON"}])


def _require_owner_of(site_repo: SiteRepository, auth: AuthContext, site_id: str):
    site = site_repo.get_by_site_id(site_id, consistent_read=True)
    if site is None:
        raise NotFoundError("Site", site_id)
    require_site_owner(auth, site)
    return site


def _owned_binding(
    service: DomainBindingService,
    site_repo: SiteRepository,
    auth: AuthContext,
    domain_id: str,
) -> Domain:
    binding = service.get_domain(domain_id)
    _require_owner_of(site_repo, auth, binding.site_id)
    return binding


def _binding_summary(binding: Domain) -> dict:
    return {
        "domain_id": binding.id,
        "domain": binding.domain,
        "site_id": binding.site_id,
        "verified": binding.verified,
        "verified_at": binding.verified_at.isoformat() if binding.verified_at else None,
        "created_at": binding.created_at.isoformat(),
    }


def list_domains(service: DomainBindingService, auth: AuthContext) -> dict:
    """List the domains the caller has claimed."""
    bindings = service.list_domains(auth.user_id)
    return success({"items": [_binding_summary(b) for b in bindings]})


def create_domain(
    service: DomainBindingService,
    site_repo: SiteRepository,
    auth: AuthContext,
    event: dict,
) -> dict:
    """Bind a domain to one of the caller's sites.

    Returns the TXT and CNAME records to publish. A domain held by another
    site is a 409 with the linked site's details so the UI can offer
    unlink-and-reassign.
    """
    request = _parse_body(event, CreateDomainRequest)
    _require_owner_of(site_repo, auth, request.site_id)

    setup = service.request_binding(request.site_id, request.domain)
    return created(setup)


def verify_domain(
    service: DomainBindingService,
    site_repo: SiteRepository,
    auth: AuthContext,
    domain_id: str,
) -> dict:
    """Check the verification TXT record and mark the domain verified."""
    _owned_binding(service, site_repo, auth, domain_id)
    return success(service.verify(domain_id))


def get_dns_status(
    service: DomainBindingService,
    site_repo: SiteRepository,
    auth: AuthContext,
    domain_id: str,
) -> dict:
    """Report the DNS records currently published for a domain."""
    binding = _owned_binding(service, site_repo, auth, domain_id)
    status = service.check_dns(domain_id)
    return success({
        **status.model_dump(mode="json"),
        "setup": service.setup_info(binding).model_dump(mode="json"),
    })


def reassign_domain(
    service: DomainBindingService,
    site_repo: SiteRepository,
    auth: AuthContext,
    domain_id: str,
    event: dict,
) -> dict:
    """Unlink a domain from its current site and bind it to one of the caller's sites."""
    request = _parse_body(event, ReassignDomainRequest)
    _require_owner_of(site_repo, auth, request.site_id)

    setup = service.unlink_and_reassign(domain_id, request.site_id, request.domain)
    return success(setup)


def delete_domain(
    service: DomainBindingService,
    site_repo: SiteRepository,
    auth: AuthContext,
    domain_id: str,
) -> dict:
    """Remove a domain binding."""
    _owned_binding(service, site_repo, auth, domain_id)
    service.release(domain_id)
    return no_content()
