"""Templates API handler."""

from typing import Any

import structlog

from sitekit.repositories.template import TemplateRepository
from sitekit.utils.auth import get_auth_context
from sitekit.utils.exceptions import NotFoundError, SiteKitError, StoreUnavailableError
from sitekit.utils.responses import error, from_exception, service_unavailable, success

logger = structlog.get_logger()


def handler(event: dict[str, Any], context: Any) -> dict:
    """Handle template catalog requests.

    Routes:
        GET /templates
        GET /templates/{template_id}
        GET /templates/{template_id}/versions
    """
    try:
        http_method = event.get("httpMethod", "").upper()
        path = event.get("path", "")
        path_params = event.get("pathParameters", {}) or {}
        template_id = path_params.get("template_id")

        get_auth_context(event)
        repo = TemplateRepository()

        if http_method != "GET":
            return error("Method not allowed", 405)
        if template_id and path.endswith("/versions"):
            return list_versions(repo, template_id)
        if template_id:
            return get_template(repo, template_id)
        return list_templates(repo)

    except StoreUnavailableError:
        return service_unavailable()
    except SiteKitError as e:
        return from_exception(e)
    except Exception as e:
        logger.exception("Templates handler error", error=str(e))
        return error("Internal server error", 500)


def list_templates(repo: TemplateRepository) -> dict:
    """List the latest version of every active template (without content)."""
    templates = repo.list_latest()
    return success({
        "items": [
            t.model_dump(mode="json", exclude={"config", "changelog"})
            for t in templates
        ],
    })


def get_template(repo: TemplateRepository, template_id: str) -> dict:
    """Get the latest version of a template, content included."""
    template = repo.get_latest(template_id)
    if template is None:
        raise NotFoundError("Template", template_id)
    return success(template.model_dump(mode="json"))


def list_versions(repo: TemplateRepository, template_id: str) -> dict:
    """List every version of a template with its changelog, oldest first."""
    versions = repo.list_versions(template_id)
    if not versions:
        raise NotFoundError("Template", template_id)
    return success({
        "template_id": template_id,
        "items": [
            t.model_dump(mode="json", exclude={"config"})
            for t in versions
        ],
    })
