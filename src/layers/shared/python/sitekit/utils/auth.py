"""Authentication context helpers.

Identity is established upstream by the API Gateway authorizer; handlers
only read the resulting context and enforce site ownership.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from sitekit.utils.exceptions import ForbiddenError, UnauthorizedError

logger = structlog.get_logger()


@dataclass
class AuthContext:
    """Authentication context extracted from API Gateway event."""

    user_id: str
    email: str | None = None
    is_admin: bool = False

    def can_edit(self, owner_id: str) -> bool:
        """Check if the caller may edit a resource owned by ``owner_id``."""
        if self.is_admin:
            return True
        return bool(owner_id) and owner_id == self.user_id


def get_auth_context(event: dict[str, Any]) -> AuthContext:
    """Extract authentication context from API Gateway event.

    Args:
        event: API Gateway event dict.

    Returns:
        AuthContext with user information.

    Raises:
        UnauthorizedError: If no identity is present in the event.
    """
    request_context = event.get("requestContext", {}) or {}
    authorizer = request_context.get("authorizer", {}) or {}

    # Lambda authorizer payload v2 nests the context
    context = authorizer.get("lambda", authorizer)

    user_id = context.get("userId") or context.get("user_id") or context.get("sub")

    if not user_id:
        logger.warning("No user ID in auth context", authorizer_keys=list(authorizer))
        raise UnauthorizedError()

    is_admin = context.get("isAdmin", False) or context.get("is_admin", False)
    if isinstance(is_admin, str):
        is_admin = is_admin.lower() == "true"

    return AuthContext(
        user_id=user_id,
        email=context.get("email"),
        is_admin=is_admin,
    )


def require_site_owner(auth: AuthContext, site: Any) -> None:
    """Ensure the caller owns a site.

    Args:
        auth: Authentication context.
        site: Site entity (anything with ``user_id`` and ``site_id``).

    Raises:
        ForbiddenError: If the caller does not own the site.
    """
    if not auth.can_edit(site.user_id):
        logger.warning(
            "Site access denied",
            user_id=auth.user_id,
            site_id=site.site_id,
        )
        raise ForbiddenError(
            message=f"You don't have access to site '{site.site_id}'",
            resource_type="Site",
            action="edit",
        )
