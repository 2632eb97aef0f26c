"""Utility functions and helpers."""

from sitekit.utils.auth import AuthContext, get_auth_context, require_site_owner
from sitekit.utils.exceptions import (
    CollisionError,
    ConflictError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    SiteKitError,
    StoreUnavailableError,
    UnauthorizedError,
    UnverifiedError,
    ValidationError,
)
from sitekit.utils.responses import created, error, not_found, success, validation_error

__all__ = [
    # Response helpers
    "success",
    "created",
    "error",
    "validation_error",
    "not_found",
    # Auth
    "get_auth_context",
    "require_site_owner",
    "AuthContext",
    # Exceptions
    "SiteKitError",
    "NotFoundError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "CollisionError",
    "UnverifiedError",
    "StoreUnavailableError",
    "ExternalServiceError",
]
