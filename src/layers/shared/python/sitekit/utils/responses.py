"""API response helper functions."""

import json
import os
from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel

from sitekit.utils.exceptions import SiteKitError

# Get allowed CORS origin from environment
_ALLOWED_ORIGIN = os.environ.get("CORS_ALLOWED_ORIGIN", "http://localhost:3000")
_STAGE = os.environ.get("STAGE", "dev")


def _get_cors_origin(request_origin: str | None = None) -> str:
    """Get the appropriate CORS origin for the response.

    In dev, also allows localhost for local development.
    """
    if _STAGE == "dev" and request_origin:
        if request_origin.startswith("http://localhost:"):
            return request_origin

    return _ALLOWED_ORIGIN


def get_cors_headers(request_origin: str | None = None) -> dict:
    """Get CORS headers with the appropriate origin."""
    return {
        "Access-Control-Allow-Origin": _get_cors_origin(request_origin),
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Amz-Date,X-Api-Key,X-Amz-Security-Token",
        "Access-Control-Allow-Methods": "GET,POST,PUT,PATCH,DELETE,OPTIONS",
        "Access-Control-Allow-Credentials": "true",
        "Content-Type": "application/json",
    }


CORS_HEADERS = get_cors_headers()


def _json_serializer(obj: Any) -> Any:
    """JSON serializer for objects not serializable by default."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, PydanticBaseModel):
        return obj.model_dump(mode="json")
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _serialize(data: Any) -> str:
    """Serialize data to JSON string."""
    return json.dumps(data, default=_json_serializer)


def success(data: Any, status_code: int = 200) -> dict:
    """Create a successful API response.

    Args:
        data: Response data (dict, list, or Pydantic model).
        status_code: HTTP status code (default 200).

    Returns:
        API Gateway response dict.
    """
    if isinstance(data, PydanticBaseModel):
        body = data.model_dump(mode="json")
    else:
        body = data

    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(body),
    }


def created(data: Any) -> dict:
    """Create a 201 Created response."""
    return success(data, status_code=201)


def no_content() -> dict:
    """Create a 204 No Content response."""
    return {
        "statusCode": 204,
        "headers": CORS_HEADERS,
        "body": "",
    }


def html(body: str, status_code: int = 200, max_age: int | None = None) -> dict:
    """Create an HTML response for rendered site pages.

    Args:
        body: The HTML document.
        status_code: HTTP status code.
        max_age: Optional shared-cache lifetime in seconds.

    Returns:
        API Gateway response dict.
    """
    headers = {
        "Content-Type": "text/html; charset=utf-8",
    }
    if max_age is not None:
        headers["Cache-Control"] = f"public, max-age=0, s-maxage={max_age}"
    else:
        headers["Cache-Control"] = "no-store"

    return {
        "statusCode": status_code,
        "headers": headers,
        "body": body,
    }


def error(
    message: str,
    status_code: int = 500,
    error_code: str | None = None,
    details: dict | None = None,
) -> dict:
    """Create an error API response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        error_code: Machine-readable error code.
        details: Additional error details.

    Returns:
        API Gateway response dict.
    """
    body: dict[str, Any] = {
        "error": True,
        "message": message,
    }

    if error_code:
        body["error_code"] = error_code
    if details:
        body["details"] = details

    return {
        "statusCode": status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(body),
    }


def from_exception(exc: SiteKitError) -> dict:
    """Create an error response from a sitekit exception."""
    return {
        "statusCode": exc.status_code,
        "headers": CORS_HEADERS,
        "body": _serialize(exc.to_dict()),
    }


def validation_error(errors: list[dict]) -> dict:
    """Create a validation error response.

    Args:
        errors: List of validation errors with field and message.

    Returns:
        API Gateway response dict.
    """
    return error(
        message="Validation failed",
        status_code=400,
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


def not_found(resource_type: str, resource_id: str) -> dict:
    """Create a 404 Not Found response.

    Args:
        resource_type: Type of resource (e.g., "Site").
        resource_id: ID of the resource.

    Returns:
        API Gateway response dict.
    """
    return error(
        message=f"{resource_type} with ID '{resource_id}' not found",
        status_code=404,
        error_code="NOT_FOUND",
        details={"resource_type": resource_type, "resource_id": resource_id},
    )


def forbidden(message: str = "You don't have permission to perform this action") -> dict:
    """Create a 403 Forbidden response."""
    return error(
        message=message,
        status_code=403,
        error_code="FORBIDDEN",
    )


def conflict(message: str = "Resource conflict") -> dict:
    """Create a 409 Conflict response."""
    return error(
        message=message,
        status_code=409,
        error_code="CONFLICT",
    )


def service_unavailable(message: str = "Service temporarily unavailable, please retry") -> dict:
    """Create a 503 Service Unavailable response."""
    response = error(
        message=message,
        status_code=503,
        error_code="STORE_UNAVAILABLE",
    )
    response["headers"] = {**CORS_HEADERS, "Retry-After": "1"}
    return response
