"""Custom exception classes for sitekit."""


class SiteKitError(Exception):
    """Base exception for all sitekit errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize SiteKitError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for API responses.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API response."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(SiteKitError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "Site", "Domain").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ValidationError(SiteKitError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": error.get("msg", "Invalid value"),
                        "type": error.get("type", "unknown"),
                    }
                )
        return cls(message="Validation failed", errors=errors)


class UnauthorizedError(SiteKitError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication required"):
        """Initialize UnauthorizedError."""
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=401,
        )


class ForbiddenError(SiteKitError):
    """Raised when user lacks permission for an action."""

    def __init__(
        self,
        message: str = "You don't have permission to perform this action",
        resource_type: str | None = None,
        action: str | None = None,
    ):
        """Initialize ForbiddenError."""
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if action:
            details["action"] = action

        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
            details=details if details else None,
        )


class ConflictError(SiteKitError):
    """Raised on optimistic lock failures and cancelled transactions.

    Binding mutations surface this to the caller instead of retrying, since
    a retry could race a legitimate concurrent claim.
    """

    def __init__(
        self,
        message: str = "Resource was modified concurrently, please try again",
        conflict_type: str | None = None,
        reasons: list[str] | None = None,
    ):
        """Initialize ConflictError.

        Args:
            message: Error message.
            conflict_type: Optional machine-readable conflict kind.
            reasons: Per-operation cancellation codes of a failed transaction.
        """
        self.reasons = reasons or []
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details={"conflict_type": conflict_type} if conflict_type else None,
        )


class CollisionError(SiteKitError):
    """Raised when a domain is already bound to a different site."""

    def __init__(
        self,
        domain: str,
        domain_id: str,
        linked_site_id: str,
        linked_site_name: str = "",
        is_owner: bool = False,
    ):
        """Initialize CollisionError.

        Args:
            domain: The normalized domain that collided.
            domain_id: ID of the existing Domain record.
            linked_site_id: Site currently owning the domain.
            linked_site_name: Display name of the owning site.
            is_owner: Whether the caller also owns the linked site.
        """
        self.domain = domain
        self.domain_id = domain_id
        self.linked_site_id = linked_site_id
        self.linked_site_name = linked_site_name
        self.is_owner = is_owner
        super().__init__(
            message="Domain already registered",
            error_code="DOMAIN_COLLISION",
            status_code=409,
            details={
                "domain": domain,
                "domain_id": domain_id,
                "linked_site_id": linked_site_id,
                "linked_site_name": linked_site_name,
                "is_owner": is_owner,
            },
        )


class UnverifiedError(SiteKitError):
    """Raised when DNS verification of a domain does not succeed.

    Always retryable; callers may re-verify as many times as they like.
    """

    retryable = True

    def __init__(self, domain: str, reason: str):
        """Initialize UnverifiedError.

        Args:
            domain: The domain being verified.
            reason: Human-readable reason verification failed.
        """
        self.domain = domain
        self.reason = reason
        super().__init__(
            message=f"Domain {domain} is not verified yet: {reason}",
            error_code="DOMAIN_UNVERIFIED",
            status_code=422,
            details={"domain": domain, "reason": reason, "retryable": True},
        )


class StoreUnavailableError(SiteKitError):
    """Raised when the content store is throttled or unreachable."""

    def __init__(
        self,
        message: str = "Content store is temporarily unavailable",
        original_error: str | None = None,
    ):
        """Initialize StoreUnavailableError."""
        super().__init__(
            message=message,
            error_code="STORE_UNAVAILABLE",
            status_code=503,
            details={"original_error": original_error} if original_error else None,
        )


class ExternalServiceError(SiteKitError):
    """Raised when an external service call fails."""

    def __init__(
        self,
        service: str,
        message: str | None = None,
        original_error: str | None = None,
    ):
        """Initialize ExternalServiceError."""
        super().__init__(
            message=message or f"External service '{service}' returned an error",
            error_code="EXTERNAL_SERVICE_ERROR",
            status_code=502,
            details={
                "service": service,
                "original_error": original_error,
            },
        )
