"""
BoardScan Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every error category the API exposes.
Why:   Services raise domain errors without knowing about HTTP; global handlers
       (registered in main.py) translate them into status codes and a uniform
       JSON error body.
How:   Each exception carries a user-safe message and an optional context dict.
       Context is logged server-side and only echoed back where it is safe.

Exception Hierarchy:
    BoardScanError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── FileStorageError         → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    └── UpstreamFailureError     → 503 Service Unavailable
        └── CircuitBreakerOpenError

No exception here is retried inside the core. Retrying is the job of the
transport layer (or the vision client's own tenacity policy).
"""

from typing import Any, Dict, Optional


class BoardScanError(Exception):
    """
    Base exception for all BoardScan application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(BoardScanError):
    """
    Raised when client input fails a business validation rule.

    Schema-shape errors are caught earlier by FastAPI (422). This one covers
    rules that need the service layer: bad upload type, empty search query,
    self-deactivation, and so on.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(BoardScanError):
    """No usable identity was supplied by the upstream auth layer."""

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(BoardScanError):
    """
    Raised when a role or ownership check fails.

    Examples: a non-admin creating a lot, a user reading someone else's
    scan record, a user promoting themselves to admin.
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(BoardScanError):
    """
    Raised when a referenced entity does not exist.

    SQLAlchemy returns None for missing rows; services convert that into
    this exception so routes never check for None themselves.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(BoardScanError):
    """
    Raised when a request collides with existing state.

    Duplicate unique keys (lot name, board type, email) and illegal lifecycle
    transitions (closing a closed lot, adding boards to a closed lot).
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(BoardScanError):
    """Raised when reading, writing or deleting an uploaded image fails."""

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamFailureError(BoardScanError):
    """
    Raised when the vision-classification collaborator errors or times out.

    HTTP 503: the upstream is temporarily unavailable and the client may
    retry later. A scan that fails here leaves no record behind.
    """

    def __init__(
        self,
        message: str = "Board classification service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(UpstreamFailureError):
    """
    Raised while the circuit breaker around the vision service is OPEN.

    CLOSED → (N consecutive failures) → OPEN → (recovery timeout) → HALF_OPEN
    → success → CLOSED, failure → OPEN.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(
            message=(
                "Board classification is temporarily unavailable due to repeated failures. "
                f"The service will automatically retry in approximately {recovery_time} seconds."
            ),
            retry_after=recovery_time,
            context=ctx,
        )
        self.recovery_time = recovery_time


class DatabaseError(BoardScanError):
    """
    Raised when a database operation fails unexpectedly.

    The client always gets a generic message; the original error type is
    kept in context and logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(BoardScanError):
    """Raised when a client exceeds the per-IP request rate limit."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
