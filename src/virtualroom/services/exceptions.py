"""Service error hierarchy for backend calls and client-side checks.

This module defines the exception hierarchy for service-level errors:
- ServiceError: Base for all service errors
- TransientError: Retryable errors (network, rate limits, timeouts)
- PermanentError: Non-retryable errors (authentication, validation, conflicts)
"""

from virtualroom.models.job import JobKind


class ServiceError(Exception):
    """Base exception for all service errors."""

    pass


class TransientError(ServiceError):
    """Transient error that may succeed on retry.

    Examples:
    - Network timeouts
    - Rate limit exceeded (429)
    - Service unavailable (5xx)
    """

    pass


class PermanentError(ServiceError):
    """Permanent error that will not succeed on retry.

    Examples:
    - Authentication failures (401, 403)
    - Invalid request parameters (400, 422)
    - Missing resources (404)
    - Conflicts (409)
    """

    pass


# Transport errors
class NetworkError(TransientError):
    """Request timeout or connection failure."""

    pass


class RateLimitError(TransientError):
    """Rate limit exceeded (429)."""

    pass


class ServiceUnavailableError(TransientError):
    """Backend returned a 5xx response."""

    pass


class AuthError(PermanentError):
    """Authentication failure (401, 403)."""

    pass


class RequestValidationError(PermanentError):
    """Backend rejected the request body (400, 422)."""

    pass


class NotFoundError(PermanentError):
    """Requested resource does not exist (404)."""

    pass


class ConflictError(PermanentError):
    """Request conflicts with current server state (409).

    Attributes:
        code: Machine-readable conflict code sent by the server, if any
    """

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class AlreadySavedError(ConflictError):
    """The result is already in the wardrobe.

    Callers that only want the result saved treat this as success.
    """

    pass


# Download-specific errors
class DownloadError(PermanentError):
    """Download refused (no permission) or impossible (bad URL, failed fetch)."""

    pass


# Client-side validation
class WorkflowValidationError(ValueError):
    """Raised when a workflow draft is submitted before it is complete.

    Never leaves the client: no request is made when this is raised.
    """

    def __init__(self, kind: JobKind, missing: list[str]):
        self.kind = kind
        self.missing = list(missing)
        super().__init__(f"Cannot submit {kind.value}: missing {', '.join(self.missing)}")
