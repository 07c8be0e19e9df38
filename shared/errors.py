"""
Error classes shared by every function group.

Each error carries the HTTP status code the route layer answers with.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors surfaced to the caller."""
    status_code = 500


class ValidationError(ServiceError):
    """Raised when the request is malformed or incomplete."""
    status_code = 400


class ForbiddenError(ServiceError):
    """Raised when the caller may not perform the operation."""
    status_code = 403


class QuotaExceededError(ForbiddenError):
    """Raised when the caller has no remaining uses for a tier."""
    pass


class NotFoundError(ServiceError):
    """Raised when a resource is not found."""
    status_code = 404


class MethodNotAllowedError(ServiceError):
    status_code = 405


class RateLimitError(ServiceError):
    """Raised when an upstream service throttles us."""
    status_code = 429


class UpstreamError(ServiceError):
    """Raised when a backend call fails or returns something unusable."""
    pass


class GenerationError(UpstreamError):
    pass


class ContentValidationError(UpstreamError):
    pass


class PersistenceError(UpstreamError):
    pass


_STATUS_TO_ERROR = {
    400: ValidationError,
    403: ForbiddenError,
    404: NotFoundError,
    429: RateLimitError,
}


def status_of(exc: Exception) -> Optional[int]:
    """
    Best-effort HTTP status of an SDK exception.

    Supabase auth errors expose ``status``; Gemini API errors expose ``code``.
    """
    for attr in ("status", "status_code", "code"):
        value = getattr(exc, attr, None)
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None


def is_not_found(exc: Exception) -> bool:
    """True when an upstream error means the record does not exist."""
    return status_of(exc) == 404 or "not found" in str(exc).lower()


def classify_upstream_error(exc: Exception, message: Optional[str] = None) -> ServiceError:
    """
    Convert an SDK exception into the matching ServiceError.

    Args:
        exc: The exception raised by the SDK
        message: Optional message to use instead of the SDK's

    Returns:
        A ServiceError subclass instance (UpstreamError when unmapped)
    """
    if isinstance(exc, ServiceError):
        return exc

    status = status_of(exc)
    if status == 401:
        from .auth import UnauthorizedError
        return UnauthorizedError(message or "Unauthorized access")

    error_cls = _STATUS_TO_ERROR.get(status, UpstreamError)
    return error_cls(message or str(exc))
