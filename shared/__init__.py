# Shared utilities for Article Studio Functions
from .auth import get_user_from_token, get_requester_id, UnauthorizedError
from .config import Settings, WorkflowOptions
from .errors import (
    ServiceError, ValidationError, ForbiddenError, QuotaExceededError, NotFoundError,
    MethodNotAllowedError, RateLimitError, UpstreamError, GenerationError,
    ContentValidationError, PersistenceError, classify_upstream_error
)
from .responses import success_response, error_response, preflight_response, parse_json_body
from .supabase_client import create_supabase_client

__all__ = [
    "get_user_from_token",
    "get_requester_id",
    "UnauthorizedError",
    "Settings",
    "WorkflowOptions",
    "ServiceError",
    "ValidationError",
    "ForbiddenError",
    "QuotaExceededError",
    "NotFoundError",
    "MethodNotAllowedError",
    "RateLimitError",
    "UpstreamError",
    "GenerationError",
    "ContentValidationError",
    "PersistenceError",
    "classify_upstream_error",
    "success_response",
    "error_response",
    "preflight_response",
    "parse_json_body",
    "create_supabase_client",
]
