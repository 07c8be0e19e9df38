"""
Standard HTTP response helpers for consistent API responses.

Every response is JSON and carries permissive CORS headers so the
browser client can call the functions directly.
"""

import json
from typing import Any, Optional, Dict, List, Union
import azure.functions as func


def json_serialize(obj: Any) -> str:
    """
    Serialize object to JSON, handling datetime and UUID types.
    """
    import datetime
    import uuid

    def default_serializer(o):
        if isinstance(o, (datetime.datetime, datetime.date)):
            return o.isoformat()
        if isinstance(o, uuid.UUID):
            return str(o)
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")

    return json.dumps(obj, default=default_serializer)


def cors_headers() -> Dict[str, str]:
    """CORS headers attached to every response."""
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization, X-MS-CLIENT-PRINCIPAL-ID",
    }


def _json_response(
    body: Dict[str, Any],
    status_code: int,
    headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    response_headers = {
        "Content-Type": "application/json",
        **cors_headers(),
        **(headers or {})
    }

    return func.HttpResponse(
        json_serialize(body),
        status_code=status_code,
        mimetype="application/json",
        headers=response_headers
    )


def success_response(
    data: Union[Dict, List, Any],
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    """
    Create a successful JSON response.

    Dict payloads are merged into the ``{"success": true}`` envelope;
    anything else is placed under ``data``.

    Args:
        data: Response data to serialize
        status_code: HTTP status code (default: 200)
        headers: Optional additional headers

    Returns:
        Azure Functions HttpResponse
    """
    if isinstance(data, dict):
        body = {"success": True, **data}
    else:
        body = {"success": True, "data": data}

    return _json_response(body, status_code, headers)


def error_response(
    message: str,
    status_code: int = 400,
    errors: Optional[List[Dict]] = None,
    headers: Optional[Dict[str, str]] = None
) -> func.HttpResponse:
    """
    Create an error JSON response.

    Args:
        message: Error message
        status_code: HTTP status code (default: 400)
        errors: Optional list of detailed errors
        headers: Optional additional headers

    Returns:
        Azure Functions HttpResponse with error details
    """
    error_body = {
        "success": False,
        "error": message,
    }

    if errors:
        error_body["errors"] = errors

    return _json_response(error_body, status_code, headers)


def preflight_response() -> func.HttpResponse:
    """Answer a CORS preflight (OPTIONS) request."""
    return func.HttpResponse(
        "{}",
        status_code=200,
        mimetype="application/json",
        headers={**cors_headers(), "Access-Control-Max-Age": "86400"}
    )


def method_not_allowed_response(allowed: str = "POST") -> func.HttpResponse:
    return error_response(
        f"Method not allowed. Use {allowed}.",
        status_code=405,
        headers={"Allow": allowed}
    )


def parse_json_body(req: func.HttpRequest) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    An empty body is treated as ``{}``.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    from .errors import ValidationError

    if not req.get_body():
        return {}

    try:
        body = req.get_json()
    except ValueError:
        raise ValidationError("Invalid JSON in request body")

    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    return body
