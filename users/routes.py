"""
HTTP route handlers for user lookup endpoints.
"""

import logging
from typing import Callable

import azure.functions as func

from shared.auth import get_requester_id, UnauthorizedError
from shared.config import Settings, WorkflowOptions
from shared.errors import ServiceError, classify_upstream_error
from shared.responses import (
    error_response, method_not_allowed_response, parse_json_body,
    preflight_response, success_response
)
from shared.supabase_client import create_supabase_client
from shared.user_directory import UserDirectory
from .service import UserService

logger = logging.getLogger(__name__)

UPSTREAM_MESSAGES = {
    400: "Invalid user ID format or parameter",
    401: "Unauthorized access",
    404: "User not found",
    429: "Rate limit exceeded. Please try again later.",
}


def _default_service() -> UserService:
    settings = Settings.from_env()
    client = create_supabase_client(settings)
    return UserService(UserDirectory(client), client, settings.profiles_table)


def _upstream_error_response(e: Exception, fallback: str) -> func.HttpResponse:
    mapped = classify_upstream_error(e)
    message = UPSTREAM_MESSAGES.get(mapped.status_code)
    if message is None:
        logger.error(f"{fallback}: {str(e)}")
        return error_response(fallback, 500)
    return error_response(message, mapped.status_code)


async def handle_fetch_user(
    req: func.HttpRequest,
    load_options: Callable[[], WorkflowOptions] = WorkflowOptions.from_env,
    build: Callable[[], UserService] = _default_service
) -> func.HttpResponse:
    """
    POST /api/users/fetch
    Get one user by id.

    Request body:
    {
        "userId": "uuid",
        "includePreferences": true,   // optional
        "includeMetadata": false      // optional
    }
    """
    if req.method == "OPTIONS":
        return preflight_response()
    if req.method != "POST":
        return method_not_allowed_response("POST")

    try:
        options = load_options()
        body = parse_json_body(req)
        get_requester_id(req, body, options.user_id_source)

        user = await build().fetch_user(
            body.get("userId"),
            include_preferences=bool(body.get("includePreferences", True)),
            include_metadata=bool(body.get("includeMetadata", False)),
        )
        return success_response({"user": user})

    except UnauthorizedError as e:
        return error_response(str(e), 401)
    except ServiceError as e:
        return error_response(str(e), e.status_code)
    except Exception as e:
        return _upstream_error_response(e, "Failed to fetch user")


async def handle_search_users(
    req: func.HttpRequest,
    load_options: Callable[[], WorkflowOptions] = WorkflowOptions.from_env,
    build: Callable[[], UserService] = _default_service
) -> func.HttpResponse:
    """
    POST /api/users/search
    Search users by display name.

    Request body:
    {
        "name": "ali",
        "limit": 25,                // optional, 1-100
        "offset": 0,                // optional
        "searchType": "contains"    // contains | startsWith | exact | search
    }
    """
    if req.method == "OPTIONS":
        return preflight_response()
    if req.method != "POST":
        return method_not_allowed_response("POST")

    try:
        options = load_options()
        body = parse_json_body(req)
        get_requester_id(req, body, options.user_id_source)

        result = await build().search_users(
            body.get("name"),
            limit=body.get("limit", 25),
            offset=body.get("offset", 0),
            search_type=body.get("searchType", "contains"),
        )
        return success_response(result)

    except UnauthorizedError as e:
        return error_response(str(e), 401)
    except ServiceError as e:
        return error_response(str(e), e.status_code)
    except Exception as e:
        return _upstream_error_response(e, "Failed to fetch users")


def register_user_routes(app: func.FunctionApp):
    """Register all user-related routes with the function app."""

    @app.route(route="users/fetch", methods=["POST", "OPTIONS"])
    async def fetch_user(req: func.HttpRequest) -> func.HttpResponse:
        return await handle_fetch_user(req)

    @app.route(route="users/search", methods=["POST", "OPTIONS"])
    async def search_users(req: func.HttpRequest) -> func.HttpResponse:
        return await handle_search_users(req)
