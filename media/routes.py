"""
HTTP route handler for the media endpoint.
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
from .service import MediaService

logger = logging.getLogger(__name__)

OPERATIONS = ("auth", "delete")


def _default_service() -> MediaService:
    settings = Settings.from_env()
    return MediaService(create_supabase_client(settings), settings.storage_bucket)


async def handle_media(
    req: func.HttpRequest,
    load_options: Callable[[], WorkflowOptions] = WorkflowOptions.from_env,
    build: Callable[[], MediaService] = _default_service
) -> func.HttpResponse:
    """
    POST /api/media
    Issue an upload token or delete a stored file.

    Request body:
    {
        "operation": "auth" | "delete",
        "fileName": "cover.png",   // auth, optional
        "fileId": "path/in/bucket" // delete, required
    }
    """
    if req.method == "OPTIONS":
        return preflight_response()
    if req.method != "POST":
        return method_not_allowed_response("POST")

    try:
        options = load_options()
        body = parse_json_body(req)
        user_id = get_requester_id(req, body, options.user_id_source)
        operation = body.get("operation")

        if operation == "auth":
            params = await build().issue_upload_token(user_id, body.get("fileName"))
            return success_response({"operation": "auth", **params})

        if operation == "delete":
            file_id = await build().delete_file(user_id, body.get("fileId"))
            return success_response({
                "operation": "delete",
                "message": "File deleted successfully",
                "fileId": file_id,
            })

        return error_response(
            f"Unknown operation: {operation}. Valid operations are: {', '.join(OPERATIONS)}",
            400
        )

    except UnauthorizedError as e:
        return error_response(str(e), 401)
    except ServiceError as e:
        return error_response(str(e), e.status_code)
    except Exception as e:
        mapped = classify_upstream_error(e)
        logger.error(f"Error processing media request: {str(e)}")
        if mapped.status_code in (404, 429):
            return error_response(str(mapped), mapped.status_code)
        return error_response("Failed to process media request", 500)


def register_media_routes(app: func.FunctionApp):
    """Register the media route with the function app."""

    @app.route(route="media", methods=["POST", "OPTIONS"])
    async def media(req: func.HttpRequest) -> func.HttpResponse:
        return await handle_media(req)
