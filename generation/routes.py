"""
HTTP route handlers for article generation endpoints.
"""

import logging
from typing import Callable

import azure.functions as func

from shared.auth import get_requester_id, UnauthorizedError
from shared.config import Settings, WorkflowOptions
from shared.errors import QuotaExceededError, ServiceError
from shared.responses import (
    error_response, method_not_allowed_response, parse_json_body,
    preflight_response, success_response
)
from shared.supabase_client import create_supabase_client
from .orchestrator import GenerationOrchestrator, GenerationRequest
from .service import GenerationJobService, build_orchestrator
from .tracking import TrackingStore

logger = logging.getLogger(__name__)

OrchestratorFactory = Callable[[WorkflowOptions], GenerationOrchestrator]
JobServiceFactory = Callable[[], GenerationJobService]


def _default_orchestrator(options: WorkflowOptions) -> GenerationOrchestrator:
    return build_orchestrator(Settings.from_env(), options)


def _default_job_service() -> GenerationJobService:
    settings = Settings.from_env()
    client = create_supabase_client(settings)
    return GenerationJobService(TrackingStore(client, settings.tracking_table))


async def handle_generate(
    req: func.HttpRequest,
    load_options: Callable[[], WorkflowOptions] = WorkflowOptions.from_env,
    build: OrchestratorFactory = _default_orchestrator
) -> func.HttpResponse:
    """
    POST /api/articles/generate
    Run one article generation job.

    Request body:
    {
        "prompt": "...", "title": "...", "category": "...",
        "sources": ["https://..."],          // optional
        "requestType": "basic|pro|ultra",     // default basic
        "style": "concise|moderate|extended", // default moderate
        "trackingId": "...",                  // external tracking mode only
        "userId": "..."                       // body user id source only
    }
    """
    if req.method == "OPTIONS":
        return preflight_response()
    if req.method != "POST":
        return method_not_allowed_response("POST")

    try:
        options = load_options()
        body = parse_json_body(req)

        if options.user_id_source == "body":
            user_id = body.get("userId")
        else:
            user_id = get_requester_id(req, body, options.user_id_source)

        request = GenerationRequest.from_payload(body, user_id, options)
        logger.info(
            f"Generation requested: user={request.user_id}, tier={request.tier}, "
            f"style={request.style}, sources={len(request.sources)}"
        )

        result = await build(options).run(request)
        return success_response(result.to_response())

    except UnauthorizedError as e:
        return error_response(str(e), 401)
    except QuotaExceededError as e:
        return error_response(str(e), 403)
    except ServiceError as e:
        return error_response(str(e), e.status_code)
    except Exception as e:
        logger.error(f"Error generating article: {str(e)}")
        return error_response("Failed to generate article", 500)


async def handle_get_job(
    req: func.HttpRequest,
    load_options: Callable[[], WorkflowOptions] = WorkflowOptions.from_env,
    build: JobServiceFactory = _default_job_service
) -> func.HttpResponse:
    """
    GET /api/articles/jobs/{tracking_id}
    Get the status of one of the caller's generation jobs.
    """
    if req.method == "OPTIONS":
        return preflight_response()

    try:
        options = load_options()
        tracking_id = req.route_params.get("tracking_id")
        if not tracking_id:
            return error_response("Tracking ID is required", 400)

        user_id = get_requester_id(
            req, {"userId": req.params.get("userId")}, options.user_id_source
        )
        job = await build().get_job(user_id, tracking_id)
        return success_response({"job": job})

    except UnauthorizedError as e:
        return error_response(str(e), 401)
    except ServiceError as e:
        return error_response(str(e), e.status_code)
    except Exception as e:
        logger.error(f"Error getting generation job: {str(e)}")
        return error_response("Failed to get generation job", 500)


def register_generation_routes(app: func.FunctionApp):
    """Register all generation-related routes with the function app."""

    @app.route(route="articles/generate", methods=["POST", "OPTIONS"])
    async def generate_article(req: func.HttpRequest) -> func.HttpResponse:
        return await handle_generate(req)

    @app.route(route="articles/jobs/{tracking_id}", methods=["GET", "OPTIONS"])
    async def get_generation_job(req: func.HttpRequest) -> func.HttpResponse:
        return await handle_get_job(req)
