"""
Quota endpoints and the daily reset timer.
"""

import logging
from typing import Callable, Optional

import azure.functions as func

from shared.auth import get_requester_id, UnauthorizedError
from shared.config import Settings, WorkflowOptions
from shared.errors import ServiceError
from shared.responses import error_response, preflight_response, success_response
from shared.supabase_client import create_supabase_client
from shared.user_directory import UserDirectory
from .service import QuotaService

logger = logging.getLogger(__name__)

# Every day at midnight UTC
RESET_SCHEDULE = "0 0 0 * * *"


def _default_service() -> QuotaService:
    client = create_supabase_client(Settings.from_env())
    return QuotaService(UserDirectory(client))


async def handle_get_quota(
    req: func.HttpRequest,
    load_options: Callable[[], WorkflowOptions] = WorkflowOptions.from_env,
    build: Callable[[], QuotaService] = _default_service
) -> func.HttpResponse:
    """
    GET /api/quota
    Remaining uses per tier for the caller.
    """
    if req.method == "OPTIONS":
        return preflight_response()

    try:
        options = load_options()
        user_id = get_requester_id(
            req, {"userId": req.params.get("userId")}, options.user_id_source
        )
        quota = await build().get_quota(user_id)
        return success_response({"quota": quota.to_dict()})

    except UnauthorizedError as e:
        return error_response(str(e), 401)
    except ServiceError as e:
        return error_response(str(e), e.status_code)
    except Exception as e:
        logger.error(f"Error getting quota: {str(e)}")
        return error_response("Failed to get quota", 500)


async def run_quota_reset(
    build: Callable[[], QuotaService] = _default_service,
    deadline_seconds: Optional[float] = None
) -> dict:
    """Run the daily reset; errors are logged and reported in the summary."""
    try:
        if deadline_seconds is None:
            deadline_seconds = Settings.from_env().quota_reset_deadline_seconds
        return await build().reset_quotas(deadline_seconds)
    except Exception as e:
        logger.error(f"Critical error in quota reset: {str(e)}")
        return {"success": False, "error": str(e)}


def register_quota_routes(app: func.FunctionApp):
    """Register quota routes and the reset timer with the function app."""

    @app.route(route="quota", methods=["GET", "OPTIONS"])
    async def get_quota(req: func.HttpRequest) -> func.HttpResponse:
        return await handle_get_quota(req)

    @app.timer_trigger(
        schedule=RESET_SCHEDULE,
        arg_name="timer",
        run_on_startup=False,
        use_monitor=True
    )
    async def reset_daily_quotas(timer: func.TimerRequest) -> None:
        if timer.past_due:
            logger.warning("Quota reset timer is past due")
        await run_quota_reset()
