"""
Wiring for the generation function group.

Every invocation builds its own collaborators from Settings.
"""

import logging
from typing import Any, Dict

from quota.service import QuotaService
from shared.config import Settings, WorkflowOptions
from shared.errors import NotFoundError
from shared.gemini_client import GeminiClient
from shared.rerank_client import RerankClient
from shared.supabase_client import create_supabase_client
from shared.user_directory import UserDirectory

from .articles import ArticleStore
from .orchestrator import GenerationOrchestrator
from .tracking import TrackingStore

logger = logging.getLogger(__name__)

PUBLIC_JOB_FIELDS = (
    "id", "title", "category", "request_type", "style", "status",
    "error", "article_id", "created_at", "updated_at",
)


def build_orchestrator(
    settings: Settings,
    options: WorkflowOptions,
    client=None,
    generator=None
) -> GenerationOrchestrator:
    """
    Construct an orchestrator and its collaborators for one invocation.

    Args:
        settings: Connection settings
        options: Workflow variation points
        client: Optional Supabase client to reuse
        generator: Optional generation backend to use instead of Gemini
    """
    client = client or create_supabase_client(settings)
    directory = UserDirectory(client)

    reranker = None
    if settings.rerank_api_url:
        reranker = RerankClient(
            settings.rerank_api_url,
            api_key=settings.rerank_api_key,
            timeout_seconds=settings.rerank_timeout_seconds,
        )

    return GenerationOrchestrator(
        quota=QuotaService(directory),
        tracking=TrackingStore(client, settings.tracking_table),
        articles=ArticleStore(client, settings.articles_table),
        generator=generator or GeminiClient(settings.gemini_api_key, settings.gemini_models),
        directory=directory,
        reranker=reranker,
        options=options,
    )


class GenerationJobService:
    """Read access to a caller's own generation jobs."""

    def __init__(self, tracking: TrackingStore):
        self.tracking = tracking

    async def get_job(self, user_id: str, tracking_id: str) -> Dict[str, Any]:
        """
        Get one tracking record owned by the caller.

        Raises:
            NotFoundError: If the record does not exist or belongs to
                another user
        """
        record = await self.tracking.get(tracking_id)
        if record.get("user_id") != user_id:
            raise NotFoundError("Tracking record not found")

        return {name: record.get(name) for name in PUBLIC_JOB_FIELDS}
