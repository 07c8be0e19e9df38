"""
Generation job orchestration.

One run handles one inbound request:

1. Validate input (no side effects on failure)
2. Check quota and open the tracking record (order set by WorkflowOptions)
3. Generate content
4. Re-rank against the sources (selected tiers only, soft-fail)
5. Validate the generated markup
6. Persist the article (always inactive)
7. Mark the tracking record completed, then consume one use of the tier

Once the tracking record exists, every failure is written to it before the
error is raised to the caller, and an article already written for the job
is removed again. Nothing is retried.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from quota.service import QuotaService, TIER_FIELDS
from shared.config import WorkflowOptions
from shared.errors import (
    ContentValidationError,
    GenerationError,
    ServiceError,
    ValidationError,
    classify_upstream_error,
)
from shared.user_directory import UserDirectory, display_name

from .articles import ArticleStore
from .outcomes import HardFail, Ok, Outcome, SoftFail, unwrap
from .prompts import STYLE_PROFILES, StyleProfile, build_prompt_parts
from .tracking import TrackingStore
from .validator import is_valid_article_html, with_reference_passage

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "Anonymous"


class JobState(str, Enum):
    VALIDATING = "validating"
    QUOTA_CHECKING = "quota-checking"
    TRACKING_CREATED = "tracking-created"
    GENERATING = "generating"
    RERANKING = "reranking"
    VALIDATING_CONTENT = "validating-content"
    PERSISTING_RESULT = "persisting-result"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass(frozen=True)
class GenerationRequest:
    user_id: str
    prompt: str
    title: str
    category: str
    tier: str = "basic"
    style: str = "moderate"
    sources: Tuple[str, ...] = ()
    tracking_id: Optional[str] = None

    @property
    def profile(self) -> StyleProfile:
        return STYLE_PROFILES[self.style]

    @classmethod
    def from_payload(
        cls,
        body: Dict[str, Any],
        user_id: Optional[str],
        options: WorkflowOptions
    ) -> "GenerationRequest":
        """
        Build a request from the JSON body.

        Raises:
            ValidationError: On missing fields, unknown tier or style, or
                malformed sources
        """
        fields = {
            "userId": _clean(user_id),
            "prompt": _clean(body.get("prompt")),
            "title": _clean(body.get("title")),
            "category": _clean(body.get("category")),
        }
        if not options.create_tracking:
            fields["trackingId"] = _clean(body.get("trackingId"))

        missing = [name for name, value in fields.items() if not value]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        tier = _clean(body.get("requestType") or "basic").lower()
        if tier not in TIER_FIELDS:
            raise ValidationError("Invalid request type. Must be basic, pro, or ultra")

        style = _clean(body.get("style") or "moderate").lower()
        if style not in STYLE_PROFILES:
            raise ValidationError("Invalid style. Must be concise, moderate, or extended")

        sources = body.get("sources") or []
        if not isinstance(sources, list) or not all(
            isinstance(source, str) and source.strip() for source in sources
        ):
            raise ValidationError("sources must be a list of non-empty strings")

        return cls(
            user_id=fields["userId"],
            prompt=fields["prompt"],
            title=fields["title"],
            category=fields["category"],
            tier=tier,
            style=style,
            sources=tuple(source.strip() for source in sources),
            tracking_id=fields.get("trackingId"),
        )


@dataclass(frozen=True)
class GenerationResult:
    tracking_id: str
    article_id: str
    message: str = "Article generated successfully"

    def to_response(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "trackingId": self.tracking_id,
            "articleId": self.article_id,
        }


@dataclass
class JobRun:
    """Mutable state of a single run."""
    request: GenerationRequest
    state: JobState = JobState.VALIDATING
    tracking_id: Optional[str] = None
    article_id: Optional[str] = None
    completed: bool = False
    history: List[JobState] = field(default_factory=list)


class GenerationOrchestrator:
    """
    Runs generation jobs against injected collaborators.

    Args:
        quota: Quota store client
        tracking: Tracking record store
        articles: Result record store
        generator: Object with ``async generate(parts, tier, max_output_tokens)``
        directory: User directory, used for the author name
        reranker: Optional object with ``async rerank(query, documents)``
        options: Workflow variation points
    """

    def __init__(
        self,
        quota: QuotaService,
        tracking: TrackingStore,
        articles: ArticleStore,
        generator,
        directory: UserDirectory,
        reranker=None,
        options: Optional[WorkflowOptions] = None
    ):
        self.quota = quota
        self.tracking = tracking
        self.articles = articles
        self.generator = generator
        self.directory = directory
        self.reranker = reranker
        self.options = options or WorkflowOptions()

    def _enter(self, job: JobRun, state: JobState) -> None:
        job.state = state
        job.history.append(state)
        logger.info(f"[job {job.tracking_id or '-'}] {state.value}")

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """
        Run one job to completion.

        Returns:
            GenerationResult with the tracking handle and article id

        Raises:
            ServiceError: The failure class of whichever step failed; any
                unexpected exception is raised as a generic ServiceError
        """
        job = JobRun(request=request)
        self._enter(job, JobState.VALIDATING)

        try:
            if self.options.quota_check_before_tracking:
                await self._check_quota(job)
                await self._open_tracking(job)
            else:
                await self._open_tracking(job)
                await self._check_quota(job)

            content = unwrap(await self._generate(job))

            if self._should_rerank(request):
                content = unwrap(await self._rerank(job, content))

            content = unwrap(self._validate_content(job, content))
            await self._persist(job, content)
            await self._finalize(job)

        except ServiceError as e:
            await self._record_failure(job, str(e))
            raise
        except Exception as e:
            logger.exception(f"[job {job.tracking_id or '-'}] unexpected error in {job.state.value}")
            await self._record_failure(job, str(e))
            raise ServiceError("Failed to generate article") from e

        return GenerationResult(tracking_id=job.tracking_id, article_id=job.article_id)

    async def _check_quota(self, job: JobRun) -> None:
        self._enter(job, JobState.QUOTA_CHECKING)
        request = job.request
        try:
            await self.quota.ensure_available(request.user_id, request.tier)
        except ServiceError:
            raise
        except Exception as e:
            raise classify_upstream_error(e, f"Quota check failed: {e}")

    async def _open_tracking(self, job: JobRun) -> None:
        request = job.request
        if self.options.create_tracking:
            job.tracking_id = await self.tracking.create(request)
        else:
            await self.tracking.mark_in_progress(request.tracking_id)
            job.tracking_id = request.tracking_id
        self._enter(job, JobState.TRACKING_CREATED)

    async def _generate(self, job: JobRun) -> Outcome[str]:
        self._enter(job, JobState.GENERATING)
        request = job.request
        parts = build_prompt_parts(
            request.title, request.category, request.prompt,
            list(request.sources), request.profile
        )

        try:
            generated = await self.generator.generate(
                parts, request.tier, request.profile.max_output_tokens
            )
        except ServiceError as e:
            return HardFail(e)
        except Exception as e:
            logger.error(f"Generation backend error: {str(e)}")
            return HardFail(GenerationError(f"Failed to generate content: {e}"))

        text = getattr(generated, "text", generated)
        if not isinstance(text, str) or not text.strip():
            return HardFail(GenerationError("Generated content is empty"))

        return Ok(text)

    def _should_rerank(self, request: GenerationRequest) -> bool:
        return request.tier in self.options.rerank_tiers and bool(request.sources)

    async def _rerank(self, job: JobRun, content: str) -> Outcome[str]:
        self._enter(job, JobState.RERANKING)

        if self.reranker is None:
            logger.info("Re-rank backend not configured, keeping generated content")
            return SoftFail(content, "re-rank backend not configured")

        request = job.request
        try:
            passage = await self.reranker.rerank(request.prompt, list(request.sources))
        except Exception as e:
            logger.warning(f"Re-rank failed, keeping generated content: {str(e)}")
            return SoftFail(content, str(e))

        return Ok(with_reference_passage(content, passage))

    def _validate_content(self, job: JobRun, content: str) -> Outcome[str]:
        self._enter(job, JobState.VALIDATING_CONTENT)
        if not is_valid_article_html(content):
            return HardFail(ContentValidationError(
                "Content validation failed: must include <h2> or <p> tags"
            ))
        return Ok(content)

    async def _author_name(self, user_id: str) -> Outcome[str]:
        try:
            user = await self.directory.get_user(user_id)
        except Exception as e:
            logger.warning(f"Author lookup failed, using {DEFAULT_AUTHOR}: {str(e)}")
            return SoftFail(DEFAULT_AUTHOR, str(e))

        name = display_name(user)
        if not name:
            return SoftFail(DEFAULT_AUTHOR, "user has no display name")
        return Ok(name)

    async def _persist(self, job: JobRun, content: str) -> None:
        self._enter(job, JobState.PERSISTING_RESULT)
        request = job.request
        author_name = unwrap(await self._author_name(request.user_id))

        job.article_id = await self.articles.create(
            user_id=request.user_id,
            title=request.title,
            content=content,
            category=request.category,
            sources=list(request.sources),
            author_name=author_name,
        )

    async def _finalize(self, job: JobRun) -> None:
        self._enter(job, JobState.FINALIZING)
        request = job.request

        await self.tracking.mark_completed(job.tracking_id, job.article_id)
        job.completed = True

        try:
            await self.quota.decrement(request.user_id, request.tier)
        except Exception as e:
            logger.error(f"[job {job.tracking_id}] quota decrement failed: {str(e)}")

        self._enter(job, JobState.DONE)

    async def _record_failure(self, job: JobRun, message: str) -> None:
        """Best-effort cleanup: drop the job's article, mark the tracking record failed."""
        """Best-effort write of the failure to the tracking record."""
        if job.completed or job.state is JobState.FAILED:
            return

        self._enter(job, JobState.FAILED)

        if job.article_id is not None:
            try:
                await self.articles.delete(job.article_id)
                job.article_id = None
            except Exception as e:
                logger.error(f"Failed to remove article {job.article_id} of failed job: {str(e)}")

        if job.tracking_id is None:
            return

        try:
            await self.tracking.mark_failed(job.tracking_id, message)
        except Exception as e:
            logger.error(f"Failed to set tracking status to failed: {str(e)}")
