"""
Tests for the generation job workflow: state transitions, tracking
records, article persistence and quota consumption.
"""

from unittest.mock import AsyncMock

import pytest

from generation.orchestrator import GenerationRequest, JobState
from generation.tracking import MAX_ERROR_LENGTH, TrackingStatus
from shared.config import WorkflowOptions
from shared.errors import (
    ContentValidationError,
    GenerationError,
    NotFoundError,
    PersistenceError,
    QuotaExceededError,
    RateLimitError,
    ServiceError,
    UpstreamError,
    ValidationError,
)
from shared.user_directory import UserDirectory
from tests.conftest import USER_ID
from tests.fakes import FakeApiError


def make_job(**overrides):
    fields = {
        "user_id": USER_ID,
        "prompt": "Explain sourdough starters",
        "title": "Sourdough 101",
        "category": "Cooking",
        "tier": "basic",
        "style": "moderate",
        "sources": (),
    }
    fields.update(overrides)
    return GenerationRequest(**fields)


def tracking_rows(supabase):
    return supabase.table("generation_jobs").rows


def article_rows(supabase):
    return supabase.table("articles").rows


def remaining(supabase, field_name="basic_uses"):
    return supabase.auth.admin.users[USER_ID].app_metadata[field_name]


@pytest.mark.asyncio
async def test_successful_job_completes_tracking_and_consumes_quota(supabase, user, make_orchestrator):
    orchestrator = make_orchestrator()

    result = await orchestrator.run(make_job())

    [tracking] = tracking_rows(supabase)
    [article] = article_rows(supabase)
    assert result.tracking_id == tracking["id"]
    assert result.article_id == article["id"]
    assert tracking["status"] == TrackingStatus.COMPLETED.value
    assert tracking["error"] == ""
    assert tracking["article_id"] == article["id"]
    assert article["status"] == "inactive"
    assert article["author_name"] == "Ada Writer"
    assert article["content"] == "<h2>Intro</h2><p>Body text.</p>"
    assert remaining(supabase) == 0
    assert result.to_response() == {
        "message": "Article generated successfully",
        "trackingId": tracking["id"],
        "articleId": article["id"],
    }


@pytest.mark.asyncio
async def test_second_job_after_quota_runs_out_is_rejected(supabase, user, make_orchestrator):
    orchestrator = make_orchestrator()
    await orchestrator.run(make_job())

    with pytest.raises(QuotaExceededError) as excinfo:
        await orchestrator.run(make_job())

    assert excinfo.value.status_code == 403
    assert len(article_rows(supabase)) == 1
    assert len(tracking_rows(supabase)) == 1
    assert remaining(supabase) == 0


@pytest.mark.asyncio
async def test_generation_passes_style_budget_and_sources(user, generator, make_orchestrator):
    orchestrator = make_orchestrator()

    await orchestrator.run(make_job(style="extended", tier="pro", sources=("https://a.test",)))

    [call] = generator.calls
    assert call["tier"] == "pro"
    assert call["max_output_tokens"] == 8000
    assert call["parts"][1] == "USER INSTRUCTIONS:\nExplain sourdough starters"
    assert call["parts"][2] == "SOURCES TO REFERENCE:\nhttps://a.test"
    assert "5 main sections" in call["parts"][0]


@pytest.mark.asyncio
async def test_empty_generation_fails_job_without_consuming_quota(supabase, user, generator, make_orchestrator):
    generator.text = "   "
    orchestrator = make_orchestrator()

    with pytest.raises(GenerationError) as excinfo:
        await orchestrator.run(make_job())

    [tracking] = tracking_rows(supabase)
    assert excinfo.value.status_code == 500
    assert tracking["status"] == TrackingStatus.FAILED.value
    assert tracking["error"] == "Generated content is empty"
    assert tracking["article_id"] is None
    assert article_rows(supabase) == []
    assert remaining(supabase) == 1


@pytest.mark.asyncio
async def test_null_generation_is_the_same_failure(supabase, user, generator, make_orchestrator):
    generator.text = None

    with pytest.raises(GenerationError):
        await make_orchestrator().run(make_job())

    assert tracking_rows(supabase)[0]["status"] == TrackingStatus.FAILED.value


@pytest.mark.asyncio
async def test_backend_exception_is_recorded_on_tracking(supabase, user, generator, make_orchestrator):
    generator.error = ConnectionError("socket closed")

    with pytest.raises(GenerationError, match="socket closed"):
        await make_orchestrator().run(make_job())

    [tracking] = tracking_rows(supabase)
    assert tracking["status"] == TrackingStatus.FAILED.value
    assert "socket closed" in tracking["error"]
    assert remaining(supabase) == 1


@pytest.mark.asyncio
async def test_rate_limited_backend_surfaces_429(supabase, user, generator, make_orchestrator):
    generator.error = RateLimitError("Generation backend is rate limited, try again later")

    with pytest.raises(RateLimitError) as excinfo:
        await make_orchestrator().run(make_job())

    assert excinfo.value.status_code == 429
    assert tracking_rows(supabase)[0]["status"] == TrackingStatus.FAILED.value


@pytest.mark.asyncio
async def test_invalid_markup_fails_without_article(supabase, user, generator, make_orchestrator):
    generator.text = "Just some prose with no markup"

    with pytest.raises(ContentValidationError):
        await make_orchestrator().run(make_job())

    [tracking] = tracking_rows(supabase)
    assert tracking["status"] == TrackingStatus.FAILED.value
    assert "<h2> or <p>" in tracking["error"]
    assert article_rows(supabase) == []
    assert remaining(supabase) == 1


@pytest.mark.asyncio
async def test_ultra_job_survives_unreachable_reranker(supabase, user, reranker, make_orchestrator):
    reranker.error = UpstreamError("Re-rank request failed: connection refused")

    result = await make_orchestrator().run(make_job(tier="ultra", sources=("https://a.test",)))

    [article] = article_rows(supabase)
    assert result.article_id == article["id"]
    assert article["content"] == "<h2>Intro</h2><p>Body text.</p>"
    assert tracking_rows(supabase)[0]["status"] == TrackingStatus.COMPLETED.value
    assert remaining(supabase, "ultra_uses") == 0


@pytest.mark.asyncio
async def test_ultra_job_without_reranker_keeps_content(supabase, user, make_orchestrator):
    await make_orchestrator(reranker=None).run(make_job(tier="ultra", sources=("https://a.test",)))

    assert article_rows(supabase)[0]["content"] == "<h2>Intro</h2><p>Body text.</p>"


@pytest.mark.asyncio
async def test_ultra_job_appends_reranked_passage(supabase, user, reranker, make_orchestrator):
    await make_orchestrator().run(make_job(tier="ultra", sources=("https://a.test", "https://b.test")))

    assert reranker.calls == [("Explain sourdough starters", ["https://a.test", "https://b.test"])]
    content = article_rows(supabase)[0]["content"]
    assert content.startswith("<h2>Intro</h2><p>Body text.</p>")
    assert "Most relevant passage" in content


@pytest.mark.asyncio
async def test_lower_tiers_skip_rerank(user, reranker, make_orchestrator):
    await make_orchestrator().run(make_job(tier="pro", sources=("https://a.test",)))

    assert reranker.calls == []


@pytest.mark.asyncio
async def test_state_history_follows_the_pipeline(user, make_orchestrator):
    orchestrator = make_orchestrator()
    states = []
    original_enter = orchestrator._enter

    def record(job, state):
        states.append(state)
        original_enter(job, state)

    orchestrator._enter = record
    await orchestrator.run(make_job(tier="ultra", sources=("https://a.test",)))

    assert states == [
        JobState.VALIDATING,
        JobState.QUOTA_CHECKING,
        JobState.TRACKING_CREATED,
        JobState.GENERATING,
        JobState.RERANKING,
        JobState.VALIDATING_CONTENT,
        JobState.PERSISTING_RESULT,
        JobState.FINALIZING,
        JobState.DONE,
    ]


@pytest.mark.asyncio
async def test_quota_failure_after_tracking_is_recorded(supabase, user, make_orchestrator):
    user.app_metadata["basic_uses"] = 0
    options = WorkflowOptions(quota_check_before_tracking=False)

    with pytest.raises(QuotaExceededError):
        await make_orchestrator(options).run(make_job())

    [tracking] = tracking_rows(supabase)
    assert tracking["status"] == TrackingStatus.FAILED.value
    assert tracking["error"] == "Insufficient basic uses."


@pytest.mark.asyncio
async def test_quota_failure_before_tracking_leaves_no_record(supabase, user, make_orchestrator):
    user.app_metadata["basic_uses"] = 0

    with pytest.raises(QuotaExceededError):
        await make_orchestrator().run(make_job())

    assert tracking_rows(supabase) == []


@pytest.mark.asyncio
async def test_directory_outage_during_quota_check_is_classified(supabase, user, make_orchestrator):
    supabase.auth.admin.get_error = FakeApiError("Too many requests", 429)

    with pytest.raises(RateLimitError):
        await make_orchestrator().run(make_job())

    assert tracking_rows(supabase) == []


@pytest.mark.asyncio
async def test_external_tracking_record_is_reused(supabase, user, make_orchestrator):
    table = supabase.table("generation_jobs")
    table.rows.append({"id": "job-42", "user_id": USER_ID, "status": "pending", "error": ""})
    options = WorkflowOptions(create_tracking=False)

    result = await make_orchestrator(options).run(make_job(tracking_id="job-42"))

    assert result.tracking_id == "job-42"
    assert len(table.rows) == 1
    assert table.rows[0]["status"] == TrackingStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_unknown_external_tracking_record_is_not_found(supabase, user, generator, make_orchestrator):
    options = WorkflowOptions(create_tracking=False)

    with pytest.raises(NotFoundError):
        await make_orchestrator(options).run(make_job(tracking_id="missing"))

    assert generator.calls == []
    assert remaining(supabase) == 1


@pytest.mark.asyncio
async def test_article_insert_failure_marks_job_failed(supabase, user, make_orchestrator):
    supabase.table("articles").fail_on["insert"] = RuntimeError("insert rejected")

    with pytest.raises(PersistenceError):
        await make_orchestrator().run(make_job())

    [tracking] = tracking_rows(supabase)
    assert tracking["status"] == TrackingStatus.FAILED.value
    assert tracking["error"] == "Failed to create article document"
    assert article_rows(supabase) == []
    assert remaining(supabase) == 1


@pytest.mark.asyncio
async def test_completion_failure_removes_written_article(supabase, user, make_orchestrator):
    orchestrator = make_orchestrator()
    orchestrator.tracking.mark_completed = AsyncMock(side_effect=NotFoundError("tracking store down"))

    with pytest.raises(NotFoundError, match="tracking store down"):
        await orchestrator.run(make_job())

    [tracking] = tracking_rows(supabase)
    assert tracking["status"] == TrackingStatus.FAILED.value
    assert tracking["error"] == "tracking store down"
    assert article_rows(supabase) == []
    assert remaining(supabase) == 1


@pytest.mark.asyncio
async def test_failed_article_removal_is_swallowed(supabase, user, make_orchestrator):
    orchestrator = make_orchestrator()
    orchestrator.tracking.mark_completed = AsyncMock(side_effect=NotFoundError("tracking store down"))
    supabase.table("articles").fail_on["delete"] = RuntimeError("articles store down")

    with pytest.raises(NotFoundError, match="tracking store down"):
        await orchestrator.run(make_job())

    assert tracking_rows(supabase)[0]["status"] == TrackingStatus.FAILED.value
    assert supabase.table("articles").calls == ["insert", "delete"]


@pytest.mark.asyncio
async def test_failed_compensating_write_is_swallowed(supabase, user, generator, make_orchestrator):
    generator.text = ""
    table = supabase.table("generation_jobs")
    table.fail_on["update"] = RuntimeError("tracking store down")

    with pytest.raises(GenerationError, match="Generated content is empty"):
        await make_orchestrator().run(make_job())

    assert table.rows[0]["status"] == TrackingStatus.IN_PROGRESS.value


@pytest.mark.asyncio
async def test_unexpected_error_is_surfaced_as_generic_failure(supabase, user, make_orchestrator):
    orchestrator = make_orchestrator()
    orchestrator.articles.create = AsyncMock(side_effect=KeyError("content"))

    with pytest.raises(ServiceError) as excinfo:
        await orchestrator.run(make_job())

    assert type(excinfo.value) is ServiceError
    assert str(excinfo.value) == "Failed to generate article"
    [tracking] = tracking_rows(supabase)
    assert tracking["status"] == TrackingStatus.FAILED.value
    assert "content" in tracking["error"]


@pytest.mark.asyncio
async def test_author_lookup_failure_falls_back_to_anonymous(supabase, user, make_orchestrator):
    directory = UserDirectory(supabase)

    async def no_user(user_id):
        raise FakeApiError("User not found", 404)

    directory.get_user = no_user

    await make_orchestrator(directory=directory).run(make_job())

    assert article_rows(supabase)[0]["author_name"] == "Anonymous"


@pytest.mark.asyncio
async def test_decrement_failure_does_not_fail_completed_job(supabase, user, make_orchestrator):
    supabase.auth.admin.fail_update_for[USER_ID] = FakeApiError("write failed", 500)

    result = await make_orchestrator().run(make_job())

    [tracking] = tracking_rows(supabase)
    assert tracking["status"] == TrackingStatus.COMPLETED.value
    assert tracking["article_id"] == result.article_id


@pytest.mark.asyncio
async def test_long_error_messages_are_truncated(supabase, user, generator, make_orchestrator):
    generator.error = GenerationError("x" * 2000)

    with pytest.raises(GenerationError):
        await make_orchestrator().run(make_job())

    assert len(tracking_rows(supabase)[0]["error"]) == MAX_ERROR_LENGTH


class TestRequestValidation:

    def test_builds_request_with_defaults(self):
        request = GenerationRequest.from_payload(
            {"prompt": " p ", "title": "t", "category": "c"}, USER_ID, WorkflowOptions()
        )

        assert request.prompt == "p"
        assert request.tier == "basic"
        assert request.style == "moderate"
        assert request.sources == ()
        assert request.profile.max_output_tokens == 6000

    def test_lists_missing_fields(self):
        with pytest.raises(ValidationError, match="userId, title, category"):
            GenerationRequest.from_payload({"prompt": "p"}, None, WorkflowOptions())

    def test_external_mode_requires_tracking_id(self):
        options = WorkflowOptions(create_tracking=False)
        with pytest.raises(ValidationError, match="trackingId"):
            GenerationRequest.from_payload(
                {"prompt": "p", "title": "t", "category": "c"}, USER_ID, options
            )

    def test_rejects_unknown_style(self):
        with pytest.raises(ValidationError, match="Invalid style"):
            GenerationRequest.from_payload(
                {"prompt": "p", "title": "t", "category": "c", "style": "epic"},
                USER_ID, WorkflowOptions()
            )

    def test_rejects_unknown_tier(self):
        with pytest.raises(ValidationError, match="Invalid request type"):
            GenerationRequest.from_payload(
                {"prompt": "p", "title": "t", "category": "c", "requestType": "gold"},
                USER_ID, WorkflowOptions()
            )

    def test_rejects_malformed_sources(self):
        with pytest.raises(ValidationError, match="sources"):
            GenerationRequest.from_payload(
                {"prompt": "p", "title": "t", "category": "c", "sources": "https://a.test"},
                USER_ID, WorkflowOptions()
            )
