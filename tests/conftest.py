"""
Pytest configuration and fixtures for the function app tests
"""
import json
import time

import azure.functions as func
import jwt
import pytest

from generation.articles import ArticleStore
from generation.orchestrator import GenerationOrchestrator
from generation.tracking import TrackingStore
from quota.service import QuotaService
from shared.config import WorkflowOptions
from shared.user_directory import UserDirectory
from tests.fakes import FakeGenerator, FakeReranker, FakeSupabase, make_user

USER_ID = "3f0c2a9e-6d1b-4c1e-9a55-0b7d1f2e8c41"
JWT_SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


@pytest.fixture
def supabase():
    """In-memory Supabase client"""
    return FakeSupabase()


@pytest.fixture
def user(supabase):
    """A user with one use left on every tier"""
    return supabase.auth.admin.add(make_user(
        USER_ID,
        name="Ada Writer",
        app_metadata={"provider": "email", "basic_uses": 1, "pro_uses": 1, "ultra_uses": 1},
    ))


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def reranker():
    return FakeReranker()


@pytest.fixture
def make_orchestrator(supabase, generator, reranker):
    """Build an orchestrator over the fakes with the given options"""
    def build(options=None, **overrides):
        directory = UserDirectory(supabase)
        collaborators = {
            "quota": QuotaService(directory),
            "tracking": TrackingStore(supabase, "generation_jobs"),
            "articles": ArticleStore(supabase, "articles"),
            "generator": generator,
            "directory": directory,
            "reranker": reranker,
            "options": options or WorkflowOptions(),
        }
        collaborators.update(overrides)
        return GenerationOrchestrator(**collaborators)
    return build


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setenv("SUPABASE_JWT_SECRET", JWT_SECRET)
    return JWT_SECRET


def make_token(user_id=USER_ID, secret=JWT_SECRET, expires_in=3600, audience="authenticated"):
    return jwt.encode(
        {
            "sub": user_id,
            "email": "ada@example.com",
            "aud": audience,
            "role": "authenticated",
            "exp": int(time.time()) + expires_in,
        },
        secret,
        algorithm="HS256",
    )


def make_request(method="POST", url="/api/test", body=None, headers=None, params=None, route_params=None):
    """Build an azure.functions HttpRequest"""
    raw = b"" if body is None else json.dumps(body).encode("utf-8")
    return func.HttpRequest(
        method=method,
        url=f"http://localhost{url}",
        headers=headers or {},
        params=params or {},
        route_params=route_params or {},
        body=raw,
    )


def response_json(response):
    return json.loads(response.get_body())
