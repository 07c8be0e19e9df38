"""
Environment-driven configuration for the function app.

Values are read from app settings on every invocation; nothing is cached.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

TIERS = ("basic", "pro", "ultra")

DEFAULT_MODELS = {
    "basic": "gemini-2.5-flash-lite",
    "pro": "gemini-2.5-flash",
    "ultra": "gemini-3-flash-preview",
}


def _require(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ValueError(f"{name} environment variable not set")
    return value


def _optional(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    return value if value else default


def get_supabase_url() -> str:
    """Get the Supabase URL from environment variables."""
    return _require("SUPABASE_URL").rstrip("/")


def get_supabase_service_key() -> str:
    """Get the Supabase service key from environment variables."""
    return _require("SUPABASE_SERVICE_KEY")


def get_storage_bucket() -> str:
    """Get the Supabase storage bucket name from environment variables."""
    return os.environ.get("SUPABASE_STORAGE_BUCKET", "article-media")


@dataclass(frozen=True)
class Settings:
    """Connection settings for every collaborator."""

    supabase_url: str
    supabase_service_key: str
    storage_bucket: str = "article-media"
    tracking_table: str = "generation_jobs"
    articles_table: str = "articles"
    profiles_table: str = "profiles"
    gemini_api_key: Optional[str] = None
    gemini_models: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MODELS))
    rerank_api_url: Optional[str] = None
    rerank_api_key: Optional[str] = None
    rerank_timeout_seconds: float = 20.0
    quota_reset_deadline_seconds: float = 14 * 60 + 30

    @classmethod
    def from_env(cls) -> "Settings":
        models = {
            tier: _optional(f"GEMINI_MODEL_{tier.upper()}", DEFAULT_MODELS[tier])
            for tier in TIERS
        }
        return cls(
            supabase_url=get_supabase_url(),
            supabase_service_key=get_supabase_service_key(),
            storage_bucket=get_storage_bucket(),
            tracking_table=_optional("TRACKING_TABLE", "generation_jobs"),
            articles_table=_optional("ARTICLES_TABLE", "articles"),
            profiles_table=_optional("PROFILES_TABLE", "profiles"),
            gemini_api_key=_optional("GEMINI_API_KEY"),
            gemini_models=models,
            rerank_api_url=_optional("RERANK_API_URL"),
            rerank_api_key=_optional("RERANK_API_KEY"),
            rerank_timeout_seconds=float(_optional("RERANK_TIMEOUT_SECONDS", "20")),
            quota_reset_deadline_seconds=float(
                _optional("QUOTA_RESET_DEADLINE_SECONDS", str(14 * 60 + 30))
            ),
        )


@dataclass(frozen=True)
class WorkflowOptions:
    """
    Variation points of the generation workflow.

    Attributes:
        create_tracking: Create the tracking record here; when False the
            caller must supply an existing ``trackingId``.
        quota_check_before_tracking: Check quota before the tracking record
            exists (quota rejections leave no audit trail) or after it
            (quota rejections are recorded as failed jobs).
        rerank_tiers: Tiers that run the optional re-rank step.
        user_id_source: Where the requester id comes from: ``token``,
            ``header`` or ``body``.
    """

    create_tracking: bool = True
    quota_check_before_tracking: bool = True
    rerank_tiers: FrozenSet[str] = frozenset({"ultra"})
    user_id_source: str = "token"

    @classmethod
    def from_env(cls) -> "WorkflowOptions":
        tracking_mode = _optional("GENERATION_TRACKING_MODE", "create").lower()
        quota_check = _optional("GENERATION_QUOTA_CHECK", "before_tracking").lower()
        user_id_source = _optional("GENERATION_USER_ID_SOURCE", "token").lower()
        rerank_tiers = _optional("GENERATION_RERANK_TIERS", "ultra")

        if tracking_mode not in ("create", "external"):
            raise ValueError(f"Invalid GENERATION_TRACKING_MODE: {tracking_mode}")
        if quota_check not in ("before_tracking", "after_tracking"):
            raise ValueError(f"Invalid GENERATION_QUOTA_CHECK: {quota_check}")
        if user_id_source not in ("token", "header", "body"):
            raise ValueError(f"Invalid GENERATION_USER_ID_SOURCE: {user_id_source}")

        return cls(
            create_tracking=tracking_mode == "create",
            quota_check_before_tracking=quota_check == "before_tracking",
            rerank_tiers=frozenset(
                tier.strip().lower() for tier in rerank_tiers.split(",") if tier.strip()
            ),
            user_id_source=user_id_source,
        )
