"""
Tracking records: one status row per generation job.
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from shared.errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500


class TrackingStatus(str, Enum):
    IN_PROGRESS = "inprogress"
    COMPLETED = "completed"
    FAILED = "failed"


def safe_error_message(message: Any) -> str:
    """Coerce an error to a string no longer than MAX_ERROR_LENGTH."""
    if message is None:
        return ""
    if not isinstance(message, str):
        try:
            message = json.dumps(message)
        except (TypeError, ValueError):
            message = str(message)
    if len(message) > MAX_ERROR_LENGTH:
        logger.info(f"Truncating error message from {len(message)} to {MAX_ERROR_LENGTH} chars")
        message = message[:MAX_ERROR_LENGTH]
    return message


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TrackingStore:
    """Service class for tracking record reads and status updates."""

    def __init__(self, client, table: str = "generation_jobs"):
        self.client = client
        self.table_name = table

    def table(self):
        return self.client.table(self.table_name)

    async def create(self, request) -> str:
        """
        Create an in-progress tracking record for a job.

        Args:
            request: The validated GenerationRequest

        Returns:
            The new record's id
        """
        record = {
            "user_id": request.user_id,
            "title": request.title,
            "prompt": request.prompt,
            "category": request.category,
            "request_type": request.tier,
            "style": request.style,
            "sources": list(request.sources),
            "status": TrackingStatus.IN_PROGRESS.value,
            "error": "",
            "article_id": None,
            "created_at": _now(),
        }

        result = self.table().insert(record).execute()
        if not result.data:
            raise PersistenceError("Failed to create tracking record")

        tracking_id = result.data[0]["id"]
        logger.info(f"Tracking record created: {tracking_id}")
        return tracking_id

    async def get(self, tracking_id: str) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: If the record does not exist
        """
        result = self.table().select("*").eq("id", tracking_id).execute()
        if not result.data:
            raise NotFoundError("Tracking record not found")
        return result.data[0]

    async def _update(self, tracking_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        data = {**data, "updated_at": _now()}
        result = self.table().update(data).eq("id", tracking_id).execute()
        if not result.data:
            raise NotFoundError("Tracking record not found")
        return result.data[0]

    async def mark_in_progress(self, tracking_id: str) -> Dict[str, Any]:
        """Reset a caller-created record to in-progress."""
        return await self._update(tracking_id, {
            "status": TrackingStatus.IN_PROGRESS.value,
            "error": "",
        })

    async def mark_completed(self, tracking_id: str, article_id: str) -> Dict[str, Any]:
        return await self._update(tracking_id, {
            "status": TrackingStatus.COMPLETED.value,
            "error": "",
            "article_id": article_id,
        })

    async def mark_failed(self, tracking_id: str, message: Any) -> Dict[str, Any]:
        safe_message = safe_error_message(message) or "Unknown error"
        logger.info(f"Setting tracking status to failed for: {tracking_id}")
        return await self._update(tracking_id, {
            "status": TrackingStatus.FAILED.value,
            "error": safe_message,
        })
