"""
Business logic for article media in Supabase Storage.

Browsers upload directly to storage with a signed upload token issued here;
deletions go through the service role.
"""

import logging
import os
import re
import uuid
from typing import Any, Dict, Optional

from shared.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_file_name(file_name: Optional[str]) -> str:
    """Reduce a client-supplied name to a safe storage object name."""
    base = os.path.basename((file_name or "").strip())
    base = _UNSAFE_CHARS.sub("-", base).strip("-.")
    return base or "upload"


class MediaService:
    """Service class for storage upload tokens and deletions."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    @property
    def storage(self):
        return self.client.storage.from_(self.bucket)

    async def issue_upload_token(self, user_id: str, file_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a signed upload URL for a new object under the user's folder.

        Returns:
            dict with ``token``, ``path`` and ``signedUrl``
        """
        path = f"{user_id}/{uuid.uuid4().hex}/{safe_file_name(file_name)}"
        logger.info(f"Generating upload token for {path}")

        result = self.storage.create_signed_upload_url(path)
        return {
            "token": result.get("token"),
            "path": result.get("path") or path,
            "signedUrl": result.get("signed_url") or result.get("signedUrl"),
        }

    async def delete_file(self, user_id: str, file_id: Any) -> str:
        """
        Delete one of the user's stored objects.

        Args:
            user_id: The requester; only objects under their folder qualify
            file_id: Storage path of the object

        Raises:
            ValidationError: If file_id is missing
            NotFoundError: If the path is outside the user's folder or
                nothing was removed
        """
        if not isinstance(file_id, str) or not file_id.strip():
            raise ValidationError("fileId is required for delete operation")

        file_id = file_id.strip()
        segments = file_id.split("/")
        if segments[0] != user_id or len(segments) < 2 or ".." in segments:
            logger.warning(f"User {user_id} tried to delete a file outside their folder: {file_id}")
            raise NotFoundError("File not found")

        logger.info(f"Deleting file: {file_id}")

        removed = self.storage.remove([file_id])
        if not removed:
            raise NotFoundError("File not found")

        logger.info(f"File deleted successfully: {file_id}")
        return file_id
