"""
User directory backed by the Supabase Auth admin API.

A user's preference set lives in ``app_metadata`` so that it can only be
written with the service role key.
"""

import logging
from typing import Any, Dict, List

from .errors import NotFoundError

logger = logging.getLogger(__name__)


class UserDirectory:
    """Thin wrapper around ``client.auth.admin``."""

    def __init__(self, client):
        self.client = client

    @property
    def admin(self):
        return self.client.auth.admin

    async def get_user(self, user_id: str):
        """
        Fetch a user record.

        Raises:
            NotFoundError: If the directory returns no user
            Exception: Any SDK error is propagated unchanged
        """
        result = self.admin.get_user_by_id(user_id)
        if not result or not result.user:
            raise NotFoundError("User not found")
        return result.user

    async def get_prefs(self, user_id: str) -> Dict[str, Any]:
        """Return a copy of the user's preference set."""
        user = await self.get_user(user_id)
        return dict(user.app_metadata or {})

    async def update_prefs(self, user_id: str, prefs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace the user's preference set.

        Callers pass the full merged set; unrelated keys are not re-read here.
        """
        self.admin.update_user_by_id(user_id, {"app_metadata": prefs})
        logger.info(f"Preferences updated for user {user_id}")
        return prefs

    async def list_users(self, page: int = 1, per_page: int = 100) -> List[Any]:
        """List one page of users (pages start at 1)."""
        return list(self.admin.list_users(page=page, per_page=per_page) or [])


def display_name(user) -> str:
    """Name shown for a user, taken from the profile metadata."""
    metadata = getattr(user, "user_metadata", None) or {}
    return metadata.get("full_name") or metadata.get("name") or ""
