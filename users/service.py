"""
Business logic for user lookup and search.
"""

import logging
import math
import uuid
from typing import Any, Dict, List, Optional

from shared.errors import ValidationError
from shared.user_directory import UserDirectory, display_name

logger = logging.getLogger(__name__)

PREFERENCE_DEFAULTS = {
    "bio": "",
    "profilePictureId": "",
    "theme": "light",
    "language": "en",
}

SEARCH_TYPES = ("contains", "startsWith", "exact", "search")
PROFILE_COLUMNS = "id, name, bio, avatar_url, created_at"


def _validate_user_id(user_id: Any) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("userId parameter is required and must be a non-empty string")

    user_id = user_id.strip()
    try:
        uuid.UUID(user_id)
    except ValueError:
        raise ValidationError("Invalid user ID format")
    return user_id


def _clamp_int(value: Any, default: int, low: int, high: Optional[int] = None) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    number = max(number, low)
    if high is not None:
        number = min(number, high)
    return number


class UserService:
    """Service class for user directory reads."""

    def __init__(self, directory: UserDirectory, client, profiles_table: str = "profiles"):
        self.directory = directory
        self.client = client
        self.profiles_table = profiles_table

    async def fetch_user(
        self,
        user_id: Any,
        include_preferences: bool = True,
        include_metadata: bool = False
    ) -> Dict[str, Any]:
        """
        Get a sanitized view of one user.

        Args:
            user_id: The user's UUID
            include_preferences: Add the preference set, with defaults
            include_metadata: Add account timestamps

        Returns:
            Sanitized user dict

        Raises:
            ValidationError: If the id is missing or not a UUID
            NotFoundError: If the user does not exist
        """
        user_id = _validate_user_id(user_id)
        logger.info(f"Fetching user data for ID: {user_id}")

        user = await self.directory.get_user(user_id)
        prefs = dict(getattr(user, "app_metadata", None) or {})

        sanitized = {
            "id": str(user.id),
            "name": display_name(user),
            "email": getattr(user, "email", None) or "",
            "phone": getattr(user, "phone", None) or "",
            "registration": getattr(user, "created_at", None) or "",
            "status": getattr(user, "banned_until", None) is None,
            "emailVerification": getattr(user, "email_confirmed_at", None) is not None,
            "phoneVerification": getattr(user, "phone_confirmed_at", None) is not None,
            "labels": list(prefs.get("labels") or []),
        }

        if include_preferences:
            sanitized["preferences"] = {**PREFERENCE_DEFAULTS, **prefs}

        if include_metadata:
            sanitized["metadata"] = {
                "createdAt": getattr(user, "created_at", None) or "",
                "updatedAt": getattr(user, "updated_at", None) or "",
                "lastSignInAt": getattr(user, "last_sign_in_at", None) or "",
            }

        return sanitized

    async def search_users(
        self,
        name: Any,
        limit: Any = 25,
        offset: Any = 0,
        search_type: str = "contains"
    ) -> Dict[str, Any]:
        """
        Search profiles by display name.

        Args:
            name: Name fragment, at least 2 characters
            limit: Page size, clamped to 1..100
            offset: Rows to skip, at least 0
            search_type: contains | startsWith | exact | search (full text)

        Returns:
            dict with ``users`` and ``pagination``
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name parameter is required and must be a non-empty string")

        name = name.strip()
        if len(name) < 2:
            raise ValidationError("Name must be at least 2 characters long")

        limit = _clamp_int(limit, 25, 1, 100)
        offset = _clamp_int(offset, 0, 0)
        if search_type not in SEARCH_TYPES:
            search_type = "contains"

        logger.info(
            f'Searching for users with name: "{name}", type: {search_type}, '
            f"limit: {limit}, offset: {offset}"
        )

        query = self.client.table(self.profiles_table).select(PROFILE_COLUMNS, count="exact")
        if search_type == "exact":
            query = query.eq("name", name)
        elif search_type == "startsWith":
            query = query.ilike("name", f"{name}%")
        elif search_type == "search":
            query = query.text_search("name", name)
        else:
            query = query.ilike("name", f"%{name}%")

        result = query.range(offset, offset + limit - 1).execute()

        users = self._format_profiles(result.data or [])
        total = result.count or 0
        next_offset = offset + len(users)
        has_more = next_offset < total

        logger.info(f"Found {len(users)} users out of {total} total")

        return {
            "users": users,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": has_more,
                "nextOffset": next_offset if has_more else None,
                "page": offset // limit + 1,
                "totalPages": math.ceil(total / limit),
            },
        }

    def _format_profiles(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                "id": row.get("id"),
                "name": row.get("name") or "Anonymous User",
                "bio": row.get("bio"),
                "profilePictureUrl": row.get("avatar_url"),
                "registrationDate": row.get("created_at"),
            }
            for row in rows
        ]
