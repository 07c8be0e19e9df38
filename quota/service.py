"""
Business logic for per-user generation quotas.

Quota counters live in the user's preference set as ``basic_uses``,
``pro_uses`` and ``ultra_uses``. Updates are read-modify-write against the
directory and are not atomic: two jobs finishing at the same time for the
same user can both read the same value.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from shared.errors import QuotaExceededError, ValidationError, is_not_found
from shared.user_directory import UserDirectory

logger = logging.getLogger(__name__)

TIER_FIELDS = {
    "basic": "basic_uses",
    "pro": "pro_uses",
    "ultra": "ultra_uses",
}

DEFAULT_ALLOWANCE = {"basic_uses": 10, "pro_uses": 5, "ultra_uses": 3}
ADMIN_ALLOWANCE = {"basic_uses": 999, "pro_uses": 999, "ultra_uses": 999}

RESET_PAGE_SIZE = 100
RESET_PAGE_PAUSE_SECONDS = 0.1


@dataclass(frozen=True)
class Quota:
    basic: int = 0
    pro: int = 0
    ultra: int = 0

    def remaining(self, tier: str) -> int:
        return getattr(self, tier)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def usage_field(tier: str) -> str:
    """
    Map a tier to its preference field.

    Raises:
        ValidationError: If the tier is unknown
    """
    field_name = TIER_FIELDS.get((tier or "").lower())
    if not field_name:
        raise ValidationError("Invalid request type. Must be basic, pro, or ultra")
    return field_name


def _as_count(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


class QuotaService:
    """Service class for quota reads, decrements and daily resets."""

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    async def _load_prefs(self, user_id: str) -> Dict[str, Any]:
        try:
            return await self.directory.get_prefs(user_id)
        except Exception as e:
            if is_not_found(e):
                logger.info(f"No preferences found for user {user_id}, using defaults")
                return {field_name: 0 for field_name in TIER_FIELDS.values()}
            raise

    async def get_quota(self, user_id: str) -> Quota:
        """
        Get remaining uses for every tier.

        A user without a preference record gets an all-zero quota instead
        of a not-found error.
        """
        prefs = await self._load_prefs(user_id)
        return Quota(**{
            tier: _as_count(prefs.get(field_name))
            for tier, field_name in TIER_FIELDS.items()
        })

    async def ensure_available(self, user_id: str, tier: str) -> int:
        """
        Check that the user can run one more job on this tier.

        Returns:
            Remaining uses for the tier

        Raises:
            QuotaExceededError: If no uses remain
        """
        usage_field(tier)
        quota = await self.get_quota(user_id)
        remaining = quota.remaining(tier.lower())
        logger.info(f"User {user_id} has {remaining} {tier} uses remaining")

        if remaining <= 0:
            raise QuotaExceededError(f"Insufficient {tier} uses.")
        return remaining

    async def decrement(self, user_id: str, tier: str) -> int:
        """
        Consume one use of a tier, never going below zero.

        The full preference set is written back so unrelated keys survive.

        Returns:
            The new remaining count
        """
        field_name = usage_field(tier)
        prefs = await self._load_prefs(user_id)

        new_uses = max(0, _as_count(prefs.get(field_name)) - 1)
        await self.directory.update_prefs(user_id, {**prefs, field_name: new_uses})

        logger.info(f"User quota updated: {field_name} = {new_uses}")
        return new_uses

    async def reset_quotas(
        self,
        deadline_seconds: float,
        clock: Callable[[], float] = time.monotonic
    ) -> Dict[str, Any]:
        """
        Refill every user's daily allowance.

        Users labelled ``admin`` get the admin allowance. A failure for one
        user is counted and skipped. When the wall-clock budget runs out the
        run stops after the current page; users not reached keep their
        counters until the next run.

        Args:
            deadline_seconds: Wall-clock budget for the whole run
            clock: Monotonic clock, injectable for tests

        Returns:
            Summary of the run
        """
        started = clock()
        page = 1
        updated_count = 0
        error_count = 0
        timed_out = False

        logger.info("Starting daily quota reset")

        while True:
            users = await self.directory.list_users(page=page, per_page=RESET_PAGE_SIZE)

            for user in users:
                try:
                    existing = dict(getattr(user, "app_metadata", None) or {})
                    labels = existing.get("labels") or []
                    allowance = ADMIN_ALLOWANCE if "admin" in labels else DEFAULT_ALLOWANCE
                    await self.directory.update_prefs(user.id, {**existing, **allowance})
                    updated_count += 1
                except Exception as e:
                    error_count += 1
                    logger.error(f"Failed to reset quota for user {getattr(user, 'id', '?')}: {str(e)}")

            if clock() - started > deadline_seconds:
                logger.warning("Quota reset approaching timeout, stopping early")
                timed_out = True
                break

            if len(users) < RESET_PAGE_SIZE:
                break

            await asyncio.sleep(RESET_PAGE_PAUSE_SECONDS)
            page += 1

        summary = {
            "success": True,
            "message": "Daily quota reset completed",
            "totalUpdated": updated_count,
            "errors": error_count,
            "timedOut": timed_out,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(f"Quota reset summary: {summary}")
        return summary
