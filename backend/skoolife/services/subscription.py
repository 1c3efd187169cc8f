"""Subscription tier resolution and the per-user subscription cache."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from skoolife.services.billing import SubscriptionStatus

logger = logging.getLogger(__name__)


class SubscriptionTier(str, Enum):
    """Feature tier granted to a user."""

    FREE_INVITE = "free_invite"
    STUDENT = "student"
    MAJOR = "major"


def resolve_tier(
    status: SubscriptionStatus,
    *,
    signed_up_via_invite: bool,
    product_tiers: dict[str, SubscriptionTier],
) -> SubscriptionTier:
    """
    Map a subscription status to a tier.

    Subscribed users get the tier of their product (unknown products are
    treated as major). Unsubscribed users who joined through an invite are
    on the free invite tier; everyone else is grandfathered as major.
    """
    if status.subscribed:
        if status.product_id and status.product_id in product_tiers:
            return product_tiers[status.product_id]
        return SubscriptionTier.MAJOR
    if signed_up_via_invite:
        return SubscriptionTier.FREE_INVITE
    return SubscriptionTier.MAJOR


@dataclass
class _Entry:
    value: SubscriptionStatus
    stored_at: float


class SubscriptionCache:
    """
    Time-bounded memo of subscription lookups, keyed by user id.

    One instance lives on the application state. Entries older than
    `ttl_seconds` are refetched; `invalidate` drops a user's entry so the
    next lookup goes back to the billing provider.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[UUID, _Entry] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}

    def get(self, user_id: UUID) -> SubscriptionStatus | None:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[user_id]
            return None
        return entry.value

    def set(self, user_id: UUID, value: SubscriptionStatus) -> None:
        self._entries[user_id] = _Entry(value=value, stored_at=self._clock())

    def invalidate(self, user_id: UUID) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()
        self._locks.clear()

    async def get_or_fetch(
        self,
        user_id: UUID,
        fetch: Callable[[], Awaitable[SubscriptionStatus]],
    ) -> SubscriptionStatus:
        """Return the cached status or fetch it, one fetch per user at a time."""
        cached = self.get(user_id)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(user_id, asyncio.Lock())
        try:
            async with lock:
                cached = self.get(user_id)
                if cached is not None:
                    return cached
                value = await fetch()
                self.set(user_id, value)
                logger.debug("Cached subscription status for user %s", user_id)
                return value
        finally:
            # Waiters keep their own reference to the lock
            if self._locks.get(user_id) is lock:
                del self._locks[user_id]
