"""Stripe billing integration: subscription lookup and customer portal."""

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

import stripe

from skoolife.config import get_settings

logger = logging.getLogger(__name__)

ELIGIBLE_STATUSES = ("active", "trialing")


class BillingError(Exception):
    """Raised when Stripe cannot be reached or rejects a request."""


@dataclass(frozen=True)
class SubscriptionStatus:
    """Subscription facts for one customer, as reported by Stripe."""

    subscribed: bool
    customer_id: str | None = None
    product_id: str | None = None
    subscription_end: datetime | None = None
    subscription_status: str | None = None
    cancel_at_period_end: bool = False


def _period_end(subscription: Mapping[str, Any]) -> int | None:
    end = subscription.get("current_period_end")
    if isinstance(end, int):
        return end
    # Newer API versions carry the period on the subscription items
    items = (subscription.get("items") or {}).get("data") or []
    if items and isinstance(items[0].get("current_period_end"), int):
        return items[0]["current_period_end"]
    return None


def select_eligible_subscription(
    subscriptions: Iterable[Mapping[str, Any]],
    now_ts: int | None = None,
) -> Mapping[str, Any] | None:
    """
    Pick the subscription that grants access.

    Active and trialing subscriptions count; a canceled one still counts
    until the end of the period that was paid for.
    """
    now_ts = int(time.time()) if now_ts is None else now_ts
    for subscription in subscriptions:
        status = subscription.get("status")
        if status in ELIGIBLE_STATUSES:
            return subscription
        if status == "canceled":
            end = _period_end(subscription)
            if end is not None and end > now_ts:
                return subscription
    return None


def build_status(customer_id: str, subscriptions: Iterable[Mapping[str, Any]]) -> SubscriptionStatus:
    """Summarise a customer's subscriptions into a SubscriptionStatus."""
    eligible = select_eligible_subscription(subscriptions)
    if eligible is None:
        return SubscriptionStatus(subscribed=False, customer_id=customer_id)

    end_seconds = _period_end(eligible)
    if end_seconds is None and isinstance(eligible.get("trial_end"), int):
        end_seconds = eligible["trial_end"]

    items = (eligible.get("items") or {}).get("data") or []
    price = items[0].get("price") if items else None
    product_id = price.get("product") if price else None

    return SubscriptionStatus(
        subscribed=True,
        customer_id=customer_id,
        product_id=product_id,
        subscription_end=(
            datetime.fromtimestamp(end_seconds, tz=timezone.utc) if end_seconds else None
        ),
        subscription_status=eligible.get("status"),
        cancel_at_period_end=bool(eligible.get("cancel_at_period_end"))
        or eligible.get("status") == "canceled",
    )


class BillingGateway:
    """Thin wrapper over the Stripe API for the calls this service needs."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def _require_key(self) -> None:
        if not self.api_key:
            raise BillingError("STRIPE_SECRET_KEY is not set")

    async def _find_customer_id(self, email: str) -> str | None:
        customers = stripe.Customer.list(email=email, limit=1, api_key=self.api_key)
        if not customers.data:
            return None
        return customers.data[0].id

    async def fetch_subscription_status(self, email: str) -> SubscriptionStatus:
        """Look up the customer by email and report whether they are subscribed."""
        self._require_key()
        try:
            customer_id = await self._find_customer_id(email)
            if customer_id is None:
                logger.info("No Stripe customer for %s, treating as unsubscribed", email)
                return SubscriptionStatus(subscribed=False)

            subscriptions = stripe.Subscription.list(
                customer=customer_id, status="all", limit=10, api_key=self.api_key
            )
        except stripe.StripeError as e:
            raise BillingError(f"Stripe subscription lookup failed: {e}") from e

        status = build_status(customer_id, subscriptions.data)
        logger.info(
            "Subscription checked for customer %s: subscribed=%s status=%s",
            customer_id,
            status.subscribed,
            status.subscription_status,
        )
        return status

    async def create_portal_url(self, email: str, return_url: str) -> str | None:
        """
        Create a billing portal session.

        Returns None when the email has no Stripe customer.
        """
        self._require_key()
        try:
            customer_id = await self._find_customer_id(email)
            if customer_id is None:
                return None
            session = stripe.billing_portal.Session.create(
                customer=customer_id, return_url=return_url, api_key=self.api_key
            )
        except stripe.StripeError as e:
            raise BillingError(f"Stripe portal session failed: {e}") from e
        return session.url


@lru_cache
def get_billing_gateway() -> BillingGateway:
    """Shared billing gateway configured from settings."""
    return BillingGateway(get_settings().stripe_secret_key)
