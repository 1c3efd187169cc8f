"""Subscription schemas."""

from datetime import datetime

from pydantic import BaseModel

from skoolife.services.subscription import SubscriptionTier


class SubscriptionRead(BaseModel):
    """Result of a subscription check."""

    subscribed: bool
    product_id: str | None = None
    subscription_end: datetime | None = None
    subscription_status: str | None = None
    cancel_at_period_end: bool = False
    tier: SubscriptionTier


class PortalResponse(BaseModel):
    url: str
