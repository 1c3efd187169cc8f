"""
Subscription routes backed by Stripe.

Lookups go through the per-app SubscriptionCache so a page that checks
the subscription on every render does not hit Stripe each time.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from skoolife.api.deps import Billing, CurrentUser, SubscriptionCacheDep
from skoolife.config import get_settings, sanitize_error
from skoolife.db.models import User
from skoolife.schemas.subscription import PortalResponse, SubscriptionRead
from skoolife.services.billing import BillingError, BillingGateway, SubscriptionStatus
from skoolife.services.subscription import SubscriptionCache, SubscriptionTier, resolve_tier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["subscription"])
settings = get_settings()


def product_tiers() -> dict[str, SubscriptionTier]:
    """Stripe product id -> tier, for the products configured in settings."""
    tiers = {
        settings.stripe_product_student: SubscriptionTier.STUDENT,
        settings.stripe_product_major: SubscriptionTier.MAJOR,
    }
    return {product: tier for product, tier in tiers.items() if product}


async def _check(user: User, billing: BillingGateway, cache: SubscriptionCache) -> SubscriptionRead:
    if user.email:
        try:
            subscription = await cache.get_or_fetch(
                user.id, lambda: billing.fetch_subscription_status(user.email)
            )
        except BillingError as e:
            logger.error("Subscription check failed for user %s: %s", user.id, e, exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=sanitize_error(e, generic_message="Could not check the subscription."),
            )
    else:
        subscription = SubscriptionStatus(subscribed=False)

    return SubscriptionRead(
        subscribed=subscription.subscribed,
        product_id=subscription.product_id,
        subscription_end=subscription.subscription_end,
        subscription_status=subscription.subscription_status,
        cancel_at_period_end=subscription.cancel_at_period_end,
        tier=resolve_tier(
            subscription,
            signed_up_via_invite=user.signed_up_via_invite,
            product_tiers=product_tiers(),
        ),
    )


@router.get("/", response_model=SubscriptionRead)
async def check_subscription(
    current_user: CurrentUser,
    billing: Billing,
    cache: SubscriptionCacheDep,
) -> SubscriptionRead:
    """Current subscription state and feature tier of the caller."""
    return await _check(current_user, billing, cache)


@router.post("/refresh", response_model=SubscriptionRead)
async def refresh_subscription(
    current_user: CurrentUser,
    billing: Billing,
    cache: SubscriptionCacheDep,
) -> SubscriptionRead:
    """Drop the cached state (e.g. after checkout) and check again."""
    cache.invalidate(current_user.id)
    return await _check(current_user, billing, cache)


@router.post("/portal", response_model=PortalResponse)
async def customer_portal(
    current_user: CurrentUser,
    billing: Billing,
) -> PortalResponse:
    """Link to the Stripe billing portal where the caller manages their plan."""
    if not current_user.email:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No billing account found")

    try:
        url = await billing.create_portal_url(current_user.email, settings.stripe_portal_return_url)
    except BillingError as e:
        logger.error("Portal session failed for user %s: %s", current_user.id, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=sanitize_error(e, generic_message="Could not open the billing portal."),
        )

    if url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No billing account found")
    return PortalResponse(url=url)
