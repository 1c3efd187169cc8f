"""Tests for Stripe subscription status, tiers and the subscription cache."""

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
import stripe

from conftest import headers_for
from skoolife.services.billing import (
    BillingError,
    BillingGateway,
    SubscriptionStatus,
    build_status,
    select_eligible_subscription,
)
from skoolife.services.subscription import SubscriptionCache, SubscriptionTier, resolve_tier

NOW = 1_740_000_000
TIERS = {"prod_student": SubscriptionTier.STUDENT, "prod_major": SubscriptionTier.MAJOR}


def _subscription(status, product="prod_student", period_end=NOW + 86400, **extra):
    return {
        "status": status,
        "current_period_end": period_end,
        "cancel_at_period_end": False,
        "items": {"data": [{"price": {"product": product}}]},
        **extra,
    }


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


# =============================================================================
# SUBSCRIPTION SELECTION
# =============================================================================


class TestSelectEligible:
    def test_active_and_trialing_count(self):
        assert select_eligible_subscription([_subscription("active")], NOW)["status"] == "active"
        assert select_eligible_subscription([_subscription("trialing")], NOW)["status"] == "trialing"

    def test_canceled_counts_until_period_end(self):
        assert select_eligible_subscription([_subscription("canceled")], NOW) is not None
        assert select_eligible_subscription([_subscription("canceled", period_end=NOW - 1)], NOW) is None

    def test_other_statuses_do_not_count(self):
        subscriptions = [_subscription("past_due"), _subscription("incomplete")]
        assert select_eligible_subscription(subscriptions, NOW) is None

    def test_period_end_from_items(self):
        subscription = {
            "status": "canceled",
            "items": {"data": [{"current_period_end": NOW + 10, "price": {"product": "prod_major"}}]},
        }
        assert select_eligible_subscription([subscription], NOW) is subscription


class TestBuildStatus:
    def test_subscribed(self):
        end = 4_102_444_800  # 2100-01-01
        status = build_status("cus_1", [_subscription("active", product="prod_major", period_end=end)])

        assert status.subscribed is True
        assert status.customer_id == "cus_1"
        assert status.product_id == "prod_major"
        assert status.subscription_end == datetime(2100, 1, 1, tzinfo=timezone.utc)
        assert status.cancel_at_period_end is False

    def test_canceled_is_reported_as_ending(self):
        status = build_status("cus_1", [_subscription("canceled", period_end=4_102_444_800)])

        assert status.subscribed is True
        assert status.cancel_at_period_end is True

    def test_not_subscribed(self):
        status = build_status("cus_1", [])
        assert status == SubscriptionStatus(subscribed=False, customer_id="cus_1")


class TestResolveTier:
    def test_subscribed_product(self):
        status = SubscriptionStatus(subscribed=True, product_id="prod_student")
        assert resolve_tier(status, signed_up_via_invite=True, product_tiers=TIERS) is SubscriptionTier.STUDENT

    def test_unknown_product_is_major(self):
        status = SubscriptionStatus(subscribed=True, product_id="prod_legacy")
        assert resolve_tier(status, signed_up_via_invite=False, product_tiers=TIERS) is SubscriptionTier.MAJOR

    def test_invited_user_without_subscription(self):
        status = SubscriptionStatus(subscribed=False)
        assert (
            resolve_tier(status, signed_up_via_invite=True, product_tiers=TIERS)
            is SubscriptionTier.FREE_INVITE
        )

    def test_legacy_user_without_subscription(self):
        status = SubscriptionStatus(subscribed=False)
        assert resolve_tier(status, signed_up_via_invite=False, product_tiers=TIERS) is SubscriptionTier.MAJOR


# =============================================================================
# CACHE
# =============================================================================


class TestSubscriptionCache:
    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = SubscriptionCache(ttl_seconds=60, clock=clock)
        user_id = uuid4()
        cache.set(user_id, SubscriptionStatus(subscribed=True))

        clock.now = 59.9
        assert cache.get(user_id) == SubscriptionStatus(subscribed=True)
        clock.now = 60
        assert cache.get(user_id) is None

    def test_invalidate(self):
        cache = SubscriptionCache(ttl_seconds=60)
        user_id = uuid4()
        cache.set(user_id, SubscriptionStatus(subscribed=True))

        cache.invalidate(user_id)
        cache.invalidate(uuid4())

        assert cache.get(user_id) is None

    async def test_get_or_fetch_fetches_once_per_ttl(self):
        clock = FakeClock()
        cache = SubscriptionCache(ttl_seconds=60, clock=clock)
        user_id = uuid4()
        calls = []

        async def fetch():
            calls.append(clock.now)
            return SubscriptionStatus(subscribed=False)

        await cache.get_or_fetch(user_id, fetch)
        await cache.get_or_fetch(user_id, fetch)
        clock.now = 61
        await cache.get_or_fetch(user_id, fetch)

        assert calls == [0.0, 61]

    async def test_failed_fetch_is_not_cached(self):
        cache = SubscriptionCache(ttl_seconds=60)
        user_id = uuid4()

        async def fail():
            raise BillingError("down")

        with pytest.raises(BillingError):
            await cache.get_or_fetch(user_id, fail)
        assert cache.get(user_id) is None
        assert cache._locks == {}

    async def test_locks_released_after_fetch(self):
        cache = SubscriptionCache(ttl_seconds=60)

        async def fetch():
            return SubscriptionStatus(subscribed=False)

        for _ in range(50):
            await cache.get_or_fetch(uuid4(), fetch)

        assert len(cache._entries) == 50
        assert cache._locks == {}

    async def test_concurrent_callers_share_one_fetch(self):
        cache = SubscriptionCache(ttl_seconds=60)
        user_id = uuid4()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return SubscriptionStatus(subscribed=True)

        results = await asyncio.gather(*(cache.get_or_fetch(user_id, fetch) for _ in range(5)))

        assert calls == 1
        assert all(r == SubscriptionStatus(subscribed=True) for r in results)
        assert cache._locks == {}

    def test_clear_drops_entries_and_locks(self):
        cache = SubscriptionCache(ttl_seconds=60)
        user_id = uuid4()
        cache.set(user_id, SubscriptionStatus(subscribed=True))
        cache._locks[user_id] = asyncio.Lock()

        cache.clear()

        assert cache.get(user_id) is None
        assert cache._locks == {}


# =============================================================================
# STRIPE GATEWAY
# =============================================================================


class TestBillingGateway:
    async def test_unknown_customer_is_unsubscribed(self, monkeypatch):
        monkeypatch.setattr(stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[]))

        status = await BillingGateway("sk_test").fetch_subscription_status("nobody@example.com")

        assert status == SubscriptionStatus(subscribed=False)

    async def test_subscribed_customer(self, monkeypatch):
        seen = {}

        def list_subscriptions(**kwargs):
            seen.update(kwargs)
            return SimpleNamespace(data=[_subscription("active", period_end=4_102_444_800)])

        monkeypatch.setattr(
            stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[SimpleNamespace(id="cus_42")])
        )
        monkeypatch.setattr(stripe.Subscription, "list", list_subscriptions)

        status = await BillingGateway("sk_test").fetch_subscription_status("alice@example.com")

        assert status.subscribed is True
        assert status.product_id == "prod_student"
        assert seen["customer"] == "cus_42"
        assert seen["api_key"] == "sk_test"

    async def test_stripe_errors_become_billing_errors(self, monkeypatch):
        def boom(**kwargs):
            raise stripe.APIConnectionError("network down")

        monkeypatch.setattr(stripe.Customer, "list", boom)

        with pytest.raises(BillingError):
            await BillingGateway("sk_test").fetch_subscription_status("alice@example.com")

    async def test_missing_key(self):
        with pytest.raises(BillingError):
            await BillingGateway("").fetch_subscription_status("alice@example.com")

    async def test_portal_url(self, monkeypatch):
        monkeypatch.setattr(
            stripe.Customer, "list", lambda **kw: SimpleNamespace(data=[SimpleNamespace(id="cus_42")])
        )
        monkeypatch.setattr(
            stripe.billing_portal.Session,
            "create",
            lambda **kw: SimpleNamespace(url=f"https://billing.test/{kw['customer']}"),
        )

        url = await BillingGateway("sk_test").create_portal_url("alice@example.com", "https://app/settings")

        assert url == "https://billing.test/cus_42"


# =============================================================================
# ROUTES
# =============================================================================


class TestSubscriptionRoutes:
    async def test_check_is_cached(self, client, auth_headers, billing):
        billing.status = SubscriptionStatus(subscribed=True, product_id="prod_student", subscription_status="active")

        first = await client.get("/subscription/", headers=auth_headers)
        second = await client.get("/subscription/", headers=auth_headers)

        assert first.status_code == 200
        assert first.json()["tier"] == "student"
        assert first.json()["subscribed"] is True
        assert second.json() == first.json()
        assert billing.fetch_calls == 1

    async def test_refresh_bypasses_cache(self, client, auth_headers, billing):
        await client.get("/subscription/", headers=auth_headers)
        billing.status = SubscriptionStatus(subscribed=True, product_id="prod_major")

        response = await client.post("/subscription/refresh", headers=auth_headers)

        assert response.json()["tier"] == "major"
        assert billing.fetch_calls == 2

    async def test_invited_user_gets_free_tier(self, client, make_user, billing):
        invited = await make_user("bob@example.com", "Bob", signed_up_via_invite=True)

        response = await client.get("/subscription/", headers=headers_for(invited))

        assert response.json() == {
            "subscribed": False,
            "product_id": None,
            "subscription_end": None,
            "subscription_status": None,
            "cancel_at_period_end": False,
            "tier": "free_invite",
        }

    async def test_billing_failure_is_502(self, client, auth_headers, billing):
        billing.error = BillingError("stripe unreachable")

        response = await client.get("/subscription/", headers=auth_headers)

        assert response.status_code == 502

    async def test_portal(self, client, auth_headers, billing):
        response = await client.post("/subscription/portal", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"url": "https://billing.stripe.test/session/abc"}

    async def test_portal_without_customer(self, client, auth_headers, billing):
        billing.portal_url = None

        response = await client.post("/subscription/portal", headers=auth_headers)

        assert response.status_code == 404

    async def test_portal_failure(self, client, auth_headers, billing):
        billing.error = BillingError("stripe unreachable")

        response = await client.post("/subscription/portal", headers=auth_headers)

        assert response.status_code == 502
