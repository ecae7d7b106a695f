"""
Unit tests for per-user subscription resolution.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from service_entitlements.app.plans.billing import BillingConfigClient
from service_entitlements.app.plans.limits import UNLIMITED, PlanKey, limits_for_plan
from service_entitlements.app.roles.models import SystemRole
from service_entitlements.app.store.memory import InMemoryDocumentStore
from service_entitlements.app.subscription import (
    ADDONS_COLLECTION,
    PROFILE_COLLECTION,
    SubscriptionResolver,
)

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Create a seeded in-memory store."""
    return InMemoryDocumentStore({
        PROFILE_COLLECTION: {
            "standard-user": {
                "role": "props_supervisor",
                "plan": "standard",
                "subscriptionStatus": "active",
                "currentPeriodEnd": "2024-07-01T00:00:00Z",
            },
            "legacy-user": {"role": "editor", "subscriptionPlan": "Starter"},
            "odd-plan-user": {"role": "editor", "plan": "enterprise"},
            "god-user": {"role": "god"},
            "sysadmin-user": {"role": "viewer", "groups": {"system-admin": True}},
        },
        ADDONS_COLLECTION: {
            "standard-user": {
                "addOns": [
                    {"addOnId": "props_500", "quantity": 500, "status": "active"},
                    {"addOnId": "shows_5", "quantity": 5, "status": "cancelled"},
                    {
                        "addOnId": "packing_100",
                        "quantity": 100,
                        "status": "active",
                        "expiresAt": "2024-05-01T00:00:00Z",
                    },
                    "not-a-record",
                ],
            },
        },
    })


@pytest.fixture
def resolver(store):
    """Create a resolver using static plan defaults."""
    return SubscriptionResolver(store, BillingConfigClient(None))


class TestSubscriptionResolver:
    """Test cases for SubscriptionResolver."""

    @pytest.mark.asyncio
    async def test_plan_with_add_ons(self, resolver):
        """Test base limits plus active, unexpired add-ons."""
        subscription = await resolver.resolve("standard-user", now=NOW)

        assert subscription.plan == PlanKey.STANDARD
        assert subscription.status == "active"
        assert subscription.profile.role == SystemRole.PROPS_SUPERVISOR
        assert subscription.base_limits == limits_for_plan(PlanKey.STANDARD)
        assert subscription.limits.props == 600
        assert subscription.limits.shows == 10
        assert subscription.limits.packing_boxes == 1000
        assert [addon.add_on_id for addon in subscription.add_ons] == ["props_500"]
        assert subscription.current_period_end == datetime(2024, 7, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_legacy_plan_field(self, resolver):
        """Test subscriptionPlan is read when plan is absent."""
        subscription = await resolver.resolve("legacy-user", now=NOW)
        assert subscription.plan == PlanKey.STARTER
        assert subscription.status == "unknown"
        assert subscription.limits == limits_for_plan(PlanKey.STARTER)

    @pytest.mark.asyncio
    async def test_unknown_plan_is_free(self, resolver):
        """Test unrecognised plan names fall back to free."""
        subscription = await resolver.resolve("odd-plan-user", now=NOW)
        assert subscription.plan == PlanKey.FREE

    @pytest.mark.asyncio
    async def test_missing_profile_is_free_viewer(self, resolver):
        """Test a user without a profile document."""
        subscription = await resolver.resolve("nobody", now=NOW)
        assert subscription.profile.role == SystemRole.VIEWER
        assert subscription.plan == PlanKey.FREE
        assert subscription.limits == limits_for_plan(PlanKey.FREE)
        assert subscription.add_ons == ()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", ["god-user", "sysadmin-user"])
    async def test_exempt_users_are_unlimited(self, resolver, user_id):
        """Test exempt users skip plan lookup entirely."""
        subscription = await resolver.resolve(user_id, now=NOW)
        assert subscription.status == "exempt"
        assert subscription.limits.props == UNLIMITED
        assert subscription.to_dict()["limits"]["props"] is None

    @pytest.mark.asyncio
    async def test_unreadable_profile_fails_closed(self):
        """Test store errors on the profile read yield a free viewer."""
        store = MagicMock()
        store.get_document = AsyncMock(side_effect=ConnectionError("store down"))
        reporter = MagicMock()

        resolver = SubscriptionResolver(store, BillingConfigClient(None), reporter=reporter)
        subscription = await resolver.resolve("standard-user", now=NOW)

        assert subscription.profile.role == SystemRole.VIEWER
        assert subscription.plan == PlanKey.FREE
        assert reporter.report.call_count == 2

    @pytest.mark.asyncio
    async def test_unreadable_add_ons_are_ignored(self, store):
        """Test store errors on the add-on read keep the base limits."""
        real_get = store.get_document

        async def get_document(collection, document_id):
            if collection == ADDONS_COLLECTION:
                raise ConnectionError("store down")
            return await real_get(collection, document_id)

        store.get_document = get_document
        resolver = SubscriptionResolver(store, BillingConfigClient(None), reporter=MagicMock())
        subscription = await resolver.resolve("standard-user", now=NOW)

        assert subscription.plan == PlanKey.STANDARD
        assert subscription.limits == limits_for_plan(PlanKey.STANDARD)

    @pytest.mark.asyncio
    async def test_billing_limits_used(self, store):
        """Test base limits come from the billing client."""
        billing = MagicMock(spec=BillingConfigClient)
        billing.get_plan_limits = AsyncMock(return_value=limits_for_plan(PlanKey.PRO))

        resolver = SubscriptionResolver(store, billing)
        subscription = await resolver.resolve("standard-user", now=NOW)

        billing.get_plan_limits.assert_awaited_once_with(PlanKey.STANDARD)
        assert subscription.limits.props == 1500

    @pytest.mark.asyncio
    async def test_to_dict(self, resolver):
        """Test the JSON rendering."""
        data = (await resolver.resolve("standard-user", now=NOW)).to_dict()
        assert data["plan"] == "standard"
        assert data["role"] == "props_supervisor"
        assert data["active_add_ons"] == ["props_500"]
        assert data["limits"]["props"] == 600
        assert data["current_period_end"].startswith("2024-07-01")
