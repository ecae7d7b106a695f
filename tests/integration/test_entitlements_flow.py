"""
Integration tests for Entitlements service flow.

Drives the HTTP surface end to end over an in-memory document store.
"""

import httpx
import pytest

from service_entitlements.app.main import EntitlementsService
from service_entitlements.app.plans.billing import BillingConfigClient
from service_entitlements.app.store.memory import InMemoryDocumentStore
from service_entitlements.app.subscription import ADDONS_COLLECTION, PROFILE_COLLECTION

USER_ID = "standard-user"
SHOW_ID = "show-1"


class FailingPropsStore(InMemoryDocumentStore):
    """Store whose props collection is unreadable."""

    async def get_documents(self, collection, where):
        if collection == "props":
            raise ConnectionError("props collection unavailable")
        return await super().get_documents(collection, where)


def seed(store, props=99):
    store.put_document(PROFILE_COLLECTION, USER_ID, {
        "email": "sp@example.com",
        "role": "props_supervisor",
        "plan": "standard",
        "subscriptionStatus": "active",
    })
    store.put_document("shows", SHOW_ID, {"ownerId": USER_ID, "teamMembers": ["a"]})
    # spread across shows so per-show quotas stay clear
    for i in range(props):
        store.put_document("props", f"prop-{i}", {"userId": USER_ID, "showId": f"show-{i % 3}"})
    return store


def client_for(service):
    transport = httpx.ASGITransport(app=service.app)
    return httpx.AsyncClient(transport=transport, base_url="http://entitlements")


class TestEntitlementsFlow:
    """Integration tests for Entitlements service flow."""

    @pytest.fixture
    def store(self):
        """Create a seeded in-memory store."""
        return seed(InMemoryDocumentStore())

    @pytest.fixture
    def service(self, store):
        """Create the service over the seeded store."""
        return EntitlementsService(store=store)

    @pytest.mark.asyncio
    async def test_standard_plan_prop_limit(self, service, store):
        """Test a Standard user reaching the prop limit."""
        async with client_for(service) as client:
            response = await client.get("/entitlements/limits/props", params={"user_id": USER_ID})
            data = response.json()
            assert data["within_limit"] is True
            assert data["current_count"] == 99
            assert data["limit"] == 100

            check = await client.post("/entitlements/check", json={"user_id": USER_ID, "action": "create_prop"})
            assert check.json()["allowed"] is True

            store.put_document("props", "prop-99", {"userId": USER_ID, "showId": "show-2"})

            response = await client.get("/entitlements/limits/props", params={"user_id": USER_ID})
            data = response.json()
            assert data["within_limit"] is False
            assert data["current_count"] == 100
            assert data["message"] == (
                "You have reached your plan's props limit of 100. Upgrade to create more props."
            )

            check = await client.post("/entitlements/check", json={"user_id": USER_ID, "action": "create_prop"})
            assert check.json() == {"allowed": False, "reason": data["message"]}

    @pytest.mark.asyncio
    async def test_add_on_raises_limit(self, service, store):
        """Test an active add-on lifts the quota."""
        store.put_document("props", "prop-99", {"userId": USER_ID, "showId": "show-2"})
        store.put_document(ADDONS_COLLECTION, USER_ID, {
            "addOns": [{"addOnId": "props_100", "quantity": 100, "status": "active"}],
        })

        async with client_for(service) as client:
            data = (await client.get("/entitlements/limits/props", params={"user_id": USER_ID})).json()
            summary = (await client.get(f"/entitlements/summary/{USER_ID}")).json()

        assert data["within_limit"] is True
        assert data["limit"] == 200
        assert summary["subscription"]["active_add_ons"] == ["props_100"]
        assert summary["subscription"]["base_limits"]["props"] == 100

    @pytest.mark.asyncio
    async def test_store_failure_fails_open(self):
        """Test an unreadable collection allows the action and is counted."""
        service = EntitlementsService(store=seed(FailingPropsStore()))

        async with client_for(service) as client:
            data = (await client.get("/entitlements/limits/props", params={"user_id": USER_ID})).json()

        assert data == {
            "within_limit": True,
            "current_count": 0,
            "limit": 100,
            "unlimited": False,
            "is_per_show": False,
            "message": None,
        }
        assert service.metrics.sample_value("limit_check_fail_open_total", resource="props") == 1.0

    @pytest.mark.asyncio
    async def test_provider_limits(self, store):
        """Test limits published by the billing provider."""
        def handler(request):
            return httpx.Response(200, json={
                "plans": [{"id": "standard", "limits": {"props": "250", "props_per_show": "120per_show"}}],
            })

        billing = BillingConfigClient(
            "https://billing.example.com/pricing",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        service = EntitlementsService(store=store, billing=billing)

        async with client_for(service) as client:
            data = (await client.get("/entitlements/limits/props", params={"user_id": USER_ID})).json()
            health = (await client.get("/health")).json()

        assert data["limit"] == 250
        assert health["dependencies"]["billing_provider"] == "enabled"

    @pytest.mark.asyncio
    async def test_exempt_user(self, service, store):
        """Test an admin is never limited."""
        store.put_document(PROFILE_COLLECTION, "admin-user", {"email": "admin@example.com", "role": "admin"})
        for i in range(150):
            store.put_document("props", f"admin-prop-{i}", {"userId": "admin-user", "showId": SHOW_ID})

        async with client_for(service) as client:
            data = (await client.get("/entitlements/limits/props", params={"user_id": "admin-user"})).json()
            check = (await client.post("/entitlements/check", json={
                "user_id": "admin-user", "action": "bypass_subscription_limits",
            })).json()

        assert data["within_limit"] is True
        assert data["unlimited"] is True
        assert check["allowed"] is True
