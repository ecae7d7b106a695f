"""
Unit tests for Entitlements main service.
"""

import pytest
from fastapi.testclient import TestClient

from service_entitlements.app.main import EntitlementsService, create_app
from service_entitlements.app.store.memory import InMemoryDocumentStore
from service_entitlements.app.subscription import PROFILE_COLLECTION


def seeded_store():
    store = InMemoryDocumentStore({
        PROFILE_COLLECTION: {
            "ps-user": {
                "email": "ps@example.com",
                "role": "props_supervisor",
                "plan": "standard",
                "subscriptionStatus": "active",
            },
            "viewer-user": {"email": "viewer@example.com", "role": "viewer", "plan": "free"},
            "god-user": {"email": "god@example.com", "role": "god"},
        },
        "shows": {
            "show-1": {"ownerId": "ps-user", "teamMembers": ["a", "b"]},
            "show-2": {"ownerId": "ps-user", "teamMembers": []},
        },
    })
    for i in range(40):
        store.put_document("props", f"prop-1-{i}", {"userId": "ps-user", "showId": "show-1"})
    for i in range(59):
        store.put_document("props", f"prop-2-{i}", {"userId": "ps-user", "showId": "show-2"})
    return store


class TestEntitlementsService:
    """Test cases for EntitlementsService."""

    @pytest.fixture
    def store(self):
        """Create seeded document store."""
        return seeded_store()

    @pytest.fixture
    def entitlements_service(self, store):
        """Create EntitlementsService instance."""
        return EntitlementsService(store=store)

    @pytest.fixture
    def client(self, entitlements_service):
        """Create test client."""
        return TestClient(entitlements_service.app)

    def test_create_app(self):
        """Test app factory with the default in-memory store."""
        app = create_app()
        assert app.title == "Entitlements Service"

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "entitlements"
        assert "limit_checks" in data["capabilities"]

    def test_health_endpoint(self, client):
        """Test health endpoint reports dependencies."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"]["document_store"] == "ok"
        assert data["dependencies"]["billing_provider"] == "disabled"
        assert "redis" not in data["dependencies"]

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint."""
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "entitlement_checks_total" in response.text

    def test_check_allowed(self, client, entitlements_service):
        """Test an allowed action."""
        response = client.post("/entitlements/check", json={
            "user_id": "ps-user",
            "action": "create_prop",
            "show_id": "show-1",
        })

        assert response.status_code == 200
        assert response.json() == {"allowed": True, "reason": None}
        assert entitlements_service.metrics.sample_value(
            "entitlement_checks_total", decision="allow"
        ) == 1.0

    def test_check_account_limit_reached(self, client, store, entitlements_service):
        """Test the account-wide quota denies at the limit."""
        store.put_document("props", "prop-extra", {"userId": "ps-user", "showId": "show-1"})

        response = client.post("/entitlements/check", json={"user_id": "ps-user", "action": "create_prop"})

        data = response.json()
        assert data["allowed"] is False
        assert "limit of 100" in data["reason"]
        assert entitlements_service.metrics.sample_value(
            "entitlement_checks_total", decision="deny"
        ) == 1.0

    def test_check_per_show_limit_reached(self, client):
        """Test the per-show quota denies even with account headroom."""
        response = client.post("/entitlements/check", json={
            "user_id": "ps-user",
            "action": "create_prop",
            "show_id": "show-2",
        })

        data = response.json()
        assert data["allowed"] is False
        assert data["reason"].startswith("This show has reached its props limit of 50")

    def test_check_role_denied(self, client):
        """Test a viewer cannot create props."""
        response = client.post("/entitlements/check", json={"user_id": "viewer-user", "action": "create_prop"})

        data = response.json()
        assert data["allowed"] is False
        assert "create_props" in data["reason"]

    def test_check_archive_quota(self, client, store):
        """Test archiving is denied once the plan's archive quota is used."""
        request = {"user_id": "ps-user", "action": "archive_show"}
        for i in range(4):
            store.put_document("show_archives", f"archive-{i}", {"archivedBy": "ps-user"})

        assert client.post("/entitlements/check", json=request).json()["allowed"] is True

        store.put_document("show_archives", "archive-4", {"archivedBy": "ps-user"})
        data = client.post("/entitlements/check", json=request).json()

        assert data["allowed"] is False
        assert "archived show limit of 5" in data["reason"]

        limit = client.get("/entitlements/limits/archived_shows", params={"user_id": "ps-user"}).json()
        assert limit["current_count"] == 5
        assert limit["within_limit"] is False

    def test_check_unknown_action(self, client):
        """Test unknown actions are denied."""
        response = client.post("/entitlements/check", json={"user_id": "god-user", "action": "launch_rocket"})

        assert response.json() == {"allowed": False, "reason": "Unknown action: launch_rocket"}

    def test_check_request_validation(self, client):
        """Test empty fields are rejected."""
        response = client.post("/entitlements/check", json={"user_id": "", "action": "create_prop"})
        assert response.status_code == 422

    def test_limit_account(self, client):
        """Test account-wide limit check."""
        response = client.get("/entitlements/limits/props", params={"user_id": "ps-user"})

        assert response.status_code == 200
        assert response.json() == {
            "within_limit": True,
            "current_count": 99,
            "limit": 100,
            "unlimited": False,
            "is_per_show": False,
            "message": None,
        }

    def test_limit_per_show(self, client):
        """Test per-show limit check."""
        response = client.get("/entitlements/limits/props", params={"user_id": "ps-user", "show_id": "show-2"})

        data = response.json()
        assert data["within_limit"] is False
        assert data["current_count"] == 59
        assert data["limit"] == 50
        assert data["is_per_show"] is True

    def test_limit_collaborators(self, client):
        """Test collaborator limit reads the show team."""
        response = client.get(
            "/entitlements/limits/collaborators", params={"user_id": "ps-user", "show_id": "show-1"}
        )

        data = response.json()
        assert data["current_count"] == 2
        assert data["limit"] == 15

    def test_limit_exempt(self, client):
        """Test exempt users are unlimited."""
        response = client.get("/entitlements/limits/shows", params={"user_id": "god-user"})

        data = response.json()
        assert data["within_limit"] is True
        assert data["limit"] is None
        assert data["unlimited"] is True

    @pytest.mark.parametrize("path,params", [
        ("/entitlements/limits/spaceships", {"user_id": "ps-user"}),
        ("/entitlements/limits/shows", {"user_id": "ps-user", "show_id": "show-1"}),
        ("/entitlements/limits/collaborators", {"user_id": "ps-user"}),
    ])
    def test_limit_invalid_requests(self, client, path, params):
        """Test unknown resources and unsupported scopes."""
        response = client.get(path, params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_summary(self, client):
        """Test the permission summary."""
        response = client.get("/entitlements/summary/ps-user")

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["is_exempt"] is False
        assert data["role_display_name"] == "Props Supervisor"
        assert data["current_counts"]["props"] == 99
        assert data["current_counts"]["shows"] == 2
        assert data["limits"]["props"]["limit"] == 100
        assert data["subscription"]["plan"] == "standard"

    def test_summary_exempt(self, client):
        """Test exempt summaries hide subscription notifications."""
        data = client.get("/entitlements/summary/god-user").json()

        assert data["is_exempt"] is True
        assert data["should_show_subscription_notifications"] is False
        assert data["limits"]["props"]["unlimited"] is True

    def test_plan(self, client):
        """Test static plan limits."""
        data = client.get("/entitlements/plans/standard").json()

        assert data["plan"] == "standard"
        assert data["limits"]["props"] == 100
        assert data["can_purchase_add_ons"] is True
        assert "props_500" in data["add_ons"]

    def test_unknown_plan_is_free(self, client):
        """Test unknown plans resolve to free."""
        data = client.get("/entitlements/plans/enterprise").json()

        assert data["plan"] == "free"
        assert data["can_purchase_add_ons"] is False
        assert data["add_ons"] == []

    def test_addons(self, client):
        """Test the add-on catalog and its filters."""
        data = client.get("/entitlements/addons").json()
        assert data["total"] == 12

        data = client.get("/entitlements/addons", params={"type": "props"}).json()
        assert data["total"] == 3
        assert {addon["id"] for addon in data["add_ons"]} == {"props_100", "props_500", "props_1000"}

        data = client.get("/entitlements/addons", params={"plan": "free"}).json()
        assert data["total"] == 0

    def test_addons_unknown_type(self, client):
        """Test unknown add-on types are rejected."""
        response = client.get("/entitlements/addons", params={"type": "rockets"})
        assert response.status_code == 400

    def test_data_view(self, client):
        """Test data views are computed then cached."""
        first = client.get("/entitlements/data-view/ps-user").json()
        second = client.get("/entitlements/data-view/ps-user").json()

        assert first["role"] == "props_supervisor"
        assert first["source"] == "default"
        assert second["source"] == "cached"
        assert first["config"] == second["config"]

    def test_data_view_unknown_user(self, client):
        """Test users without a profile get the viewer view."""
        data = client.get("/entitlements/data-view/stranger").json()

        assert data["role"] == "viewer"
        assert "price" in data["config"]["hidden_fields"]

    def test_clear_data_view_cache(self, client):
        """Test clearing the data view cache."""
        client.get("/entitlements/data-view/ps-user")

        response = client.delete("/entitlements/data-view/cache")

        assert response.json()["cleared"] is True
        assert response.json()["size"] == 0
        assert client.get("/entitlements/data-view/ps-user").json()["source"] == "default"

    def test_request_id_echoed(self, client):
        """Test the request id header is returned."""
        response = client.get("/", headers={"x-request-id": "req-42"})
        assert response.headers["x-request-id"] == "req-42"
        assert client.get("/").headers["x-request-id"]

    def test_health_degraded(self, client, store):
        """Test an unhealthy store marks the service degraded."""
        async def unhealthy():
            return False

        store.health_check = unhealthy
        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["dependencies"]["document_store"] == "error"
