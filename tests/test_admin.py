"""
Back-office routes: admin claim checks, catalog maintenance and manual corrections.
"""

from unittest.mock import patch

import pytest

from saasbase.core.catalog import CatalogStatus
from saasbase.core.repositories import PaymentStatus, PaymentType
from saasbase.core.subscriptions import new_subscription

ADMIN_ROUTES = [
    ("get", "/api/v1/admin/plans"),
    ("post", "/api/v1/admin/plans"),
    ("put", "/api/v1/admin/plans/pro"),
    ("get", "/api/v1/admin/credit-products"),
    ("get", "/api/v1/admin/orders"),
    ("put", "/api/v1/admin/orders/order-1"),
    ("get", "/api/v1/admin/subscriptions"),
    ("put", "/api/v1/admin/subscriptions/alice"),
    ("get", "/api/v1/admin/user-credits"),
    ("put", "/api/v1/admin/user-credits/alice"),
    ("get", "/api/v1/admin/logs"),
]


class TestAdminAccess:

    @pytest.mark.parametrize("method,path", ADMIN_ROUTES)
    def test_requires_session(self, client, method, path):
        response = client.request(method, path, json={})
        assert response.status_code == 401

    @pytest.mark.parametrize("method,path", ADMIN_ROUTES)
    def test_requires_admin_claim(self, client, alice, method, path):
        response = client.request(method, path, json={}, headers=alice)
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Not authorized"}

    def test_claim_must_be_true(self, client, identity):
        token = identity.add_user("mallory", admin="yes")
        response = client.get("/api/v1/admin/plans", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403

    def test_admin_claim(self, client, admin):
        response = client.get("/api/v1/admin/plans", headers=admin)
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestAdminPlans:

    def test_list_includes_inactive(self, client, admin, catalog):
        catalog.save(catalog.get_plan("pro").model_copy(update={"status": CatalogStatus.INACTIVE}))
        data = client.get("/api/v1/admin/plans", headers=admin).json()["data"]
        assert [(p["id"], p["status"]) for p in data] == [("free", "active"), ("pro", "inactive")]

    def test_create(self, client, admin, catalog):
        response = client.post("/api/v1/admin/plans", headers=admin, json={
            "id": "team",
            "name": "Team",
            "price_cents": 4999,
            "tier": "pro",
            "features": {"api_access": True},
            "quotas": {"daily_requests": 5000},
            "sort_order": 2,
        })

        assert response.status_code == 201
        assert response.json()["data"]["id"] == "team"
        plan = catalog.get_plan("team")
        assert plan.amount == "49.99"
        assert plan.get_quota("daily_requests") == 5000

    def test_create_duplicate(self, client, admin):
        response = client.post("/api/v1/admin/plans", headers=admin, json={"id": "pro", "name": "Pro", "price_cents": 1})
        assert response.status_code == 400
        assert response.json()["error"] == "Plan already exists"

    def test_create_invalid_id(self, client, admin):
        response = client.post("/api/v1/admin/plans", headers=admin, json={
            "id": "team plan", "name": "Team", "price_cents": 4999,
        })
        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["field"] == "id"

    def test_negative_price(self, client, admin):
        response = client.post("/api/v1/admin/plans", headers=admin, json={"id": "team", "name": "Team", "price_cents": -1})
        assert response.status_code == 400

    def test_get(self, client, admin):
        assert client.get("/api/v1/admin/plans/PRO", headers=admin).json()["data"]["price_cents"] == 1999
        missing = client.get("/api/v1/admin/plans/enterprise", headers=admin)
        assert missing.status_code == 404
        assert missing.json()["error"] == "Plan not found"

    def test_partial_update(self, client, admin, catalog):
        response = client.put("/api/v1/admin/plans/pro", headers=admin, json={"price_cents": 2499})

        assert response.status_code == 200
        plan = catalog.get_plan("pro")
        assert plan.price_cents == 2499
        assert plan.name == "Pro"
        assert plan.has_feature("api_access")

    def test_archive_hides_plan_from_public_catalog(self, client, admin, catalog):
        client.put("/api/v1/admin/plans/pro", headers=admin, json={"status": "archived"})

        assert catalog.find_plan("pro") is None
        assert catalog.find_any_plan("pro").status == CatalogStatus.ARCHIVED
        public = client.get("/api/v1/plans").json()["data"]
        assert [p["id"] for p in public] == ["free"]

    def test_update_missing(self, client, admin):
        response = client.put("/api/v1/admin/plans/enterprise", headers=admin, json={"name": "Enterprise"})
        assert response.status_code == 404


class TestAdminCreditProducts:

    def test_list(self, client, admin):
        data = client.get("/api/v1/admin/credit-products", headers=admin).json()["data"]
        assert [p["id"] for p in data] == ["credits-100", "credits-500"]

    def test_create_and_get(self, client, admin, catalog):
        response = client.post("/api/v1/admin/credit-products", headers=admin, json={
            "id": "credits-1000", "name": "1000 Credits", "price_cents": 3500, "credits_amount": 1000,
        })
        assert response.status_code == 201
        assert catalog.get_credit_product("credits-1000").credits_amount == 1000

        fetched = client.get("/api/v1/admin/credit-products/credits-1000", headers=admin).json()["data"]
        assert fetched["price_cents"] == 3500

    def test_zero_credits_rejected(self, client, admin):
        response = client.post("/api/v1/admin/credit-products", headers=admin, json={
            "id": "credits-0", "name": "Nothing", "price_cents": 100, "credits_amount": 0,
        })
        assert response.status_code == 400

    def test_update(self, client, admin, catalog):
        response = client.put(
            "/api/v1/admin/credit-products/credits-100", headers=admin, json={"credits_amount": 120},
        )
        assert response.status_code == 200
        product = catalog.get_credit_product("credits-100")
        assert product.credits_amount == 120
        assert product.price_cents == 500

    def test_missing(self, client, admin):
        response = client.get("/api/v1/admin/credit-products/credits-1", headers=admin)
        assert response.status_code == 404
        assert response.json()["error"] == "Product not found"


class TestAdminOrders:

    @pytest.fixture
    def stored(self, orders, make_order):
        orders.create(make_order("order-1"))
        orders.create(make_order("order-2", user_id="bob", payment_type=PaymentType.SUBSCRIPTION, product_id="pro"))
        orders.create(make_order("order-3", status=PaymentStatus.COMPLETED))

    def test_list_all_users(self, client, admin, stored):
        body = client.get("/api/v1/admin/orders", headers=admin).json()
        assert {o["id"] for o in body["data"]} == {"order-1", "order-2", "order-3"}
        assert body["pagination"] == {"limit": 20, "offset": 0, "total": 3}

    def test_filters(self, client, admin, stored):
        pending = client.get("/api/v1/admin/orders", params={"status": "pending"}, headers=admin).json()
        assert {o["id"] for o in pending["data"]} == {"order-1", "order-2"}
        assert pending["pagination"]["total"] == 2

        alice_credits = client.get(
            "/api/v1/admin/orders", params={"user_id": "alice", "type": "credits", "limit": 1}, headers=admin,
        ).json()
        assert len(alice_credits["data"]) == 1
        assert alice_credits["pagination"] == {"limit": 1, "offset": 0, "total": 2}

    @pytest.mark.parametrize("params", [{"limit": 101}, {"limit": 0}, {"offset": -1}, {"status": "lost"}])
    def test_invalid_query(self, client, admin, params):
        response = client.get("/api/v1/admin/orders", params=params, headers=admin)
        assert response.status_code == 400

    def test_get(self, client, admin, stored):
        assert client.get("/api/v1/admin/orders/order-2", headers=admin).json()["data"]["user_id"] == "bob"
        assert client.get("/api/v1/admin/orders/nope", headers=admin).status_code == 404

    def test_force_completed_grants_nothing(self, client, admin, stored, orders, accounts):
        response = client.put("/api/v1/admin/orders/order-1", headers=admin, json={"status": "completed"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["completed_at"] is not None
        assert orders.get("order-1").status == PaymentStatus.COMPLETED
        assert accounts.get_balance("alice") == 0

    def test_cancel(self, client, admin, stored, orders):
        response = client.put("/api/v1/admin/orders/order-2", headers=admin, json={"status": "cancelled"})
        assert response.status_code == 200
        assert orders.get("order-2").status == PaymentStatus.CANCELLED
        assert orders.get("order-2").completed_at is None

    def test_update_missing(self, client, admin):
        response = client.put("/api/v1/admin/orders/nope", headers=admin, json={"status": "failed"})
        assert response.status_code == 404


class TestAdminAccounts:

    def test_update_subscription(self, client, admin, accounts):
        accounts.replace_subscription(new_subscription("alice", "free"))

        response = client.put("/api/v1/admin/subscriptions/alice", headers=admin, json={
            "plan_id": "PRO", "status": "past_due", "current_period_end": "2030-01-01T00:00:00Z",
        })

        assert response.status_code == 200
        stored = accounts.get_subscription("alice")
        assert (stored.plan_id, stored.status) == ("pro", "past_due")
        assert stored.current_period_end.year == 2030

    def test_subscription_to_unknown_plan(self, client, admin, accounts):
        accounts.replace_subscription(new_subscription("alice", "free"))
        response = client.put("/api/v1/admin/subscriptions/alice", headers=admin, json={"plan_id": "enterprise"})
        assert response.status_code == 404
        assert accounts.get_subscription("alice").plan_id == "free"

    def test_subscription_invalid_status(self, client, admin, accounts):
        accounts.replace_subscription(new_subscription("alice", "free"))
        response = client.put("/api/v1/admin/subscriptions/alice", headers=admin, json={"status": "paused"})
        assert response.status_code == 400

    def test_missing_subscription(self, client, admin):
        response = client.put("/api/v1/admin/subscriptions/nobody", headers=admin, json={"status": "cancelled"})
        assert response.status_code == 404
        assert response.json()["error"] == "Subscription not found"

    def test_list_subscriptions(self, client, admin, accounts):
        accounts.replace_subscription(new_subscription("alice", "pro"))
        accounts.replace_subscription(new_subscription("bob", "free"))
        body = client.get("/api/v1/admin/subscriptions", params={"limit": 1}, headers=admin).json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {"limit": 1, "offset": 0}

    def test_set_balance(self, client, admin, accounts):
        accounts.add_credits("alice", 10)
        response = client.put("/api/v1/admin/user-credits/alice", headers=admin, json={"balance": 42})
        assert response.status_code == 200
        assert response.json()["data"]["balance"] == 42
        assert accounts.get_balance("alice") == 42

    def test_negative_balance(self, client, admin, accounts):
        response = client.put("/api/v1/admin/user-credits/alice", headers=admin, json={"balance": -1})
        assert response.status_code == 400
        assert accounts.get_balance("alice") == 0

    def test_list_credits(self, client, admin, accounts):
        accounts.add_credits("alice", 10)
        accounts.add_credits("bob", 5)

        everyone = client.get("/api/v1/admin/user-credits", headers=admin).json()["data"]
        assert {(b["user_id"], b["balance"]) for b in everyone} == {("alice", 10), ("bob", 5)}

        one = client.get("/api/v1/admin/user-credits", params={"user_id": "bob"}, headers=admin).json()["data"]
        assert [b["user_id"] for b in one] == ["bob"]


class TestAdminLogs:

    def test_lists_cron_runs(self, client, admin, orders, make_order):
        orders.create(make_order())
        with patch("saasbase.routers.cron.CRON_SECRET", "s3cret"):
            client.get("/api/v1/cron_job/sync-pending", headers={"Authorization": "Bearer s3cret"})

        body = client.get("/api/v1/admin/logs", params={"job_name": "sync-pending-orders"}, headers=admin).json()
        assert {entry["status"] for entry in body["data"]} == {"started", "success"}
        assert body["pagination"] == {"limit": 50, "offset": 0}

        failed = client.get("/api/v1/admin/logs", params={"status": "failed"}, headers=admin).json()
        assert failed["data"] == []

    def test_limit_bound(self, client, admin):
        assert client.get("/api/v1/admin/logs", params={"limit": 201}, headers=admin).status_code == 400
