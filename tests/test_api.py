"""
Route-level tests against the JSON API.
"""

from unittest.mock import patch

import pytest

from saasbase.core.repositories import PaymentStatus
from saasbase.core.subscriptions import new_subscription


class TestAuthentication:

    def test_protected_route_without_credentials(self, client):
        response = client.get("/api/v1/credits/balance")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_invalid_bearer_token(self, client):
        response = client.get("/api/v1/credits/balance", headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401

    def test_bearer_token(self, client, alice):
        response = client.get("/api/v1/credits/balance", headers=alice)
        assert response.status_code == 200
        assert response.json() == {"success": True, "balance": 0}

    def test_callback_sets_session_cookie(self, client, identity):
        token = identity.add_user("alice")
        response = client.get(
            "/api/v1/auth/callback",
            params={"code": token, "next": "/en/pricing"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == "/en/pricing"
        assert response.cookies.get("session") == "session-alice"

        profile = client.get("/api/v1/user")
        assert profile.status_code == 200
        assert profile.json()["id"] == "alice"
        assert profile.json()["email"] == "alice@example.com"

    def test_callback_ignores_offsite_next(self, client, identity):
        token = identity.add_user("alice")
        response = client.get(
            "/api/v1/auth/callback",
            params={"code": token, "next": "https://evil.example.com/"},
            follow_redirects=False,
        )
        assert response.headers["location"] == "/"

    def test_callback_with_bad_code(self, client):
        response = client.get("/api/v1/auth/callback", params={"code": "nope"}, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/auth-code-error"

    def test_logout_clears_cookie(self, client, identity):
        token = identity.add_user("alice")
        client.get("/api/v1/auth/callback", params={"code": token}, follow_redirects=False)
        response = client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert client.get("/api/v1/user").status_code == 401

    def test_web3_nonce(self, client):
        nonce = client.get("/api/v1/auth/web3/nonce").json()["nonce"]
        assert len(nonce) == 96
        assert nonce.isalnum()


class TestDirectOrderRoutes:

    def test_free_plan_order_is_rejected(self, client, alice, paypal):
        response = client.post("/api/v1/paypal/create-order", json={"planId": "free"}, headers=alice)
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "does not require payment" in response.json()["error"]
        assert paypal.created == []

    def test_unknown_plan_order(self, client, alice, paypal):
        response = client.post("/api/v1/paypal/create-order", json={"planId": "platinum"}, headers=alice)
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Plan not found"}
        assert paypal.created == []

    def test_plan_order_returns_provider_order(self, client, alice):
        response = client.post("/api/v1/paypal/create-order", json={"planId": "pro"}, headers=alice)
        assert response.status_code == 200
        assert response.json()["id"] == "paypal-1"

    def test_missing_plan_id_is_validation_error(self, client, alice):
        response = client.post("/api/v1/paypal/create-order", json={}, headers=alice)
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_credit_capture(self, client, alice):
        response = client.post(
            "/api/v1/credits/capture-order",
            json={"orderId": "PP-1", "productId": "credits-100"},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "balance": 100}

    def test_plan_capture(self, client, alice):
        response = client.post(
            "/api/v1/paypal/capture-order",
            json={"orderId": "PP-2", "planId": "pro"},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["subscription"]["plan_id"] == "pro"


class TestTrackedOrderRoutes:

    def test_foreign_order_is_not_found(self, client, bob, orders, make_order):
        orders.create(make_order("abc123", user_id="alice"))
        response = client.get("/api/v1/payments/orders/abc123", headers=bob)
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Order not found"}

    def test_own_order(self, client, alice, orders, make_order):
        orders.create(make_order("abc123"))
        response = client.get("/api/v1/payments/orders/abc123", headers=alice)
        assert response.status_code == 200
        assert response.json()["data"]["id"] == "abc123"

    def test_order_id_format_is_validated(self, client, alice):
        response = client.get("/api/v1/payments/orders/bad$id", headers=alice)
        assert response.status_code == 400

    def test_create_order(self, client, alice, orders):
        response = client.post(
            "/api/v1/payments/create-order",
            json={"type": "credits", "productId": "credits-100"},
            headers=alice,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == "pending"
        assert body["providerOrder"]["id"] == "paypal-1"
        assert body["providerOrder"]["redirectUrl"] == "https://pay.example.com/paypal-1"
        assert orders.get(body["order"]["id"]).user_id == "alice"

    def test_checkout_ignores_client_prices(self, client, alice, orders):
        response = client.post(
            "/api/v1/payments/checkout",
            json={"items": [{"id": "credits-100", "type": "credits", "quantity": 3, "price": 1}]},
            headers=alice,
        )
        assert response.status_code == 200
        order = orders.get(response.json()["orderId"])
        assert order.amount_cents == 1500

    def test_checkout_empty_cart(self, client, alice):
        response = client.post("/api/v1/payments/checkout", json={"items": []}, headers=alice)
        assert response.status_code == 400
        assert response.json()["error"] == "Cart is empty"

    def test_capture_route(self, client, alice, orders, accounts, make_order):
        orders.create(make_order())
        response = client.post("/api/v1/payments/orders/order-1/capture", headers=alice)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"
        assert accounts.get_balance("alice") == 100

        again = client.post("/api/v1/payments/capture-order", json={"orderId": "order-1"}, headers=alice)
        assert again.status_code == 200
        assert accounts.get_balance("alice") == 100

    def test_list_orders(self, client, alice, orders, make_order):
        orders.create(make_order("one"))
        orders.create(make_order("two", status=PaymentStatus.COMPLETED))
        response = client.get("/api/v1/payments/orders", params={"limit": 1}, headers=alice)
        body = response.json()
        assert response.status_code == 200
        assert len(body["data"]) == 1
        assert body["pagination"] == {"limit": 1, "offset": 0, "count": 1}

    def test_list_orders_rejects_large_page(self, client, alice):
        response = client.get("/api/v1/payments/orders", params={"limit": 500}, headers=alice)
        assert response.status_code == 400

    def test_currencies(self, client):
        body = client.get("/api/v1/payments/currencies").json()
        assert body["default"] == "EVM_BSC_USDT_BEP20"
        assert "EVM_ETH_USDT_ERC20" in {c["value"] for c in body["data"]}


class TestIdempotency:

    def test_repeated_key_replays_response(self, client, alice, orders, paypal):
        headers = {**alice, "Idempotency-Key": "checkout-1"}
        body = {"type": "credits", "productId": "credits-100"}

        first = client.post("/api/v1/payments/create-order", json=body, headers=headers)
        second = client.post("/api/v1/payments/create-order", json=body, headers=headers)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()
        assert len(orders.orders) == 1
        assert len(paypal.created) == 1

    def test_reused_key_with_other_body(self, client, alice):
        headers = {**alice, "Idempotency-Key": "checkout-2"}
        client.post("/api/v1/payments/create-order", json={"type": "credits", "productId": "credits-100"}, headers=headers)
        response = client.post(
            "/api/v1/payments/create-order",
            json={"type": "credits", "productId": "credits-500"},
            headers=headers,
        )
        assert response.status_code == 400
        assert "different request" in response.json()["error"]

    def test_failed_request_can_be_retried(self, client, alice, paypal):
        headers = {**alice, "Idempotency-Key": "plan-1"}
        assert client.post("/api/v1/paypal/create-order", json={"planId": "free"}, headers=headers).status_code == 400
        paypal.created.clear()
        response = client.post("/api/v1/paypal/create-order", json={"planId": "free"}, headers=headers)
        assert response.status_code == 400
        assert "does not require payment" in response.json()["error"]


class TestSubscriptionRoutes:

    def test_public_plans(self, client):
        body = client.get("/api/v1/plans").json()
        assert [p["id"] for p in body["data"]] == ["free", "pro"]

    def test_public_credit_products(self, client):
        body = client.get("/api/v1/credits/products").json()
        assert [p["id"] for p in body["data"]] == ["credits-100", "credits-500"]

    def test_subscribe_free(self, client, alice):
        response = client.post("/api/v1/subscription/subscribe", json={"planId": "free"}, headers=alice)
        assert response.status_code == 200
        assert response.json()["subscription"]["plan_id"] == "free"
        current = client.get("/api/v1/subscription", headers=alice).json()
        assert current["subscription"]["plan"]["id"] == "free"

    def test_subscribe_paid_plan_is_rejected(self, client, alice):
        response = client.post("/api/v1/subscription/subscribe", json={"planId": "pro"}, headers=alice)
        assert response.status_code == 400

    def test_subscribe_requires_plan_id(self, client, alice):
        response = client.post("/api/v1/subscription/subscribe", json={}, headers=alice)
        assert response.status_code == 400


class TestDemoRoute:

    def test_plan_without_api_access(self, client, alice, accounts):
        accounts.replace_subscription(new_subscription("alice", "free"))
        response = client.post("/api/v1/demo/request", json={}, headers=alice)
        assert response.status_code == 403
        assert "does not have API access" in response.json()["error"]

    def test_request_counts_usage(self, client, alice, accounts):
        accounts.replace_subscription(new_subscription("alice", "pro"))
        response = client.post("/api/v1/demo/request", json={"prompt": "hello"}, headers=alice)
        assert response.status_code == 200
        body = response.json()
        assert body["currentUsage"] == 1
        assert body["limit"] == 1000
        assert accounts.get_usage("alice", "api_request") == 1

    def test_quota_exhausted(self, client, alice, accounts):
        accounts.replace_subscription(new_subscription("alice", "pro"))
        for _ in range(1000):
            accounts.increment_usage("alice", "api_request")
        response = client.post("/api/v1/demo/request", json={}, headers=alice)
        assert response.status_code == 429

    def test_quota_exhausted_with_credits(self, client, alice, accounts):
        accounts.replace_subscription(new_subscription("alice", "pro"))
        accounts.add_credits("alice", 5)
        for _ in range(1000):
            accounts.increment_usage("alice", "api_request")
        response = client.post("/api/v1/demo/request", json={}, headers=alice)
        assert response.status_code == 200
        assert response.json()["usingCredits"] is True
        assert accounts.get_balance("alice") == 4


class TestCronRoute:

    def test_requires_secret(self, client):
        with patch("saasbase.routers.cron.CRON_SECRET", "s3cret"):
            response = client.get("/api/v1/cron_job/sync-pending", headers={"Authorization": "Bearer wrong"})
        assert response.status_code == 401

    def test_empty_secret_disables_job(self, client):
        with patch("saasbase.routers.cron.CRON_SECRET", ""):
            response = client.get("/api/v1/cron_job/sync-pending", headers={"Authorization": "Bearer "})
        assert response.status_code == 401

    def test_sync_logs_run(self, client, orders, accounts, firestore_db, make_order):
        orders.create(make_order())
        with patch("saasbase.routers.cron.CRON_SECRET", "s3cret"):
            response = client.get("/api/v1/cron_job/sync-pending", headers={"Authorization": "Bearer s3cret"})

        assert response.status_code == 200
        assert response.json()["processed"] == 1
        assert accounts.get_balance("alice") == 100
        statuses = [entry["status"] for entry in firestore_db.collection("cron_job_logs").docs.values()]
        assert statuses == ["started", "success"]


class TestDocsAndHealth:

    def test_openapi_document(self, client):
        schema = client.get("/api/v1/docs").json()
        assert "BearerAuth" in schema["components"]["securitySchemes"]
        assert "/api/v1/payments/orders/{order_id}" in schema["paths"]
        assert "/api/v1/admin/plans/{plan_id}" in schema["paths"]
        assert "/health" not in schema["paths"]
        assert all(path.startswith("/api/") for path in schema["paths"])

    def test_builtin_docs_are_disabled(self, client):
        assert client.get("/openapi.json").status_code == 404

    @pytest.mark.parametrize("path", ["/health", "/healthz"])
    def test_health(self, client, path):
        body = client.get(path).json()
        assert body["status"] == "healthy"

    def test_ready(self, client):
        assert client.get("/ready").json() == {"status": "ready"}
