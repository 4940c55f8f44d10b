"""Integration tests for order API endpoints."""

import uuid
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from storefront.core.rate_limiter import get_rate_limiter


def order_body(variant_id: uuid.UUID, quantity: int = 1, tip: str = "0") -> dict:
    return {
        "items": [{"variant_id": str(variant_id), "quantity": quantity}],
        "delivery_address": "1 Main St",
        "tip": tip,
    }


class TestCreateOrder:
    """Tests for POST /api/v1/orders endpoint."""

    def test_places_order(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        variant_id = seeder.variant(name="V1", price_cents=1000, stock=5)
        user_id = uuid.uuid4()

        response = client.post(
            "/api/v1/orders",
            json=order_body(variant_id, quantity=2, tip="2.00"),
            headers=auth_headers(user_id),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["user_id"] == str(user_id)
        assert data["subtotal_cents"] == 2000
        assert data["tip_cents"] == 200
        assert data["total_cents"] == 2200
        assert data["items"][0]["variant_name"] == "V1"
        assert seeder.stock(variant_id) == 3

    def test_insufficient_stock_returns_409(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        variant_id = seeder.variant(name="Scarce", stock=1)

        response = client.post(
            "/api/v1/orders", json=order_body(variant_id, quantity=2), headers=auth_headers(uuid.uuid4())
        )

        assert response.status_code == 409
        assert response.json()["error"] == "insufficient_stock"
        assert seeder.count_orders() == 0

    def test_unknown_variant_returns_404(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        response = client.post(
            "/api/v1/orders", json=order_body(uuid.uuid4()), headers=auth_headers(uuid.uuid4())
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_non_customer_forbidden(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        variant_id = seeder.variant(stock=5)

        response = client.post(
            "/api/v1/orders", json=order_body(variant_id), headers=auth_headers(uuid.uuid4(), "driver")
        )

        assert response.status_code == 403
        assert response.json()["error"] == "access_denied"

    def test_requires_authentication(self, client: TestClient, seeder) -> None:
        response = client.post("/api/v1/orders", json=order_body(uuid.uuid4()))

        assert response.status_code == 401

    @pytest.mark.parametrize(
        "body",
        [
            {"items": [], "delivery_address": "1 Main St"},
            {"items": [{"variant_id": str(uuid.uuid4()), "quantity": 0}], "delivery_address": "1 Main St"},
            {"items": [{"variant_id": str(uuid.uuid4()), "quantity": 1}], "delivery_address": "1 Main St", "tip": "-1"},
        ],
    )
    def test_invalid_body_returns_422(
        self, client: TestClient, seeder, auth_headers: Callable, body: dict
    ) -> None:
        response = client.post("/api/v1/orders", json=body, headers=auth_headers(uuid.uuid4()))

        assert response.status_code == 422

    def test_paused_returns_503(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        variant_id = seeder.variant(stock=5)
        client.post(
            "/api/v1/admin/features/accept-orders",
            json={"enabled": False},
            headers=auth_headers(uuid.uuid4(), "admin"),
        )

        response = client.post(
            "/api/v1/orders", json=order_body(variant_id), headers=auth_headers(uuid.uuid4())
        )

        assert response.status_code == 503
        assert response.json()["error"] == "orders_paused"
        assert seeder.stock(variant_id) == 5

    def test_rate_limited(
        self, client: TestClient, seeder, auth_headers: Callable, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        variant_id = seeder.variant(stock=10)
        monkeypatch.setattr(get_rate_limiter().config, "max_requests", 2)
        headers = auth_headers(uuid.uuid4())

        statuses = [
            client.post("/api/v1/orders", json=order_body(variant_id), headers=headers).status_code
            for _ in range(3)
        ]

        assert statuses == [201, 201, 429]
        assert seeder.stock(variant_id) == 8


class TestReadOrders:
    """Tests for GET /api/v1/orders and /api/v1/orders/{id}."""

    def test_customer_lists_own_orders(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        user_id = uuid.uuid4()
        mine = seeder.order(user_id)
        seeder.order(uuid.uuid4())

        response = client.get("/api/v1/orders", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert [order["id"] for order in response.json()["items"]] == [str(mine)]

    def test_admin_filters_by_status(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        seeder.order(uuid.uuid4(), status="pending")
        ready = seeder.order(uuid.uuid4(), status="ready")

        response = client.get("/api/v1/orders?status=ready", headers=auth_headers(uuid.uuid4(), "admin"))

        assert [order["id"] for order in response.json()["items"]] == [str(ready)]

    def test_get_own_order(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        user_id = uuid.uuid4()
        variant_id = seeder.variant(name="Latte", stock=0)
        order_id = seeder.order(user_id, items=[(variant_id, 1, 500)])

        response = client.get(f"/api/v1/orders/{order_id}", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json()["items"][0]["variant_name"] == "Latte"

    def test_get_other_customers_order_forbidden(
        self, client: TestClient, seeder, auth_headers: Callable
    ) -> None:
        order_id = seeder.order(uuid.uuid4())

        response = client.get(f"/api/v1/orders/{order_id}", headers=auth_headers(uuid.uuid4()))

        assert response.status_code == 403

    def test_get_missing_order(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        response = client.get(f"/api/v1/orders/{uuid.uuid4()}", headers=auth_headers(uuid.uuid4(), "admin"))

        assert response.status_code == 404


class TestUpdateStatus:
    """Tests for PATCH /api/v1/orders/{id}/status."""

    def test_admin_advances_order(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        order_id = seeder.order(uuid.uuid4(), status="processing")

        response = client.patch(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "ready"},
            headers=auth_headers(uuid.uuid4(), "admin"),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_invalid_transition_returns_409(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        order_id = seeder.order(uuid.uuid4(), status="pending")

        response = client.patch(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "delivered"},
            headers=auth_headers(uuid.uuid4(), "admin"),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"
        assert seeder.fetch_order(order_id)["status"] == "pending"

    def test_driver_moving_to_delivering_is_assigned(
        self, client: TestClient, seeder, auth_headers: Callable
    ) -> None:
        driver = seeder.driver()
        order_id = seeder.order(uuid.uuid4(), status="ready")

        response = client.patch(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "delivering"},
            headers=auth_headers(driver["user_id"], "driver"),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "delivering"
        assert response.json()["driver_id"] == str(driver["id"])

    def test_off_duty_driver_cannot_take_order_by_status(
        self, client: TestClient, seeder, auth_headers: Callable
    ) -> None:
        driver = seeder.driver(available=False)
        order_id = seeder.order(uuid.uuid4(), status="ready")

        response = client.patch(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "delivering"},
            headers=auth_headers(driver["user_id"], "driver"),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "driver_unavailable"
        stored = seeder.fetch_order(order_id)
        assert stored["status"] == "ready"
        assert stored["driver_id"] is None

    def test_driver_losing_race_by_status_is_already_claimed(
        self, client: TestClient, seeder, auth_headers: Callable
    ) -> None:
        winner = seeder.driver()
        loser = seeder.driver()
        order_id = seeder.order(uuid.uuid4(), status="ready")

        first = client.post(
            f"/api/v1/driver/orders/{order_id}/accept", headers=auth_headers(winner["user_id"], "driver")
        )
        second = client.patch(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "delivering"},
            headers=auth_headers(loser["user_id"], "driver"),
        )

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()["error"] == "already_claimed"
        assert seeder.fetch_order(order_id)["driver_id"] == winner["id"]

    def test_customer_forbidden(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        user_id = uuid.uuid4()
        order_id = seeder.order(user_id, status="processing")

        response = client.patch(
            f"/api/v1/orders/{order_id}/status", json={"status": "ready"}, headers=auth_headers(user_id)
        )

        assert response.status_code == 403

    def test_unknown_status_returns_422(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        order_id = seeder.order(uuid.uuid4())

        response = client.patch(
            f"/api/v1/orders/{order_id}/status",
            json={"status": "teleported"},
            headers=auth_headers(uuid.uuid4(), "admin"),
        )

        assert response.status_code == 422


class TestCancelOrder:
    """Tests for POST /api/v1/orders/{id}/cancel."""

    def test_owner_cancels_and_stock_returns(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        user_id = uuid.uuid4()
        variant_id = seeder.variant(stock=5)
        created = client.post(
            "/api/v1/orders", json=order_body(variant_id, quantity=2), headers=auth_headers(user_id)
        ).json()
        assert seeder.stock(variant_id) == 3

        response = client.post(f"/api/v1/orders/{created['id']}/cancel", headers=auth_headers(user_id))

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert seeder.stock(variant_id) == 5

    def test_owner_cannot_cancel_delivering(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        user_id = uuid.uuid4()
        driver = seeder.driver()
        order_id = seeder.order(user_id, status="delivering", driver_id=driver["id"])

        response = client.post(f"/api/v1/orders/{order_id}/cancel", headers=auth_headers(user_id))

        assert response.status_code == 409
