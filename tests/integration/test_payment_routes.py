"""Integration tests for payment API endpoints."""

import uuid
from collections.abc import Callable
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient


def fake_intent(intent_id: str, amount: int) -> MagicMock:
    intent = MagicMock()
    intent.id = intent_id
    intent.client_secret = f"{intent_id}_secret"
    intent.amount = amount
    intent.currency = "usd"
    return intent


class TestPaymentConfig:
    """Tests for GET /api/v1/payments/config."""

    def test_returns_publishable_key(self, client: TestClient) -> None:
        response = client.get("/api/v1/payments/config")

        assert response.status_code == 200
        assert response.json() == {"enabled": True, "publishable_key": "pk_test_stripe_publishable_key"}


class TestCreatePaymentIntent:
    """Tests for POST /api/v1/payments/intents."""

    @patch("storefront.services.payment_service.get_stripe")
    def test_creates_intent(
        self, mock_get_stripe: MagicMock, client: TestClient, seeder, auth_headers: Callable
    ) -> None:
        user_id = uuid.uuid4()
        order_id = seeder.order(user_id, tip_cents=2200)
        mock_get_stripe.return_value.PaymentIntent.create.return_value = fake_intent("pi_route", 2200)

        response = client.post(
            "/api/v1/payments/intents",
            json={"order_id": str(order_id), "amount_cents": 2200},
            headers=auth_headers(user_id),
        )

        assert response.status_code == 201
        assert response.json() == {
            "intent_id": "pi_route",
            "client_secret": "pi_route_secret",
            "amount_cents": 2200,
            "currency": "usd",
        }
        assert seeder.fetch_order(order_id)["payment_intent_id"] == "pi_route"

    @patch("storefront.services.payment_service.get_stripe")
    def test_amount_mismatch_returns_400(
        self, mock_get_stripe: MagicMock, client: TestClient, seeder, auth_headers: Callable
    ) -> None:
        user_id = uuid.uuid4()
        order_id = seeder.order(user_id, tip_cents=2200)

        response = client.post(
            "/api/v1/payments/intents",
            json={"order_id": str(order_id), "amount_cents": 100},
            headers=auth_headers(user_id),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "amount_mismatch"
        mock_get_stripe.return_value.PaymentIntent.create.assert_not_called()

    def test_drivers_cannot_pay(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        order_id = seeder.order(uuid.uuid4(), tip_cents=2200)

        response = client.post(
            "/api/v1/payments/intents",
            json={"order_id": str(order_id)},
            headers=auth_headers(uuid.uuid4(), "driver"),
        )

        assert response.status_code == 403

    def test_not_pending_returns_409(self, client: TestClient, seeder, auth_headers: Callable) -> None:
        user_id = uuid.uuid4()
        order_id = seeder.order(user_id, status="delivered", tip_cents=2200)

        response = client.post(
            "/api/v1/payments/intents", json={"order_id": str(order_id)}, headers=auth_headers(user_id)
        )

        assert response.status_code == 409
