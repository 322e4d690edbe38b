"""HTTP surface tests (FastAPI TestClient against in-memory collaborators)."""

from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import valid_address
from storefront import main
from storefront.checkout.session import CheckoutSessionRegistry
from storefront.services.auth import HttpAuthService

LINES = [
    {"id": "a", "quantity": 2, "price": 10, "menu_item_id": "dish-a", "name": "Dish a"},
    {"id": "b", "quantity": 1, "price": "20.00", "menu_item_id": "dish-b", "name": "Dish b"},
]


@pytest.fixture
def registry(services):
    return CheckoutSessionRegistry(services, new_guest_session_id=lambda: "guest-api")


@pytest.fixture
def client(services, registry, monkeypatch):
    dependency = main.get_session_registry
    monkeypatch.setattr(main, "get_checkout_services", lambda: services)
    monkeypatch.setattr(main, "get_session_registry", lambda: registry)
    main.app.dependency_overrides[dependency] = lambda: registry
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


def open_session(client) -> str:
    response = client.post("/api/checkout/sessions", json={"lines": LINES})
    assert response.status_code == 201
    return response.json()["session_id"]


def submit(client, session_id, **overrides):
    body = {"address": valid_address().model_dump(), "guest_email": "jane@example.com"}
    body.update(overrides)
    return client.post(f"/api/checkout/sessions/{session_id}/submit", json=body)


class TestStatelessHelpers:

    def test_root(self, client):
        assert client.get("/").json()["health"] == "/health"

    def test_quote(self, client):
        response = client.post("/api/checkout/quote", json={"lines": LINES})
        assert response.status_code == 200
        assert response.json() == {
            "total_items_count": 3,
            "subtotal": 40.0,
            "shipping": 5.0,
            "tax": 3.96,
            "tax_rate_percent": 8.8,
            "discount_amount": 0.0,
            "grand_total": 48.96,
        }

    def test_quote_empty_cart(self, client):
        body = client.post("/api/checkout/quote", json={"lines": []}).json()
        assert body["grand_total"] == 5.0
        assert body["tax"] == 0.0

    def test_validate_address(self, client):
        response = client.post(
            "/api/checkout/address/validate",
            json={"address": {"full_name": "Jane Doe"}, "require_phone": True},
        )
        body = response.json()
        assert body["valid"] is False
        assert "Street Address" in body["missing"]
        assert "Phone Number" in body["missing"]

        ok = client.post("/api/checkout/address/validate", json={"address": valid_address().model_dump()})
        assert ok.json() == {"valid": True, "missing": [], "errors": []}


class TestCheckoutSessions:

    def test_open_and_inspect(self, client):
        session_id = open_session(client)

        body = client.get(f"/api/checkout/sessions/{session_id}").json()

        assert body["state"] == "idle"
        assert body["guest_session_id"] == "guest-api"
        assert body["is_authenticated"] is False
        assert body["pricing"]["grand_total"] == 48.96

    def test_unknown_session_is_404(self, client):
        response = client.get("/api/checkout/sessions/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "Checkout session not found"

    def test_close(self, client, registry):
        session_id = open_session(client)
        assert client.delete(f"/api/checkout/sessions/{session_id}").status_code == 204
        assert len(registry) == 0

    def test_full_payment_flow(self, client, confirmation_requests):
        session_id = open_session(client)

        placed = submit(client, session_id)
        assert placed.status_code == 200
        assert placed.json()["amount"] == 48.96
        assert placed.json()["client_secret"]

        success = client.post(f"/api/checkout/sessions/{session_id}/payment-success")
        assert success.json() == {"accepted": True, "state": "succeeded"}
        duplicate = client.post(f"/api/checkout/sessions/{session_id}/payment-success")
        assert duplicate.json()["accepted"] is False

        view = client.get(f"/api/checkout/sessions/{session_id}").json()
        assert view["order_success"] is True
        assert view["lines"] == []

        closed = client.post(f"/api/checkout/sessions/{session_id}/close").json()
        assert closed["state"] == "idle"

    def test_validation_failure_is_422(self, client):
        session_id = open_session(client)
        response = submit(client, session_id, guest_email=None)
        assert response.status_code == 422
        assert response.json()["error"] == "Please provide your email address."
        assert response.json()["detail"] == "ValidationError"

    def test_second_submit_is_409(self, client):
        session_id = open_session(client)
        assert submit(client, session_id).status_code == 200
        response = submit(client, session_id)
        assert response.status_code == 409
        assert response.json()["error"] == "Your order is already being processed."

    def test_order_failure_is_502(self, client, services):
        services.orders.failure_rate = 1.0
        session_id = open_session(client)
        response = submit(client, session_id)
        assert response.status_code == 502
        assert client.get(f"/api/checkout/sessions/{session_id}").json()["state"] == "failed"

    def test_payment_error_reported(self, client):
        session_id = open_session(client)
        submit(client, session_id)
        body = client.post(
            f"/api/checkout/sessions/{session_id}/payment-error",
            json={"message": "Your card was declined."},
        ).json()
        # the payment step stays open for another attempt
        assert body["state"] == "awaiting_payment"
        assert body["message"]["text"] == "Your card was declined."

    def test_discount_apply_and_remove(self, client):
        session_id = open_session(client)

        applied = client.post(f"/api/checkout/sessions/{session_id}/discount", json={"code": "FIVEOFF"})
        assert applied.status_code == 200
        assert applied.json()["code"] == "FIVEOFF"

        rejected = client.post(f"/api/checkout/sessions/{session_id}/discount", json={"code": "NOPE"})
        assert rejected.status_code == 422

        removed = client.delete(f"/api/checkout/sessions/{session_id}/discount").json()
        assert removed["discount"] is None

    def test_refresh_while_paying_is_409(self, client):
        session_id = open_session(client)
        assert submit(client, session_id).status_code == 200

        response = client.post(f"/api/checkout/sessions/{session_id}/refresh")

        assert response.status_code == 409
        assert response.json()["error"] == "Your order is already being processed."

    def test_bearer_token_opens_member_session(self, client, settings, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.headers["Authorization"] != "Bearer tok-9":
                return httpx.Response(401, json={"message": "invalid token"})
            return httpx.Response(200, json={"id": "user-9", "email": "member@example.com"})

        auth = HttpAuthService(settings, transport=httpx.MockTransport(handler))
        monkeypatch.setattr(main, "get_auth_service", lambda: auth)

        member = client.post(
            "/api/checkout/sessions", json={"lines": []}, headers={"Authorization": "Bearer tok-9"}
        )
        stranger = client.post(
            "/api/checkout/sessions", json={"lines": LINES}, headers={"Authorization": "Bearer forged"}
        )

        assert member.status_code == 201
        assert member.json()["is_authenticated"] is True
        assert member.json()["guest_session_id"] is None
        assert stranger.json()["is_authenticated"] is False


class TestOrders:

    def test_listing_requires_an_owner(self, client):
        assert client.get("/api/orders").status_code == 401

    def test_guest_orders(self, client):
        session_id = open_session(client)
        order_id = submit(client, session_id).json()["order_id"]

        listing = client.get("/api/orders", params={"guest_session_id": "guest-api"}).json()
        assert listing["total"] == 1
        assert listing["orders"][0]["id"] == order_id

        order = client.get(f"/api/orders/{order_id}").json()
        assert order["order_total"] == 48.96
        assert order["items"][0]["menu_item_id"] == "dish-a"

    def test_unknown_order(self, client):
        assert client.get("/api/orders/missing").status_code == 404


class TestConfirmationEndpoint:

    URL = "/functions/v1/send-order-confirmation"

    def test_requires_bearer_token(self, client):
        response = client.post(self.URL, json={"orderId": "o-1", "email": "jane@example.com"})
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Missing authorization"}

    def test_requires_order_and_email(self, client):
        response = client.post(self.URL, json={"email": "jane@example.com"}, headers={"Authorization": "Bearer k"})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required parameters: orderId and email"

    def test_unknown_order(self, client):
        response = client.post(
            self.URL,
            json={"orderId": "missing", "email": "jane@example.com"},
            headers={"Authorization": "Bearer k"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Order not found"

    def test_queues_email(self, client, monkeypatch):
        task = MagicMock()
        monkeypatch.setattr(main, "send_order_confirmation_email", task)
        session_id = open_session(client)
        order_id = submit(client, session_id).json()["order_id"]

        response = client.post(
            self.URL,
            json={"orderId": order_id, "email": "jane@example.com"},
            headers={"Authorization": "Bearer anon-test-key"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Order confirmation email sent successfully",
            "orderId": order_id,
        }
        task.delay.assert_called_once_with({
            "order_id": order_id,
            "email": "jane@example.com",
            "customer_name": "Jane Doe",
            "order_total": 48.96,
        })
