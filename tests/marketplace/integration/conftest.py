import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from marketplace.api import ledger_router, order_router, payment_router, register_error_handlers, webhook_router

BUYER_HEADERS = {"X-User-Id": "buyer-1", "X-User-Role": "buyer"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(webhook_router)
    app.include_router(payment_router)
    app.include_router(ledger_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def cart_body(address):
    return {
        "lines": [
            {"product_id": "prod-a", "quantity": 2, "unit_price": 12.5},
            {"product_id": "prod-b", "quantity": 1, "unit_price": 30.0},
        ],
        "shipping_address": address,
    }


@pytest.fixture()
def api_order(client, cart_body):
    """Place an order through the API and return its id."""
    response = client.post("/orders/from-cart", json=cart_body, headers=BUYER_HEADERS)
    assert response.status_code == 201
    return response.json()["order_id"]


@pytest.fixture()
def post_webhook(client, gateway):
    def _post(event_type, payment_intent_id, **kwargs):
        payload, signature = gateway.make_event(event_type, payment_intent_id, **kwargs)
        return client.post(
            "/webhooks/payment",
            content=payload,
            headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
        )

    return _post
