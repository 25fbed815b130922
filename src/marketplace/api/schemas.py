"""Pydantic request/response schemas for the marketplace API.

These are external contracts, kept separate from the internal Protean
commands and aggregates.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    unit_price: float | None = Field(default=None, ge=0)


class AddressSchema(BaseModel):
    name: str = ""
    phone: str | None = None
    address_line1: str = ""
    address_line2: str | None = None
    city: str = ""
    region: str | None = None
    postal_code: str = ""
    country: str = ""


class OrderItemSchema(BaseModel):
    id: str
    product_id: str
    seller_id: str
    quantity: int
    unit_price: float
    product_name: str
    product_description: str | None = None
    category: str | None = None
    subtotal: float


# ---------------------------------------------------------------------------
# Order schemas
# ---------------------------------------------------------------------------
class CreateOrderFromCartRequest(BaseModel):
    lines: list[CartLineSchema]
    shipping_address: AddressSchema
    payment_method: str = "card"
    notes: str | None = None
    metadata: dict | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "lines": [
                        {"product_id": "prod-001", "quantity": 2, "unit_price": 10.0},
                        {"product_id": "prod-002", "quantity": 1, "unit_price": 35.0},
                    ],
                    "shipping_address": {
                        "name": "Ada Buyer",
                        "address_line1": "1 Market Street",
                        "city": "Springfield",
                        "postal_code": "12345",
                        "country": "US",
                    },
                }
            ]
        }
    }


class OrderPlacedResponse(BaseModel):
    order_id: str
    status: str
    total_amount: float


class TransitionOrderRequest(BaseModel):
    target_status: str
    reason: str | None = None


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str
    payment_status: str


class OrderResponse(BaseModel):
    order_id: str
    buyer_id: str
    status: str
    payment_status: str
    total_amount: float
    shipping_cost: float
    tax_amount: float
    currency: str
    payment_method: str | None = None
    shipping_address: AddressSchema | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    placed_at: datetime | None = None
    items: list[OrderItemSchema]


class OrderListResponse(BaseModel):
    orders: list[OrderStatusResponse]
    total: int = 0
    limit: int = 50
    offset: int = 0
    has_next: bool = False


# ---------------------------------------------------------------------------
# Payment schemas
# ---------------------------------------------------------------------------
class PaymentIntentResponse(BaseModel):
    payment_id: str
    order_id: str
    provider: str
    provider_payment_id: str
    client_secret: str
    amount: float
    currency: str
    status: str
    attempt: int


class WebhookAckResponse(BaseModel):
    received: bool = True
    duplicate: bool = False


class ConfigureGatewayRequest(BaseModel):
    available: bool = True
    amount_override: float | None = None


class GatewayConfigResponse(BaseModel):
    gateway: str
    available: bool
    amount_override: float | None = None


# ---------------------------------------------------------------------------
# Ledger schemas
# ---------------------------------------------------------------------------
class SellerFinancialsResponse(BaseModel):
    seller_id: str
    total_earnings: float
    pending_amount: float
    cleared_amount: float
    paid_amount: float
    cancelled_amount: float
    total_platform_fees: float
    record_count: int
    order_count: int


class MarkPaidRequest(BaseModel):
    payout_reference: str
    payout_method: str | None = None
    payout_details: dict | None = None


class SellerPayoutRequest(BaseModel):
    record_ids: list[str] = Field(min_length=1)
    payout_reference: str
    payout_method: str | None = None


class SellerPayoutResponse(BaseModel):
    payout_id: str
    record_ids: list[str]
    net_total: float


class PayoutSchema(BaseModel):
    payout_id: str
    payout_method: str | None = None
    record_ids: list[str]
    order_ids: list[str]
    net_total: float
    paid_at: datetime | None = None


class SellerPayoutHistoryResponse(BaseModel):
    seller_id: str
    payouts: list[PayoutSchema]


class StatusResponse(BaseModel):
    status: str
