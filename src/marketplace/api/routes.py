"""FastAPI routes for the marketplace: orders, payments, webhooks and the seller ledger.

Domain calls block on row locks and the database, so routes are plain functions
that FastAPI runs in its threadpool. Only the webhook route is async, to read
the raw body before handing off to a worker thread.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from protean.utils.globals import current_domain

from marketplace.api.dependencies import get_caller
from marketplace.api.schemas import (
    AddressSchema,
    ConfigureGatewayRequest,
    CreateOrderFromCartRequest,
    GatewayConfigResponse,
    MarkPaidRequest,
    OrderItemSchema,
    OrderListResponse,
    OrderPlacedResponse,
    OrderResponse,
    OrderStatusResponse,
    PaymentIntentResponse,
    PayoutSchema,
    SellerFinancialsResponse,
    SellerPayoutHistoryResponse,
    SellerPayoutRequest,
    SellerPayoutResponse,
    StatusResponse,
    TransitionOrderRequest,
    WebhookAckResponse,
)
from marketplace.config import get_settings
from marketplace.gateway import get_gateway
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.ledger.payouts import clear_record, mark_paid, process_seller_payout
from marketplace.ledger.summary import seller_financial_summary, seller_payout_history
from marketplace.order.checkout import place_order
from marketplace.order.order import Order
from marketplace.order.queries import orders_for_buyer, orders_for_seller
from marketplace.order.transitions import transition_order
from marketplace.payment.intents import create_intent
from marketplace.shared.access import Action, Caller, authorize, ensure_allowed
from marketplace.shared.paging import MAX_PAGE_SIZE, Page
from marketplace.webhook.ingestion import ingest_webhook


def _order_list(page: Page) -> OrderListResponse:
    return OrderListResponse(
        orders=[
            OrderStatusResponse(order_id=str(o.id), status=o.status, payment_status=o.payment_status)
            for o in page.items
        ],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        has_next=page.has_next,
    )


def _order_response(order: Order) -> OrderResponse:
    address = order.shipping_address
    return OrderResponse(
        order_id=str(order.id),
        buyer_id=str(order.buyer_id),
        status=order.status,
        payment_status=order.payment_status,
        total_amount=order.total_amount,
        shipping_cost=order.shipping_cost,
        tax_amount=order.tax_amount,
        currency=order.currency,
        payment_method=order.payment_method,
        shipping_address=AddressSchema(**address.to_dict()) if address else None,
        notes=order.notes,
        cancellation_reason=order.cancellation_reason,
        placed_at=order.placed_at,
        items=[
            OrderItemSchema(
                id=str(item.id),
                product_id=str(item.product_id),
                seller_id=str(item.seller_id),
                quantity=item.quantity,
                unit_price=item.unit_price_snapshot,
                product_name=item.product_name_snapshot,
                product_description=item.product_description_snapshot,
                category=item.category_snapshot,
                subtotal=item.subtotal,
            )
            for item in order.items
        ],
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/from-cart", status_code=201, response_model=OrderPlacedResponse)
def create_order_from_cart(
    body: CreateOrderFromCartRequest,
    caller: Caller = Depends(get_caller),
) -> OrderPlacedResponse:
    """Place a PENDING order for the calling buyer from their cart."""
    order_id = place_order(
        buyer_id=caller.user_id,
        lines=[line.model_dump() for line in body.lines],
        shipping_address=body.shipping_address.model_dump(),
        payment_method=body.payment_method,
        notes=body.notes,
        metadata=body.metadata,
        caller=caller,
    )
    order = current_domain.repository_for(Order).get(order_id)
    return OrderPlacedResponse(order_id=order_id, status=order.status, total_amount=order.total_amount)


@order_router.get("", response_model=OrderListResponse)
def list_orders(
    caller: Caller = Depends(get_caller),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
) -> OrderListResponse:
    """List the calling buyer's orders, newest first."""
    return _order_list(orders_for_buyer(caller.user_id, limit=limit, offset=offset))


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, caller: Caller = Depends(get_caller)) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    ensure_allowed(authorize(caller, Action.VIEW_ORDER, buyer_id=order.buyer_id, seller_ids=order.seller_ids()))
    return _order_response(order)


@order_router.post("/{order_id}/payment-intent", status_code=201, response_model=PaymentIntentResponse)
def create_payment_intent(order_id: str, caller: Caller = Depends(get_caller)) -> PaymentIntentResponse:
    """Create, or return the still-usable, payment intent for a pending order."""
    handle = create_intent(order_id, caller=caller)
    return PaymentIntentResponse(**asdict(handle))


@order_router.post("/{order_id}/transition", response_model=OrderStatusResponse)
def change_order_status(
    order_id: str,
    body: TransitionOrderRequest,
    caller: Caller = Depends(get_caller),
) -> OrderStatusResponse:
    order = transition_order(order_id, body.target_status, caller=caller, reason=body.reason)
    return OrderStatusResponse(order_id=str(order.id), status=order.status, payment_status=order.payment_status)


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/payment", response_model=WebhookAckResponse)
async def receive_payment_webhook(
    request: Request,
    stripe_signature: str = Header(default=""),
) -> WebhookAckResponse:
    """Receive a payment provider callback.

    The signature is checked over the raw body, so the payload is never
    parsed before verification. Failures answer 503 so the provider retries.
    """
    payload = await request.body()
    ack = await run_in_threadpool(ingest_webhook, payload, stripe_signature)
    return WebhookAckResponse(received=ack.received, duplicate=ack.duplicate)


# ---------------------------------------------------------------------------
# Payment gateway (development only)
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if get_settings().is_production:
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(available=body.available, amount_override=body.amount_override)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        available=gateway.available,
        amount_override=gateway.amount_override,
    )


# ---------------------------------------------------------------------------
# Ledger Router
# ---------------------------------------------------------------------------
ledger_router = APIRouter(tags=["ledger"])


@ledger_router.get("/sellers/{seller_id}/financials", response_model=SellerFinancialsResponse)
def get_seller_financials(seller_id: str, caller: Caller = Depends(get_caller)) -> SellerFinancialsResponse:
    summary = seller_financial_summary(seller_id, caller=caller)
    return SellerFinancialsResponse(**asdict(summary))


@ledger_router.get("/sellers/{seller_id}/orders", response_model=OrderListResponse)
def list_seller_orders(
    seller_id: str,
    caller: Caller = Depends(get_caller),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
) -> OrderListResponse:
    """Orders containing the seller's items, newest first."""
    return _order_list(orders_for_seller(seller_id, caller=caller, limit=limit, offset=offset))


@ledger_router.get("/sellers/{seller_id}/payouts", response_model=SellerPayoutHistoryResponse)
def get_seller_payouts(seller_id: str, caller: Caller = Depends(get_caller)) -> SellerPayoutHistoryResponse:
    """The seller's past payouts, most recent first."""
    payouts = seller_payout_history(seller_id, caller=caller)
    return SellerPayoutHistoryResponse(
        seller_id=seller_id,
        payouts=[PayoutSchema(**asdict(payout)) for payout in payouts],
    )


@ledger_router.post("/sellers/{seller_id}/payouts", response_model=SellerPayoutResponse)
def pay_out_seller(
    seller_id: str,
    body: SellerPayoutRequest,
    caller: Caller = Depends(get_caller),
) -> SellerPayoutResponse:
    """Pay out a batch of one seller's cleared records (administrators only)."""
    result = process_seller_payout(
        seller_id,
        record_ids=body.record_ids,
        payout_reference=body.payout_reference,
        payout_method=body.payout_method,
        caller=caller,
    )
    return SellerPayoutResponse(**result)


@ledger_router.post("/financial-records/{record_id}/clear", response_model=StatusResponse)
def clear_financial_record(record_id: str, caller: Caller = Depends(get_caller)) -> StatusResponse:
    return StatusResponse(status=clear_record(record_id, caller=caller))


@ledger_router.post("/financial-records/{record_id}/pay", response_model=StatusResponse)
def pay_financial_record(
    record_id: str,
    body: MarkPaidRequest,
    caller: Caller = Depends(get_caller),
) -> StatusResponse:
    status = mark_paid(
        record_id,
        payout_reference=body.payout_reference,
        payout_method=body.payout_method,
        payout_details=body.payout_details,
        caller=caller,
    )
    return StatusResponse(status=status)
