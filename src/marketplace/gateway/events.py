"""Parsing of provider webhook payloads into GatewayEvent.

Payloads follow the Stripe event envelope:
    {"id": "evt_...", "type": "payment_intent.succeeded",
     "data": {"object": {"object": "payment_intent", "id": "pi_...", ...}}}

Refund events carry a charge object whose payment_intent field links it back
to the intent.
"""

from marketplace.gateway.port import GatewayEvent
from marketplace.shared.money import from_minor_units

# Event types whose name determines the payment state regardless of the
# status field inside the object.
_STATE_BY_EVENT_TYPE = {
    "payment_intent.created": "requires_payment_method",
    "payment_intent.requires_action": "requires_action",
    "payment_intent.processing": "processing",
    "payment_intent.succeeded": "succeeded",
    "payment_intent.payment_failed": "payment_failed",
    "payment_intent.canceled": "canceled",
    "charge.refunded": "refunded",
}


def _intent_id(obj: dict) -> str | None:
    if obj.get("object") == "payment_intent":
        return obj.get("id")
    intent = obj.get("payment_intent")
    if isinstance(intent, dict):
        return intent.get("id")
    return intent


def _failure_reason(obj: dict) -> str | None:
    error = obj.get("last_payment_error") or {}
    if isinstance(error, dict) and error:
        return error.get("message") or error.get("code")
    return obj.get("cancellation_reason") or obj.get("failure_message")


def event_from_payload(data: dict) -> GatewayEvent:
    """Build a GatewayEvent from a decoded webhook body."""
    event_type = data.get("type", "")
    obj = (data.get("data") or {}).get("object") or {}

    provider_state = _STATE_BY_EVENT_TYPE.get(event_type)
    if provider_state is None and obj.get("object") == "payment_intent":
        provider_state = obj.get("status")

    amount = obj.get("amount_received") or obj.get("amount")
    metadata = obj.get("metadata") or {}

    return GatewayEvent(
        event_id=data.get("id", ""),
        event_type=event_type,
        payment_intent_id=_intent_id(obj),
        provider_state=provider_state,
        amount=from_minor_units(amount) if amount is not None else None,
        currency=obj["currency"].upper() if obj.get("currency") else None,
        failure_reason=_failure_reason(obj),
        order_id=metadata.get("order_id"),
        payload=data,
    )
