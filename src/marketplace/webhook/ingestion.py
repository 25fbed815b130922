"""Webhook ingestion: applying provider callbacks exactly once.

ingest_webhook() is the only writer of payment outcomes:

1. The gateway verifies the signature over the raw body (InvalidSignature
   otherwise, before anything is read or written).
2. Under the payment intent's lock, a processed event with the same id is
   acknowledged as a duplicate without side effects.
3. The event is recorded as pending, then ApplyPaymentEvent updates the
   Payment, derives the Order outcome and posts the ledger in one Unit of
   Work, marking the event processed.
4. Any failure rolls that Unit of Work back, marks the event failed with the
   error, and raises WebhookProcessingFailed so the provider redelivers.

Notifications and the stock release of a cancelled order are not part of
that Unit of Work: they run from domain event handlers once it commits.

Stale events (a status that is not a forward move from the stored one) are
logged and acknowledged without being applied.
"""

import json
from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import WebhookProcessingFailed
from marketplace.gateway import get_gateway
from marketplace.gateway.events import event_from_payload
from marketplace.gateway.port import GatewayEvent
from marketplace.ledger.ledger import Ledger
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.payment import Payment
from marketplace.payment.states import PaymentStatus, normalize_provider_state
from marketplace.shared.locking import intent_key, order_key, row_locks, webhook_key
from marketplace.utils.logging import bind_context, unbind_context
from marketplace.webhook.webhook_event import WebhookEvent

logger = structlog.get_logger(__name__)

_CLOSED_ORDER_STATES = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}


@dataclass(frozen=True)
class WebhookAck:
    event_id: str
    duplicate: bool = False
    applied: bool = False
    received: bool = True


@marketplace.command(part_of="WebhookEvent")
class RecordWebhookEvent:
    event_id = String(required=True, max_length=255)
    event_type = String(required=True, max_length=100)
    payment_intent_id = String(max_length=255)
    raw_body = Text(required=True)  # JSON: verified event body


@marketplace.command(part_of="WebhookEvent")
class ApplyPaymentEvent:
    event_id = String(required=True, max_length=255)


@marketplace.command(part_of="WebhookEvent")
class MarkWebhookFailed:
    event_id = String(required=True, max_length=255)
    error = Text(required=True)


def _outcome(event_id: str, **values) -> dict:
    outcome = {
        "event_id": event_id,
        "applied": False,
        "duplicate": False,
        "order_id": None,
        "payment_status": None,
        "order_status": None,
        "records_posted": 0,
    }
    outcome.update(values)
    return outcome


@marketplace.command_handler(part_of=WebhookEvent)
class WebhookEventHandler:
    @handle(RecordWebhookEvent)
    def record_webhook_event(self, command):
        repo = current_domain.repository_for(WebhookEvent)
        existing = repo.find_by_external_id(command.event_id)
        if existing is None:
            repo.add(
                WebhookEvent.receive(
                    external_event_id=command.event_id,
                    event_type=command.event_type,
                    payment_intent_id=command.payment_intent_id,
                    payload=command.raw_body,
                )
            )
            return "pending"

        if existing.is_processed:
            return existing.processing_status

        existing.retry()
        repo.add(existing)
        logger.info("Retrying webhook event", attempts=existing.attempts)
        return existing.processing_status

    @handle(ApplyPaymentEvent)
    def apply_payment_event(self, command):
        events = current_domain.repository_for(WebhookEvent)
        webhook_event = events.find_by_external_id(command.event_id)
        if webhook_event is None:
            raise ObjectNotFoundError(f"Webhook event {command.event_id} has not been recorded")
        if webhook_event.is_processed:
            return _outcome(command.event_id, duplicate=True)

        gateway_event = event_from_payload(webhook_event.payload_dict())
        outcome = self._apply(gateway_event)

        webhook_event.mark_processed()
        events.add(webhook_event)
        return outcome

    def _apply(self, event: GatewayEvent) -> dict:
        if event.provider_state is None:
            logger.info("Webhook event carries no payment state", event_type=event.event_type)
            return _outcome(event.event_id)

        payments = current_domain.repository_for(Payment)
        payment = payments.find_by_provider_payment_id(event.payment_intent_id)
        if payment is None:
            current = payments.find_by_order_id(event.order_id) if event.order_id else None
            if current is not None:
                logger.warning(
                    "Ignoring event for superseded payment intent",
                    order_id=event.order_id,
                    current_intent=current.provider_payment_id,
                )
                return _outcome(event.event_id)
            raise ObjectNotFoundError(f"No payment found for intent {event.payment_intent_id}")

        target = normalize_provider_state(event.provider_state)
        if not payment.can_transition_to(target):
            logger.warning(
                "Ignoring stale payment event",
                order_id=str(payment.order_id),
                current_status=payment.status,
                event_status=target.value,
            )
            return _outcome(event.event_id, order_id=str(payment.order_id), payment_status=payment.status)

        if target == PaymentStatus.COMPLETED:
            payment.assert_amount_matches(event.amount, event.currency)

        payment.apply_status(
            target,
            transaction_details={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "provider_state": event.provider_state,
            },
            failure_reason=event.failure_reason,
        )

        orders = current_domain.repository_for(Order)
        order = orders.get(payment.order_id)
        new_order_status = order.apply_payment_outcome(target)

        ledger = Ledger()
        records = []
        if target == PaymentStatus.COMPLETED:
            if OrderStatus(order.status) in _CLOSED_ORDER_STATES:
                logger.warning(
                    "Payment completed for a closed order, ledger not posted",
                    order_id=str(order.id),
                    order_status=order.status,
                )
            else:
                records = ledger.prepare(order)

        payments.add(payment)
        orders.add(order)
        records = ledger.persist(records)

        if new_order_status == OrderStatus.CANCELLED or target == PaymentStatus.REFUNDED:
            ledger.cancel_for_order(order.id)

        logger.info(
            "Payment event applied",
            order_id=str(order.id),
            payment_status=payment.status,
            order_status=order.status,
            records_posted=len(records),
        )
        return _outcome(
            event.event_id,
            applied=True,
            order_id=str(order.id),
            payment_status=payment.status,
            order_status=order.status,
            records_posted=len(records),
        )

    @handle(MarkWebhookFailed)
    def mark_webhook_failed(self, command):
        repo = current_domain.repository_for(WebhookEvent)
        webhook_event = repo.find_by_external_id(command.event_id)
        if webhook_event is None:
            raise ObjectNotFoundError(f"Webhook event {command.event_id} has not been recorded")
        webhook_event.mark_failed(command.error)
        repo.add(webhook_event)
        return webhook_event.processing_status


def _lock_keys_for(event: GatewayEvent) -> list[str]:
    keys = [webhook_key(event.event_id)]
    payment = current_domain.repository_for(Payment).find_by_provider_payment_id(event.payment_intent_id)
    order_id = str(payment.order_id) if payment is not None else event.order_id
    if order_id:
        keys.append(order_key(order_id))
    return keys


def _ingest(event: GatewayEvent) -> WebhookAck:
    events = current_domain.repository_for(WebhookEvent)
    outer_key = intent_key(event.payment_intent_id) if event.payment_intent_id else webhook_key(event.event_id)

    with row_locks.hold(outer_key):
        existing = events.find_by_external_id(event.event_id)
        if existing is not None and existing.is_processed:
            logger.info("Duplicate webhook delivery acknowledged")
            return WebhookAck(event_id=event.event_id, duplicate=True)

        # Mutations of the payment and its order serialize on the order lock
        with row_locks.hold(*_lock_keys_for(event)):
            current_domain.process(
                RecordWebhookEvent(
                    event_id=event.event_id,
                    event_type=event.event_type or "unknown",
                    payment_intent_id=event.payment_intent_id,
                    raw_body=json.dumps(event.payload),
                ),
                asynchronous=False,
            )
            try:
                outcome = current_domain.process(ApplyPaymentEvent(event_id=event.event_id), asynchronous=False)
            except Exception as exc:
                error = f"{type(exc).__name__}: {exc}"
                logger.error("Webhook processing failed", error=error)
                current_domain.process(MarkWebhookFailed(event_id=event.event_id, error=error), asynchronous=False)
                raise WebhookProcessingFailed(event.event_id, error) from exc

    return WebhookAck(event_id=event.event_id, duplicate=outcome["duplicate"], applied=outcome["applied"])


def ingest_webhook(payload: bytes, signature: str) -> WebhookAck:
    """Verify, deduplicate and apply one provider callback."""
    event = get_gateway().construct_event(payload, signature)
    if not event.event_id:
        raise ValidationError({"id": ["Webhook event has no id"]})

    bind_context(event_id=event.event_id, payment_intent_id=event.payment_intent_id)
    try:
        return _ingest(event)
    finally:
        unbind_context("event_id", "payment_intent_id")
