"""Payment intent creation for a pending order.

The amount sent to the provider is the order total, re-derived from the
order items before the call; the provider's confirmed amount and currency
must match it. A pending intent is reused. A failed attempt is re-armed with
a new intent and the order's payment status goes back to Pending. Anything
else is refused.
"""

from dataclasses import asdict, dataclass

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import AmountMismatch, InvalidTransition
from marketplace.gateway import get_gateway
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.payment import Payment
from marketplace.payment.states import PaymentStatus
from marketplace.shared.access import Action, Caller, authorize, ensure_allowed
from marketplace.shared.locking import order_key, row_locks
from marketplace.shared.money import amounts_equal

logger = structlog.get_logger(__name__)

_REUSABLE_STATES = {PaymentStatus.PENDING, PaymentStatus.PROCESSING}


@dataclass(frozen=True)
class PaymentIntentHandle:
    """What the client needs to complete payment with the provider."""

    payment_id: str
    order_id: str
    provider: str
    provider_payment_id: str
    client_secret: str
    amount: float
    currency: str
    status: str
    attempt: int

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentIntentHandle":
        return cls(
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            provider=payment.provider,
            provider_payment_id=payment.provider_payment_id,
            client_secret=payment.client_secret,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status,
            attempt=payment.attempt_count,
        )


@marketplace.command(part_of="Payment")
class CreatePaymentIntent:
    order_id = Identifier(required=True)


@marketplace.command_handler(part_of=Payment)
class CreatePaymentIntentHandler:
    @handle(CreatePaymentIntent)
    def create_payment_intent(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if OrderStatus(order.status) != OrderStatus.PENDING:
            raise InvalidTransition(
                {"status": [f"Order {order.id} is {order.status}; only pending orders can be paid"]}
            )

        expected = order.recomputed_total()
        if not amounts_equal(expected, order.total_amount):
            raise AmountMismatch(
                {"total_amount": [f"Order total {order.total_amount} does not match its items ({expected})"]}
            )

        payments = current_domain.repository_for(Payment)
        payment = payments.find_by_order_id(order.id)
        if payment is not None:
            status = PaymentStatus(payment.status)
            if status in _REUSABLE_STATES and payment.provider_payment_id:
                logger.info(
                    "Reusing existing payment intent",
                    order_id=str(order.id),
                    provider_payment_id=payment.provider_payment_id,
                )
                return asdict(PaymentIntentHandle.from_payment(payment))
            if status != PaymentStatus.FAILED:
                raise InvalidTransition({"payment": [f"Payment for order {order.id} is already {payment.status}"]})

        attempt = 1 if payment is None else (payment.attempt_count or 1) + 1
        gateway = get_gateway()
        result = gateway.create_payment_intent(
            amount=order.total_amount,
            currency=order.currency,
            metadata={"order_id": str(order.id), "buyer_id": str(order.buyer_id)},
            idempotency_key=f"order-{order.id}-attempt-{attempt}",
        )

        if not amounts_equal(result.amount, order.total_amount) or result.currency.upper() != order.currency.upper():
            raise AmountMismatch(
                {
                    "amount": [
                        f"Provider confirmed {result.amount} {result.currency}, "
                        f"expected {order.total_amount} {order.currency}"
                    ]
                }
            )

        if payment is None:
            payment = Payment.open(
                order_id=order.id,
                order_total=order.total_amount,
                amount=result.amount,
                currency=result.currency,
                provider=gateway.name,
                provider_payment_id=result.provider_payment_id,
                client_secret=result.client_secret,
                payment_method_details={"type": order.payment_method} if order.payment_method else None,
            )
        else:
            payment.rearm(result.provider_payment_id, result.client_secret)
            # The order mirrors the payment, so a retry puts it back to Pending too
            order.apply_payment_outcome(PaymentStatus.PENDING)
            current_domain.repository_for(Order).add(order)
        payments.add(payment)

        logger.info(
            "Payment intent created",
            order_id=str(order.id),
            provider=gateway.name,
            provider_payment_id=result.provider_payment_id,
            attempt=payment.attempt_count,
        )
        return asdict(PaymentIntentHandle.from_payment(payment))


def create_intent(order_id: str, caller: Caller | None = None) -> PaymentIntentHandle:
    """Create (or reuse) the payment intent for a pending order."""
    if caller is not None:
        order = current_domain.repository_for(Order).get(order_id)
        ensure_allowed(authorize(caller, Action.CREATE_PAYMENT_INTENT, buyer_id=order.buyer_id))

    with row_locks.hold(order_key(order_id)):
        handle_data = current_domain.process(CreatePaymentIntent(order_id=order_id), asynchronous=False)
    return PaymentIntentHandle(**handle_data)
