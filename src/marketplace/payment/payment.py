"""Payment aggregate: the provider-side charge for one order.

There is exactly one Payment per order. It is opened when the first payment
intent is created, re-armed with a fresh intent when a failed attempt is
retried, and otherwise changes only through verified provider callbacks.

State Machine:
    PENDING → PROCESSING → COMPLETED → REFUNDED
    PENDING → COMPLETED
    PENDING | PROCESSING → FAILED | CANCELLED
"""

import json
from datetime import UTC, datetime

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace
from marketplace.errors import AmountMismatch, InvalidTransition
from marketplace.payment.events import PaymentIntentCreated, PaymentStatusChanged
from marketplace.payment.states import PaymentStatus, can_transition
from marketplace.shared.money import amounts_equal


@marketplace.aggregate(schema_name="payments")
class Payment:
    order_id = Identifier(required=True, unique=True)
    provider = String(required=True, max_length=50)
    provider_payment_id = String(max_length=255)
    client_secret = String(max_length=255)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="USD")
    status = String(
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    payment_method_details = Text()  # JSON
    transaction_details = Text()  # JSON: last provider callback summary
    failure_reason = String(max_length=500)
    attempt_count = Integer(default=1, min_value=1)
    created_at = DateTime()
    updated_at = DateTime()
    processed_at = DateTime()
    failed_at = DateTime()
    paid_at = DateTime()

    @classmethod
    def open(
        cls,
        order_id,
        order_total,
        amount,
        currency,
        provider,
        provider_payment_id,
        client_secret,
        payment_method_details=None,
    ):
        """Record a newly created payment intent for an order."""
        if not amounts_equal(amount, order_total):
            raise AmountMismatch({"amount": [f"Payment amount {amount} does not match order total {order_total}"]})

        now = datetime.now(UTC)
        payment = cls(
            order_id=order_id,
            provider=provider,
            provider_payment_id=provider_payment_id,
            client_secret=client_secret,
            amount=amount,
            currency=currency,
            status=PaymentStatus.PENDING.value,
            payment_method_details=json.dumps(payment_method_details) if payment_method_details else None,
            attempt_count=1,
            created_at=now,
            updated_at=now,
        )
        payment._raise_intent_created(now)
        return payment

    def _raise_intent_created(self, now):
        self.raise_(
            PaymentIntentCreated(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                provider=self.provider,
                provider_payment_id=self.provider_payment_id,
                amount=self.amount,
                currency=self.currency,
                attempt=self.attempt_count,
                created_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def can_transition_to(self, target_status: PaymentStatus) -> bool:
        return can_transition(PaymentStatus(self.status), target_status)

    def assert_amount_matches(self, amount, currency) -> None:
        """Reject a provider report whose amount or currency differs from ours."""
        if amount is not None and not amounts_equal(amount, self.amount):
            raise AmountMismatch({"amount": [f"Provider reported {amount}, expected {self.amount}"]})
        if currency and currency.upper() != (self.currency or "").upper():
            raise AmountMismatch({"currency": [f"Provider reported {currency}, expected {self.currency}"]})

    def apply_status(
        self,
        target_status: PaymentStatus,
        transaction_details: dict | None = None,
        failure_reason: str | None = None,
    ) -> None:
        current = PaymentStatus(self.status)
        if not self.can_transition_to(target_status):
            raise InvalidTransition({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        if transaction_details:
            self.transaction_details = json.dumps(transaction_details)

        if target_status == PaymentStatus.PROCESSING:
            self.processed_at = now
        elif target_status == PaymentStatus.COMPLETED:
            self.processed_at = self.processed_at or now
            self.paid_at = now
        elif target_status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            self.failed_at = now
            self.failure_reason = failure_reason

        self.raise_(
            PaymentStatusChanged(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                from_status=current.value,
                to_status=target_status.value,
                failure_reason=failure_reason,
                changed_at=now,
            )
        )

    def rearm(self, provider_payment_id: str, client_secret: str) -> None:
        """Start a new attempt with a fresh intent after a failed one."""
        if PaymentStatus(self.status) != PaymentStatus.FAILED:
            raise InvalidTransition({"status": [f"Cannot start a new payment attempt from {self.status}"]})

        now = datetime.now(UTC)
        self.provider_payment_id = provider_payment_id
        self.client_secret = client_secret
        self.status = PaymentStatus.PENDING.value
        self.failure_reason = None
        self.failed_at = None
        self.processed_at = None
        self.attempt_count = (self.attempt_count or 1) + 1
        self.updated_at = now
        self._raise_intent_created(now)
