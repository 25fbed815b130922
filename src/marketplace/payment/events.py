"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Payment")
class PaymentIntentCreated:
    """The provider issued a payment intent for the order total."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    provider = String(required=True, max_length=50)
    provider_payment_id = String(required=True, max_length=255)
    amount = Float(required=True)
    currency = String(required=True, max_length=3)
    attempt = Integer(required=True)
    created_at = DateTime(required=True)


@marketplace.event(part_of="Payment")
class PaymentStatusChanged:
    """A provider callback moved the payment to a new status."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    from_status = String(required=True, max_length=50)
    to_status = String(required=True, max_length=50)
    failure_reason = String(max_length=500)
    changed_at = DateTime(required=True)
