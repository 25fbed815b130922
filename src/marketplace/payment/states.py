"""Payment status vocabulary and provider state normalization.

The internal PaymentStatus is shared by Payment.status and
Order.payment_status. Providers speak their own dialect ("succeeded",
"requires_payment_method", "canceled", ...) which normalize_provider_state()
maps onto it.
"""

from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class PaymentStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


# State machine transition map
VALID_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,  # Providers may report success without a processing step
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.PROCESSING: {
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
    },
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),  # Terminal for the attempt
    PaymentStatus.CANCELLED: set(),  # Terminal
    PaymentStatus.REFUNDED: set(),  # Terminal
}

_PROVIDER_STATES = {
    # Awaiting buyer action
    "requires_payment_method": PaymentStatus.PENDING,
    "requires_confirmation": PaymentStatus.PENDING,
    "requires_action": PaymentStatus.PENDING,
    "created": PaymentStatus.PENDING,
    "pending": PaymentStatus.PENDING,
    # In flight
    "processing": PaymentStatus.PROCESSING,
    "requires_capture": PaymentStatus.PROCESSING,
    # Outcomes
    "succeeded": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    "paid": PaymentStatus.COMPLETED,
    "payment_failed": PaymentStatus.FAILED,
    "failed": PaymentStatus.FAILED,
    "canceled": PaymentStatus.CANCELLED,
    "cancelled": PaymentStatus.CANCELLED,
    "refunded": PaymentStatus.REFUNDED,
}


def normalize_provider_state(raw_state: str | None) -> PaymentStatus:
    """Map a provider status string to PaymentStatus.

    Unknown states map to PROCESSING so an order is never orphaned by a
    change in the provider's vocabulary.
    """
    key = (raw_state or "").strip().lower()
    status = _PROVIDER_STATES.get(key)
    if status is None:
        logger.warning("Unknown provider payment state, treating as processing", provider_state=raw_state)
        return PaymentStatus.PROCESSING
    return status


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in VALID_PAYMENT_TRANSITIONS.get(current, set())
