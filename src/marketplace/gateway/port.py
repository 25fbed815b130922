"""Payment gateway port (abstract interface).

Defines the contract every payment provider adapter implements, so the
FakeGateway (dev/test) and StripeGateway (production) are interchangeable
without touching domain or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class IntentResult:
    """A payment intent as confirmed by the provider."""

    provider_payment_id: str
    client_secret: str
    amount: float
    currency: str
    provider_state: str


@dataclass(frozen=True)
class GatewayEvent:
    """A verified provider callback, reduced to what reconciliation needs.

    provider_state is None for events that carry no payment state
    (account updates, payouts and the like).
    """

    event_id: str
    event_type: str
    payment_intent_id: str | None = None
    provider_state: str | None = None
    amount: float | None = None
    currency: str | None = None
    failure_reason: str | None = None
    order_id: str | None = None
    payload: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = "gateway"

    @abstractmethod
    def create_payment_intent(
        self,
        amount: float,
        currency: str,
        metadata: dict,
        idempotency_key: str,
    ) -> IntentResult:
        """Create a payment intent for amount (major units) in currency.

        Raises GatewayUnavailable when the provider cannot be reached.
        """
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        """Verify the signature over the raw payload and parse it.

        Raises InvalidSignature when verification fails.
        """
        ...
