"""Stripe payment gateway adapter.

Creates PaymentIntents through the stripe-python SDK and verifies webhook
signatures with stripe.Webhook.construct_event(). Amounts cross this boundary
in minor units (cents); everything else in the system uses major units.
"""

import json

import stripe
import structlog

from marketplace.errors import GatewayUnavailable, InvalidSignature
from marketplace.gateway.events import event_from_payload
from marketplace.gateway.port import GatewayEvent, IntentResult, PaymentGateway
from marketplace.shared.money import from_minor_units, to_minor_units

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    name = "stripe"

    def __init__(self, api_key: str, webhook_secret: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        stripe.default_http_client = stripe.new_default_http_client(timeout=timeout)

    def create_payment_intent(
        self,
        amount: float,
        currency: str,
        metadata: dict,
        idempotency_key: str,
    ) -> IntentResult:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                idempotency_key=idempotency_key,
                amount=to_minor_units(amount),
                currency=currency.lower(),
                metadata={k: str(v) for k, v in metadata.items()},
                automatic_payment_methods={"enabled": True},
            )
        except (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError) as exc:
            logger.warning(
                "Stripe unavailable while creating payment intent",
                idempotency_key=idempotency_key,
                error=str(exc),
            )
            raise GatewayUnavailable(f"Stripe request failed: {exc}") from exc

        return IntentResult(
            provider_payment_id=intent["id"],
            client_secret=intent["client_secret"],
            amount=from_minor_units(intent["amount"]),
            currency=str(intent["currency"]).upper(),
            provider_state=intent["status"],
        )

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature(str(exc)) from exc
        except ValueError as exc:
            raise InvalidSignature(f"Payload is not valid JSON: {exc}") from exc

        return event_from_payload(json.loads(payload))
