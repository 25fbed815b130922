"""Configurable fake payment gateway for development and testing.

Simulates a Stripe-like provider without any external calls:
- create_payment_intent() returns deterministic-looking pi_/secret values
  and can be switched into an "unavailable" mode to exercise timeouts
- webhook payloads are signed with HMAC-SHA256 over "<timestamp>.<body>"
  using the configured secret, in the same "t=...,v1=..." header format
  Stripe uses, so signature failures behave like production
- make_event() builds signed callback bodies for tests and manual testing
"""

import hashlib
import hmac
import json
import time
from uuid import uuid4

from marketplace.errors import GatewayUnavailable, InvalidSignature
from marketplace.gateway.events import event_from_payload
from marketplace.gateway.port import GatewayEvent, IntentResult, PaymentGateway
from marketplace.shared.money import as_money, to_minor_units


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self, webhook_secret: str = "whsec_development", tolerance: int | None = None) -> None:
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance
        self.available: bool = True
        self.amount_override: float | None = None
        self.calls: list[dict] = []
        self.intents: dict[str, dict] = {}

    def configure(self, available: bool = True, amount_override: float | None = None) -> None:
        """Configure gateway behavior at runtime.

        amount_override makes the provider report a different amount than
        requested, which the caller must reject.
        """
        self.available = available
        self.amount_override = amount_override

    # -------------------------------------------------------------------
    # Intents
    # -------------------------------------------------------------------
    def create_payment_intent(
        self,
        amount: float,
        currency: str,
        metadata: dict,
        idempotency_key: str,
    ) -> IntentResult:
        call = {
            "method": "create_payment_intent",
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
            "idempotency_key": idempotency_key,
        }
        self.calls.append(call)

        if not self.available:
            raise GatewayUnavailable("Fake gateway is configured as unavailable")

        # Same idempotency key returns the same intent, as the real provider does
        for intent_id, intent in self.intents.items():
            if intent["idempotency_key"] == idempotency_key:
                return self._result(intent_id, intent)

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        intent = {
            "idempotency_key": idempotency_key,
            "client_secret": f"{intent_id}_secret_{uuid4().hex[:12]}",
            "amount": as_money(self.amount_override if self.amount_override is not None else amount),
            "currency": currency.upper(),
            "metadata": dict(metadata),
        }
        self.intents[intent_id] = intent
        return self._result(intent_id, intent)

    @staticmethod
    def _result(intent_id: str, intent: dict) -> IntentResult:
        return IntentResult(
            provider_payment_id=intent_id,
            client_secret=intent["client_secret"],
            amount=intent["amount"],
            currency=intent["currency"],
            provider_state="requires_payment_method",
        )

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def sign(self, payload: bytes, timestamp: int | None = None) -> str:
        """Return a signature header value for payload."""
        ts = int(time.time()) if timestamp is None else timestamp
        signed = f"{ts}.".encode() + payload
        digest = hmac.new(self.webhook_secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={digest}"

    def _verify(self, payload: bytes, signature: str) -> None:
        parts = dict(part.split("=", 1) for part in (signature or "").split(",") if "=" in part)
        if "t" not in parts or "v1" not in parts:
            raise InvalidSignature("Malformed signature header")
        try:
            timestamp = int(parts["t"])
        except ValueError as exc:
            raise InvalidSignature("Malformed signature timestamp") from exc

        expected = self.sign(payload, timestamp).split("v1=", 1)[1]
        if not hmac.compare_digest(expected, parts["v1"]):
            raise InvalidSignature("Signature does not match payload")

        if self.tolerance is not None and abs(time.time() - timestamp) > self.tolerance:
            raise InvalidSignature("Signature timestamp outside tolerance")

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        self._verify(payload, signature)
        try:
            data = json.loads(payload)
        except ValueError as exc:
            raise InvalidSignature(f"Payload is not valid JSON: {exc}") from exc
        return event_from_payload(data)

    def make_event(
        self,
        event_type: str,
        payment_intent_id: str,
        amount: float | None = None,
        currency: str = "USD",
        status: str | None = None,
        event_id: str | None = None,
        order_id: str | None = None,
        failure_message: str | None = None,
    ) -> tuple[bytes, str]:
        """Build a signed Stripe-style event body. Returns (payload, signature)."""
        intent = self.intents.get(payment_intent_id, {})
        if amount is None:
            amount = intent.get("amount", 0.0)
        metadata = dict(intent.get("metadata", {}))
        if order_id is not None:
            metadata["order_id"] = order_id

        if event_type.startswith("charge."):
            obj = {
                "object": "charge",
                "id": f"ch_fake_{uuid4().hex[:12]}",
                "payment_intent": payment_intent_id,
                "amount": to_minor_units(amount),
                "amount_refunded": to_minor_units(amount),
                "currency": currency.lower(),
                "metadata": metadata,
            }
        else:
            obj = {
                "object": "payment_intent",
                "id": payment_intent_id,
                "amount": to_minor_units(amount),
                "currency": currency.lower(),
                "status": status or event_type.rsplit(".", 1)[-1],
                "metadata": metadata,
            }
            if failure_message:
                obj["last_payment_error"] = {"message": failure_message}

        body = {
            "id": event_id or f"evt_fake_{uuid4().hex[:16]}",
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": obj},
        }
        payload = json.dumps(body).encode()
        return payload, self.sign(payload)
