"""Error taxonomy for the marketplace core.

Validation and integrity failures extend Protean's ValidationError so they
carry a field -> messages mapping and roll back the enclosing Unit of Work.
Transient failures share TransientError so callers (and the HTTP layer) can
tell a retryable condition apart from a rejected request.
"""

from protean.exceptions import ValidationError


# ---------------------------------------------------------------------------
# Validation (rejected input, nothing persisted)
# ---------------------------------------------------------------------------
class EmptyCart(ValidationError):
    """The cart snapshot had no lines."""


class InvalidAddress(ValidationError):
    """The shipping address is missing required parts."""


class ProductUnavailable(ValidationError):
    """A product does not exist, is inactive, or belongs to an unverified seller."""


class StalePrice(ValidationError):
    """The client submitted a unit price lower than the current catalogue price."""


# ---------------------------------------------------------------------------
# Integrity (the request conflicts with current state)
# ---------------------------------------------------------------------------
class InsufficientStock(ValidationError):
    """Requested quantity exceeds the available stock."""


class AmountMismatch(ValidationError):
    """A payment amount disagrees with the order total."""


class InvalidTransition(ValidationError):
    """A state machine was asked for a transition it does not allow."""


# ---------------------------------------------------------------------------
# Authorization and authenticity
# ---------------------------------------------------------------------------
class AccessDenied(Exception):
    """The caller is not allowed to perform the action."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidSignature(Exception):
    """A webhook payload failed signature verification."""


# ---------------------------------------------------------------------------
# Transient (safe to retry)
# ---------------------------------------------------------------------------
class TransientError(Exception):
    """Base for failures that may succeed when retried."""

    retryable = True


class GatewayUnavailable(TransientError):
    """The payment provider could not be reached or timed out."""


class LockTimeout(TransientError):
    """A row lock could not be acquired within the configured bound."""

    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout}s waiting for lock {key}")
        self.key = key
        self.timeout = timeout


class WebhookProcessingFailed(TransientError):
    """A verified webhook could not be applied; the provider should redeliver."""

    def __init__(self, event_id: str, error: str) -> None:
        super().__init__(f"Webhook {event_id} failed: {error}")
        self.event_id = event_id
        self.error = error
