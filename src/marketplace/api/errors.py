"""HTTP mapping for the marketplace error taxonomy.

Responses carry {"error": <code>, "detail": <message or field errors>}.
Transient failures and write conflicts answer 503 with Retry-After so clients
and the payment provider retry; everything else is a final answer.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from marketplace.errors import (
    AccessDenied,
    AmountMismatch,
    EmptyCart,
    GatewayUnavailable,
    InsufficientStock,
    InvalidAddress,
    InvalidSignature,
    InvalidTransition,
    LockTimeout,
    ProductUnavailable,
    StalePrice,
    WebhookProcessingFailed,
)

RETRY_AFTER_SECONDS = 5

_ERROR_RESPONSES = {
    EmptyCart: (422, "empty_cart"),
    InvalidAddress: (422, "invalid_address"),
    ProductUnavailable: (422, "product_unavailable"),
    StalePrice: (409, "stale_price"),
    InsufficientStock: (409, "insufficient_stock"),
    AmountMismatch: (409, "amount_mismatch"),
    InvalidTransition: (409, "invalid_transition"),
    AccessDenied: (403, "access_denied"),
    InvalidSignature: (400, "invalid_signature"),
    GatewayUnavailable: (503, "gateway_unavailable"),
    LockTimeout: (503, "lock_timeout"),
    WebhookProcessingFailed: (503, "webhook_processing_failed"),
    # Optimistic concurrency conflict from another process writing the same aggregate
    ExpectedVersionError: (503, "concurrent_update"),
}


def _detail(exc: Exception):
    if isinstance(exc, ValidationError):
        return exc.messages
    return str(exc)


def _make_handler(status_code: int, code: str):
    async def handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
        headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if status_code == 503 else None
        return JSONResponse(
            status_code=status_code,
            content={"error": code, "detail": _detail(exc)},
            headers=headers,
        )

    return handler


def register_error_handlers(app: FastAPI) -> None:
    """Register Protean's default handlers, then the marketplace-specific ones."""
    register_exception_handlers(app)
    for exc_class, (status_code, code) in _ERROR_RESPONSES.items():
        app.add_exception_handler(exc_class, _make_handler(status_code, code))
