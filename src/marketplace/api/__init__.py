"""Marketplace HTTP API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import ledger_router, order_router, payment_router, webhook_router

__all__ = ["order_router", "webhook_router", "payment_router", "ledger_router", "register_error_handlers"]
