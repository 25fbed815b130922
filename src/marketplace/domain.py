"""Marketplace bounded context: Orders, Payments, Webhooks and the Seller Ledger.

Turns a buyer's cart into an Order with immutable line snapshots, drives the
Order and Payment state machines from provider callbacks, and posts one
FinancialRecord per order line once a payment completes.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
