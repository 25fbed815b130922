"""Marketplace core: order lifecycle, payment reconciliation and seller ledger."""
