"""Shared BDD fixtures and step definitions for the marketplace."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from marketplace.ledger.financial_record import FinancialRecord
from marketplace.order.order import Order


@pytest.fixture()
def context():
    """Mutable scenario state shared between steps."""
    return {"order_id": None, "error": None, "acks": [], "deliveries": {}, "prices": {}}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the catalogue lists "{product_id}" from "{seller_id}" at {price:f} with {stock:d} in stock'))
def _(catalogue, context, product_id, seller_id, price, stock):
    catalogue.add_product(product_id, seller_id=seller_id, name=product_id, price=price, stock=stock)
    context["prices"][product_id] = price


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}" with payment "{payment_status}"'))
def _(context, status, payment_status):
    order = current_domain.repository_for(Order).get(context["order_id"])
    assert order.status == status
    assert order.payment_status == payment_status


@then(parsers.cfparse("the order has {count:d} ledger records"))
def _(context, count):
    assert len(current_domain.repository_for(FinancialRecord).for_order(context["order_id"])) == count
