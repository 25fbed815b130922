"""Paginated order listings for buyers and sellers (no locks taken)."""

from protean.utils.globals import current_domain

from marketplace.order.order import Order
from marketplace.shared.access import Action, Caller, authorize, ensure_allowed
from marketplace.shared.paging import Page


def orders_for_buyer(buyer_id: str, limit: int = 50, offset: int = 0) -> Page:
    """The buyer's own orders, newest first."""
    return current_domain.repository_for(Order).page_for_buyer(buyer_id, limit=limit, offset=offset)


def orders_for_seller(seller_id: str, caller: Caller | None = None, limit: int = 50, offset: int = 0) -> Page:
    """Orders with at least one of the seller's items, newest first.

    Sellers may only list their own orders; administrators may list anyone's.
    """
    ensure_allowed(authorize(caller, Action.VIEW_ORDER, seller_ids=[seller_id]))
    return current_domain.repository_for(Order).page_for_seller(seller_id, limit=limit, offset=offset)
