from marketplace.domain import marketplace
from marketplace.order.order import Order
from marketplace.shared.paging import Page, fetch_all, fetch_page


@marketplace.repository(part_of=Order)
class OrderRepository:
    def _newest_first(self, **filters):
        return self._dao.query.filter(**filters).order_by(["-placed_at", "id"])

    def find_for_buyer(self, buyer_id) -> list[Order]:
        return fetch_all(self._newest_first(buyer_id=str(buyer_id)))

    def page_for_buyer(self, buyer_id, limit: int = 50, offset: int = 0) -> Page:
        return fetch_page(self._newest_first(buyer_id=str(buyer_id)), limit, offset)

    def page_for_seller(self, seller_id, limit: int = 50, offset: int = 0) -> Page:
        """Orders containing at least one of the seller's items."""
        return fetch_page(self._newest_first(seller_index__contains=f"|{seller_id}|"), limit, offset)
