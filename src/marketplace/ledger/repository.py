from marketplace.domain import marketplace
from marketplace.ledger.financial_record import FinancialRecord, FinancialStatus
from marketplace.shared.paging import Page, fetch_all, fetch_page


@marketplace.repository(part_of=FinancialRecord)
class FinancialRecordRepository:
    def _oldest_first(self, **filters):
        return self._dao.query.filter(**filters).order_by(["created_at", "id"])

    def for_order(self, order_id) -> list[FinancialRecord]:
        return fetch_all(self._oldest_first(order_id=str(order_id)))

    def for_seller(self, seller_id) -> list[FinancialRecord]:
        return fetch_all(self._oldest_first(seller_id=str(seller_id)))

    def paid_for_seller(self, seller_id) -> list[FinancialRecord]:
        return fetch_all(self._oldest_first(seller_id=str(seller_id), status=FinancialStatus.PAID.value))

    def page_for_seller(self, seller_id, limit: int = 50, offset: int = 0) -> Page:
        return fetch_page(self._oldest_first(seller_id=str(seller_id)), limit, offset)
