from marketplace.domain import marketplace
from marketplace.payment.payment import Payment


@marketplace.repository(part_of=Payment)
class PaymentRepository:
    def find_by_order_id(self, order_id) -> Payment | None:
        return self._dao.query.filter(order_id=str(order_id)).all().first

    def find_by_provider_payment_id(self, provider_payment_id) -> Payment | None:
        if not provider_payment_id:
            return None
        return self._dao.query.filter(provider_payment_id=str(provider_payment_id)).all().first
