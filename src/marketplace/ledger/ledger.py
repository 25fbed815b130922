"""Financial ledger posting.

The Ledger runs inside the caller's Unit of Work: webhook ingestion posts
records in the same transaction that completes the payment, and order
cancellation cancels open records in the same transaction that cancels the
order. Posting is idempotent per order item: order_item_id is unique, so a
record that was already posted is rejected on add and skipped.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from marketplace.errors import InvalidTransition
from marketplace.ledger.fees import FeeSchedule, get_fee_schedule
from marketplace.ledger.financial_record import FinancialRecord, FinancialStatus
from marketplace.order.order import Order
from marketplace.payment.states import PaymentStatus
from marketplace.shared.money import money_sum

logger = structlog.get_logger(__name__)


class Ledger:
    def __init__(self, fee_schedule: FeeSchedule | None = None) -> None:
        self.fee_schedule = fee_schedule or get_fee_schedule()

    @property
    def records(self):
        return current_domain.repository_for(FinancialRecord)

    def prepare(self, order: Order) -> list[FinancialRecord]:
        """Build (without saving) one record per line of a paid order."""
        if order.payment_status != PaymentStatus.COMPLETED.value:
            raise InvalidTransition(
                {"payment_status": [f"Cannot post ledger for order {order.id} with payment {order.payment_status}"]}
            )

        records = []
        for item in order.items:
            fees = self.fee_schedule.breakdown(item.subtotal, item.category_snapshot)
            records.append(
                FinancialRecord.post(
                    seller_id=item.seller_id,
                    order_id=order.id,
                    order_item_id=item.id,
                    fees=fees,
                )
            )
        return records

    def persist(self, records: list[FinancialRecord]) -> list[FinancialRecord]:
        """Save records, skipping lines that already have one. Returns the records saved."""
        persisted = []
        for record in records:
            try:
                self.records.add(record)
            except ValidationError as exc:
                if not isinstance(exc.messages, dict) or "order_item_id" not in exc.messages:
                    raise
                logger.info(
                    "Ledger record already posted, skipping",
                    order_id=str(record.order_id),
                    order_item_id=str(record.order_item_id),
                )
                continue
            persisted.append(record)
        return persisted

    def post_for_completed_order(self, order: Order) -> list[FinancialRecord]:
        records = self.persist(self.prepare(order))
        if records:
            logger.info(
                "Posted ledger records",
                order_id=str(order.id),
                record_count=len(records),
                net_total=money_sum(r.net_amount for r in records),
            )
        return records

    def clear_for_order(self, order_id) -> list[FinancialRecord]:
        """Clear the order's PENDING records once its goods are delivered."""
        cleared = []
        for record in self.records.for_order(order_id):
            if record.status == FinancialStatus.PENDING.value:
                record.clear()
                self.records.add(record)
                cleared.append(record)
        if cleared:
            logger.info("Cleared ledger records", order_id=str(order_id), record_count=len(cleared))
        return cleared

    def cancel_for_order(self, order_id) -> list[FinancialRecord]:
        """Cancel every record of the order that has not been paid out."""
        cancelled = []
        for record in self.records.for_order(order_id):
            if record.is_open:
                record.cancel()
                self.records.add(record)
                cancelled.append(record)
        if cancelled:
            logger.info("Cancelled ledger records", order_id=str(order_id), record_count=len(cancelled))
        return cancelled


def posting_summary(records: list[FinancialRecord]) -> list[dict]:
    return [
        {
            "record_id": str(record.id),
            "seller_id": str(record.seller_id),
            "order_id": str(record.order_id),
            "net_amount": record.net_amount,
        }
        for record in records
    ]

