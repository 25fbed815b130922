"""Seller notifications driven by FinancialRecord events."""

from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.ledger.events import FinancialRecordPosted, FinancialRecordStatusChanged
from marketplace.ledger.financial_record import FinancialRecord, FinancialStatus
from marketplace.notifications import notify_user


@marketplace.event_handler(part_of=FinancialRecord)
class LedgerNotificationsHandler:
    """Reacts to ledger postings and payouts to keep sellers informed."""

    @handle(FinancialRecordPosted)
    def on_record_posted(self, event: FinancialRecordPosted) -> None:
        """Tell the seller about the sale recorded for one order line."""
        notify_user(
            event.seller_id,
            {
                "type": "sale_recorded",
                "order_id": str(event.order_id),
                "record_id": str(event.record_id),
                "net_amount": event.net_amount,
            },
        )

    @handle(FinancialRecordStatusChanged)
    def on_record_status_changed(self, event: FinancialRecordStatusChanged) -> None:
        if event.to_status != FinancialStatus.PAID.value:
            return
        notify_user(
            event.seller_id,
            {
                "type": "payout_sent",
                "record_id": str(event.record_id),
                "payout_id": event.payout_id,
            },
        )
