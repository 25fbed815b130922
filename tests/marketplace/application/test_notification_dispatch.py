"""Tests for notifier delivery and the event handlers that send notifications."""

from datetime import UTC, datetime

from protean import current_domain

from marketplace.ledger.events import FinancialRecordPosted, FinancialRecordStatusChanged
from marketplace.notifications import get_notifier, notify_user, reset_notifier
from marketplace.notifications.adapters import FakeNotifier, LogNotifier
from marketplace.notifications.ledger_events import LedgerNotificationsHandler
from marketplace.notifications.order_events import OrderNotificationsHandler
from marketplace.order.events import OrderStatusChanged
from marketplace.order.order import Order


class TestNotifyUser:
    def test_delivers_to_the_active_notifier(self, notifier):
        assert notify_user("buyer-1", {"type": "order_confirmed", "order_id": "ord-1"}) is True
        assert notifier.sent_to("buyer-1") == [{"type": "order_confirmed", "order_id": "ord-1"}]

    def test_failure_is_logged_and_reported(self, notifier):
        notifier.configure(should_succeed=False, failure_reason="SMTP down")

        assert notify_user("buyer-1", {"type": "order_confirmed"}) is False
        assert notifier.sent == []

    def test_default_notifier_logs(self):
        reset_notifier()
        assert isinstance(get_notifier(), LogNotifier)

    def test_fake_notifier_reset(self):
        fake = FakeNotifier()
        fake.configure(should_succeed=False)
        fake.reset()
        fake.notify("seller-1", {"type": "sale_recorded"})
        assert fake.sent_to("seller-1") == [{"type": "sale_recorded"}]


class TestOrderNotificationsHandler:
    def _status_changed(self, order_id, to_status):
        return OrderStatusChanged(
            order_id=order_id,
            from_status="Pending",
            to_status=to_status,
            changed_at=datetime.now(UTC),
        )

    def test_confirmation_notifies_buyer(self, make_order, notifier):
        order_id = make_order()
        order = current_domain.repository_for(Order).get(order_id)

        OrderNotificationsHandler().on_order_status_changed(self._status_changed(order_id, "Confirmed"))

        assert notifier.sent_to("buyer-1") == [
            {"type": "order_confirmed", "order_id": order_id, "total_amount": order.total_amount}
        ]

    def test_other_transitions_send_nothing(self, make_order, notifier):
        order_id = make_order()

        OrderNotificationsHandler().on_order_status_changed(self._status_changed(order_id, "Cancelled"))

        assert notifier.sent == []


class TestLedgerNotificationsHandler:
    def test_posting_notifies_seller(self, notifier):
        event = FinancialRecordPosted(
            record_id="rec-1",
            seller_id="seller-1",
            order_id="ord-1",
            order_item_id="item-1",
            gross_amount=25.0,
            platform_fee=2.5,
            processing_fee=0.0,
            net_amount=22.5,
            posted_at=datetime.now(UTC),
        )

        LedgerNotificationsHandler().on_record_posted(event)

        assert notifier.sent_to("seller-1") == [
            {"type": "sale_recorded", "order_id": "ord-1", "record_id": "rec-1", "net_amount": 22.5}
        ]

    def test_payout_notifies_seller(self, notifier):
        event = FinancialRecordStatusChanged(
            record_id="rec-1",
            seller_id="seller-1",
            from_status="Cleared",
            to_status="Paid",
            payout_id="payout-9",
            changed_at=datetime.now(UTC),
        )

        LedgerNotificationsHandler().on_record_status_changed(event)

        assert notifier.sent_to("seller-1") == [{"type": "payout_sent", "record_id": "rec-1", "payout_id": "payout-9"}]

    def test_clearing_sends_nothing(self, notifier):
        event = FinancialRecordStatusChanged(
            record_id="rec-1",
            seller_id="seller-1",
            from_status="Pending",
            to_status="Cleared",
            changed_at=datetime.now(UTC),
        )

        LedgerNotificationsHandler().on_record_status_changed(event)

        assert notifier.sent == []

    def test_notifier_failure_does_not_raise(self, notifier):
        notifier.configure(should_succeed=False)
        event = FinancialRecordStatusChanged(
            record_id="rec-1",
            seller_id="seller-1",
            from_status="Cleared",
            to_status="Paid",
            payout_id="payout-9",
            changed_at=datetime.now(UTC),
        )

        LedgerNotificationsHandler().on_record_status_changed(event)

        assert notifier.sent == []
