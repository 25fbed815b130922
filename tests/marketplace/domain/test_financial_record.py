"""Tests for the FinancialRecord aggregate."""

import pytest
from protean.exceptions import ValidationError

from marketplace.errors import InvalidTransition
from marketplace.ledger.events import FinancialRecordPosted, FinancialRecordStatusChanged
from marketplace.ledger.fees import FeeBreakdown, FeeSchedule
from marketplace.ledger.financial_record import FinancialRecord, FinancialStatus


def _post(gross=25.0):
    return FinancialRecord.post(
        seller_id="seller-1",
        order_id="ord-001",
        order_item_id="item-001",
        fees=FeeSchedule(platform_rate=0.10).breakdown(gross),
    )


class TestPosting:
    def test_posted_record_is_pending(self):
        record = _post()
        assert record.status == FinancialStatus.PENDING.value
        assert record.net_amount == 22.5
        assert record.platform_fee == 2.5
        assert isinstance(record._events[0], FinancialRecordPosted)

    def test_net_amount_must_reconcile_with_fees(self):
        with pytest.raises(ValidationError) as exc:
            FinancialRecord.post(
                seller_id="seller-1",
                order_id="ord-001",
                order_item_id="item-001",
                fees=FeeBreakdown(gross_amount=25.0, platform_fee=2.5, processing_fee=0.0, net_amount=25.0),
            )
        assert "net_amount" in exc.value.messages


class TestLifecycle:
    def test_clear_then_pay(self):
        record = _post()
        record._events.clear()
        record.clear()
        record.mark_paid("payout-001", payout_method="bank_transfer", payout_details={"batch": 7})

        assert record.status == FinancialStatus.PAID.value
        assert record.payout_id == "payout-001"
        assert record.cleared_at is not None
        assert record.paid_at is not None
        assert [e.to_status for e in record._events if isinstance(e, FinancialRecordStatusChanged)] == [
            "Cleared",
            "Paid",
        ]

    def test_pending_record_cannot_be_paid(self):
        record = _post()
        with pytest.raises(InvalidTransition):
            record.mark_paid("payout-001")
        assert record.payout_id is None

    def test_payout_reference_is_required(self):
        record = _post()
        record.clear()
        with pytest.raises(ValidationError):
            record.mark_paid("")

    def test_open_records_can_be_cancelled(self):
        pending = _post()
        pending.cancel()
        assert pending.status == FinancialStatus.CANCELLED.value
        assert not pending.is_open

        cleared = _post()
        cleared.clear()
        cleared.cancel()
        assert cleared.status == FinancialStatus.CANCELLED.value

    def test_paid_record_cannot_be_cancelled(self):
        record = _post()
        record.clear()
        record.mark_paid("payout-001")
        with pytest.raises(InvalidTransition):
            record.cancel()
