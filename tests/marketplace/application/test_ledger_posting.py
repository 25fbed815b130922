"""Tests for posting and maintaining the seller ledger."""

import pytest
from protean import current_domain

from marketplace.errors import AccessDenied, InvalidTransition
from marketplace.ledger.fees import FeeSchedule, set_fee_schedule
from marketplace.ledger.financial_record import FinancialRecord, FinancialStatus
from marketplace.ledger.ledger import Ledger
from marketplace.ledger.payouts import clear_record, mark_paid, process_seller_payout, repost_ledger
from marketplace.ledger.summary import seller_financial_summary, seller_payout_history
from marketplace.order.order import Order
from marketplace.order.transitions import transition_order
from marketplace.payment.intents import create_intent


def _records(order_id):
    return current_domain.repository_for(FinancialRecord).for_order(order_id)


def _record_for(order_id, seller_id):
    return next(r for r in _records(order_id) if str(r.seller_id) == seller_id)


class TestPosting:
    def test_ledger_refuses_unpaid_order(self, make_order):
        order = current_domain.repository_for(Order).get(make_order())
        with pytest.raises(InvalidTransition):
            Ledger().post_for_completed_order(order)

    def test_posting_is_idempotent_per_item(self, paid_order):
        order_id, _ = paid_order()
        order = current_domain.repository_for(Order).get(order_id)

        assert Ledger().post_for_completed_order(order) == []
        assert len(_records(order_id)) == 2

    def test_repost_fills_missing_records(self, paid_order, notifier):
        order_id, _ = paid_order()
        notifier.reset()
        repo = current_domain.repository_for(FinancialRecord)
        missing = _record_for(order_id, "seller-2")
        repo._dao.delete(missing)

        postings = repost_ledger(order_id)

        assert [p["seller_id"] for p in postings] == ["seller-2"]
        assert len(_records(order_id)) == 2
        assert notifier.sent_to("seller-2")[0]["type"] == "sale_recorded"
        assert notifier.sent_to("seller-1") == []

    def test_already_posted_lines_are_skipped_on_add(self, paid_order):
        order_id, _ = paid_order()
        repo = current_domain.repository_for(FinancialRecord)
        repo._dao.delete(_record_for(order_id, "seller-2"))
        order = current_domain.repository_for(Order).get(order_id)

        ledger = Ledger()
        persisted = ledger.persist(ledger.prepare(order))

        assert [str(r.seller_id) for r in persisted] == ["seller-2"]
        assert len(_records(order_id)) == 2

    def test_category_fee_rates_apply(self, make_order, deliver):
        set_fee_schedule(FeeSchedule(platform_rate=0.10, category_rates={"lighting": 0.20}))
        order_id = make_order()
        handle = create_intent(order_id)
        deliver("payment_intent.succeeded", handle.provider_payment_id)

        assert _record_for(order_id, "seller-1").platform_fee == 2.5
        lamp = _record_for(order_id, "seller-2")
        assert lamp.platform_fee == 6.0
        assert lamp.net_amount == 24.0


class TestClearingAndPayment:
    def test_clear_then_pay(self, paid_order, admin):
        order_id, _ = paid_order()
        record = _record_for(order_id, "seller-1")

        assert clear_record(str(record.id), caller=admin) == FinancialStatus.CLEARED.value
        status = mark_paid(str(record.id), "payout-2024-001", payout_method="bank_transfer", caller=admin)
        assert status == FinancialStatus.PAID.value

        stored = current_domain.repository_for(FinancialRecord).get(record.id)
        assert stored.payout_id == "payout-2024-001"
        assert stored.payout_method == "bank_transfer"

    def test_payout_notifies_seller(self, paid_order, notifier):
        order_id, _ = paid_order()
        record = _record_for(order_id, "seller-1")
        clear_record(str(record.id))
        notifier.reset()

        mark_paid(str(record.id), "payout-2024-002")

        assert notifier.sent_to("seller-1") == [
            {"type": "payout_sent", "record_id": str(record.id), "payout_id": "payout-2024-002"}
        ]

    def test_paying_uncleared_record_fails(self, paid_order):
        order_id, _ = paid_order()
        record = _record_for(order_id, "seller-1")
        with pytest.raises(InvalidTransition):
            mark_paid(str(record.id), "payout-2024-001")

    def test_clearing_twice_fails(self, paid_order):
        order_id, _ = paid_order()
        record = _record_for(order_id, "seller-1")
        clear_record(str(record.id))
        with pytest.raises(InvalidTransition):
            clear_record(str(record.id))

    def test_sellers_cannot_manage_payouts(self, paid_order, seller):
        order_id, _ = paid_order()
        record = _record_for(order_id, "seller-1")
        with pytest.raises(AccessDenied):
            clear_record(str(record.id), caller=seller)


class TestSellerPayout:
    def test_batch_payout(self, paid_order):
        first_order, _ = paid_order()
        second_order, _ = paid_order(lines=[{"product_id": "prod-a", "quantity": 4}])
        record_ids = [str(_record_for(o, "seller-1").id) for o in (first_order, second_order)]
        for record_id in record_ids:
            clear_record(record_id)

        result = process_seller_payout("seller-1", record_ids, "payout-batch-7", payout_method="bank_transfer")

        assert result["payout_id"] == "payout-batch-7"
        assert result["net_total"] == 22.5 + 45.0
        repo = current_domain.repository_for(FinancialRecord)
        assert {repo.get(r).status for r in record_ids} == {FinancialStatus.PAID.value}

    def test_payout_is_all_or_nothing(self, paid_order):
        order_id, _ = paid_order()
        cleared = _record_for(order_id, "seller-1")
        clear_record(str(cleared.id))
        other = _record_for(order_id, "seller-2")
        clear_record(str(other.id))

        with pytest.raises(InvalidTransition):
            process_seller_payout("seller-1", [str(cleared.id), str(other.id)], "payout-mixed")

        repo = current_domain.repository_for(FinancialRecord)
        assert repo.get(cleared.id).status == FinancialStatus.CLEARED.value

    def test_pending_records_are_not_paid_out(self, paid_order):
        order_id, _ = paid_order()
        record = _record_for(order_id, "seller-1")
        with pytest.raises(InvalidTransition):
            process_seller_payout("seller-1", [str(record.id)], "payout-early")

    def test_empty_batch_is_rejected(self):
        with pytest.raises(InvalidTransition):
            process_seller_payout("seller-1", [], "payout-empty")


class TestSellerSummary:
    def test_summary_by_status(self, paid_order):
        first_order, _ = paid_order()
        second_order, _ = paid_order(lines=[{"product_id": "prod-a", "quantity": 4}])
        paid = _record_for(first_order, "seller-1")
        clear_record(str(paid.id))
        mark_paid(str(paid.id), "payout-1")

        summary = seller_financial_summary("seller-1")

        assert summary.total_earnings == 67.5
        assert summary.paid_amount == 22.5
        assert summary.pending_amount == 45.0
        assert summary.cleared_amount == 0.0
        assert summary.total_platform_fees == 7.5
        assert summary.record_count == 2
        assert summary.order_count == 2

    def test_cancelled_records_are_excluded_from_earnings(self, paid_order):
        order_id, _ = paid_order()
        transition_order(order_id, "Cancelled")

        summary = seller_financial_summary("seller-1")
        assert summary.total_earnings == 0.0
        assert summary.cancelled_amount == 22.5
        assert summary.record_count == 0

    def test_seller_reads_only_own_summary(self, seller):
        assert seller_financial_summary("seller-1", caller=seller).record_count == 0
        with pytest.raises(AccessDenied):
            seller_financial_summary("seller-2", caller=seller)


class TestDeliveryClearing:
    def test_delivery_clears_pending_records(self, paid_order):
        order_id, _ = paid_order()
        for status in ("Processing", "Shipped"):
            transition_order(order_id, status)
        assert {r.status for r in _records(order_id)} == {FinancialStatus.PENDING.value}

        transition_order(order_id, "Delivered")

        records = _records(order_id)
        assert {r.status for r in records} == {FinancialStatus.CLEARED.value}
        assert all(r.cleared_at is not None for r in records)

    def test_delivered_records_can_be_paid_out(self, paid_order):
        order_id, _ = paid_order()
        for status in ("Processing", "Shipped", "Delivered"):
            transition_order(order_id, status)
        record = _record_for(order_id, "seller-1")

        result = process_seller_payout("seller-1", [str(record.id)], "payout-after-delivery")

        assert result["net_total"] == 22.5


class TestSellerPayoutHistory:
    def test_history_groups_records_by_payout(self, paid_order):
        first_order, _ = paid_order()
        second_order, _ = paid_order(lines=[{"product_id": "prod-a", "quantity": 4}])
        first = _record_for(first_order, "seller-1")
        second = _record_for(second_order, "seller-1")
        for record in (first, second):
            clear_record(str(record.id))

        process_seller_payout("seller-1", [str(first.id)], "payout-a", payout_method="bank_transfer")
        process_seller_payout("seller-1", [str(second.id)], "payout-b", payout_method="bank_transfer")

        history = seller_payout_history("seller-1")

        assert [p.payout_id for p in history] == ["payout-b", "payout-a"]
        assert history[0].record_ids == [str(second.id)]
        assert history[0].order_ids == [second_order]
        assert history[0].net_total == 45.0
        assert history[1].net_total == 22.5
        assert history[1].payout_method == "bank_transfer"

    def test_unpaid_records_are_not_in_history(self, paid_order):
        paid_order()
        assert seller_payout_history("seller-1") == []

    def test_seller_reads_only_own_history(self, seller):
        assert seller_payout_history("seller-1", caller=seller) == []
        with pytest.raises(AccessDenied):
            seller_payout_history("seller-2", caller=seller)
