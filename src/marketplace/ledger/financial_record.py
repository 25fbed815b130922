"""FinancialRecord aggregate: one seller's earnings from one order line.

Posted exactly once per order item after the order's payment completes, then
moved through clearing and payout by back-office operations.

State Machine:
    PENDING → CLEARED → PAID
    PENDING | CLEARED → CANCELLED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.ledger.events import FinancialRecordPosted, FinancialRecordStatusChanged
from marketplace.ledger.fees import FeeBreakdown
from marketplace.shared.money import amounts_equal, to_decimal


class FinancialStatus(Enum):
    PENDING = "Pending"
    CLEARED = "Cleared"
    PAID = "Paid"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    FinancialStatus.PENDING: {FinancialStatus.CLEARED, FinancialStatus.CANCELLED},
    FinancialStatus.CLEARED: {FinancialStatus.PAID, FinancialStatus.CANCELLED},
    FinancialStatus.PAID: set(),  # Terminal
    FinancialStatus.CANCELLED: set(),  # Terminal
}


@marketplace.aggregate(schema_name="financial_records")
class FinancialRecord:
    seller_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True, unique=True)
    gross_amount = Float(required=True, min_value=0.0)
    platform_fee = Float(default=0.0, min_value=0.0)
    processing_fee = Float(default=0.0, min_value=0.0)
    net_amount = Float(required=True)
    status = String(
        choices=FinancialStatus,
        default=FinancialStatus.PENDING.value,
    )
    payout_id = String(max_length=255)
    payout_method = String(max_length=50)
    payout_details = Text()  # JSON: payout provider details
    created_at = DateTime()
    updated_at = DateTime()
    cleared_at = DateTime()
    paid_at = DateTime()

    @invariant.post
    def net_amount_reconciles_with_fees(self):
        if self.gross_amount is None or self.net_amount is None:
            return
        expected = to_decimal(self.gross_amount) - to_decimal(self.platform_fee) - to_decimal(self.processing_fee)
        if not amounts_equal(expected, self.net_amount):
            raise ValidationError(
                {"net_amount": ["Net amount must equal gross amount less platform and processing fees"]}
            )

    @classmethod
    def post(cls, seller_id, order_id, order_item_id, fees: FeeBreakdown):
        now = datetime.now(UTC)
        record = cls(
            seller_id=seller_id,
            order_id=order_id,
            order_item_id=order_item_id,
            gross_amount=fees.gross_amount,
            platform_fee=fees.platform_fee,
            processing_fee=fees.processing_fee,
            net_amount=fees.net_amount,
            status=FinancialStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        record.raise_(
            FinancialRecordPosted(
                record_id=str(record.id),
                seller_id=str(seller_id),
                order_id=str(order_id),
                order_item_id=str(order_item_id),
                gross_amount=record.gross_amount,
                platform_fee=record.platform_fee,
                processing_fee=record.processing_fee,
                net_amount=record.net_amount,
                posted_at=now,
            )
        )
        return record

    def _assert_can_transition(self, target_status: FinancialStatus) -> None:
        current = FinancialStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _transition(self, target_status: FinancialStatus) -> datetime:
        self._assert_can_transition(target_status)
        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self.raise_(
            FinancialRecordStatusChanged(
                record_id=str(self.id),
                seller_id=str(self.seller_id),
                from_status=previous,
                to_status=target_status.value,
                payout_id=self.payout_id,
                changed_at=now,
            )
        )
        return now

    @property
    def is_open(self) -> bool:
        return self.status in (FinancialStatus.PENDING.value, FinancialStatus.CLEARED.value)

    def clear(self) -> None:
        self.cleared_at = self._transition(FinancialStatus.CLEARED)

    def mark_paid(self, payout_reference: str, payout_method: str | None = None, payout_details: dict | None = None):
        if not payout_reference:
            raise ValidationError({"payout_reference": ["is required"]})
        self._assert_can_transition(FinancialStatus.PAID)
        self.payout_id = payout_reference
        self.payout_method = payout_method
        self.payout_details = json.dumps(payout_details) if payout_details else None
        self.paid_at = self._transition(FinancialStatus.PAID)

    def cancel(self) -> None:
        self._transition(FinancialStatus.CANCELLED)
