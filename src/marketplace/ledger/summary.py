"""Read-only seller earnings and payout views (no locks taken)."""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from protean.utils.globals import current_domain

from marketplace.ledger.financial_record import FinancialRecord, FinancialStatus
from marketplace.shared.access import Action, Caller, authorize, ensure_allowed
from marketplace.shared.money import money_sum


@dataclass(frozen=True)
class SellerFinancialSummary:
    seller_id: str
    total_earnings: float
    pending_amount: float
    cleared_amount: float
    paid_amount: float
    cancelled_amount: float
    total_platform_fees: float
    record_count: int
    order_count: int


def seller_financial_summary(seller_id: str, caller: Caller | None = None) -> SellerFinancialSummary:
    ensure_allowed(authorize(caller, Action.VIEW_FINANCIALS, seller_id=seller_id))

    records = current_domain.repository_for(FinancialRecord).for_seller(seller_id)
    live = [r for r in records if r.status != FinancialStatus.CANCELLED.value]

    def net_for(status: FinancialStatus) -> float:
        return money_sum(r.net_amount for r in records if r.status == status.value)

    return SellerFinancialSummary(
        seller_id=str(seller_id),
        total_earnings=money_sum(r.net_amount for r in live),
        pending_amount=net_for(FinancialStatus.PENDING),
        cleared_amount=net_for(FinancialStatus.CLEARED),
        paid_amount=net_for(FinancialStatus.PAID),
        cancelled_amount=net_for(FinancialStatus.CANCELLED),
        total_platform_fees=money_sum(r.platform_fee for r in live),
        record_count=len(live),
        order_count=len({str(r.order_id) for r in live}),
    )


@dataclass(frozen=True)
class SellerPayout:
    payout_id: str
    payout_method: str | None
    record_ids: list[str]
    order_ids: list[str]
    net_total: float
    paid_at: datetime | None


def seller_payout_history(seller_id: str, caller: Caller | None = None) -> list[SellerPayout]:
    """Paid-out records grouped by payout reference, most recent payout first."""
    ensure_allowed(authorize(caller, Action.VIEW_FINANCIALS, seller_id=seller_id))

    by_payout: dict[str, list[FinancialRecord]] = defaultdict(list)
    for record in current_domain.repository_for(FinancialRecord).paid_for_seller(seller_id):
        by_payout[record.payout_id].append(record)

    payouts = [
        SellerPayout(
            payout_id=payout_id,
            payout_method=records[0].payout_method,
            record_ids=[str(r.id) for r in records],
            order_ids=sorted({str(r.order_id) for r in records}),
            net_total=money_sum(r.net_amount for r in records),
            paid_at=max((r.paid_at for r in records if r.paid_at), default=None),
        )
        for payout_id, records in by_payout.items()
    ]
    return sorted(payouts, key=lambda p: (p.paid_at is not None, p.paid_at or 0), reverse=True)
