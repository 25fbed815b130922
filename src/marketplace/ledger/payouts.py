"""Ledger maintenance: clearing, payouts and re-posting.

Each service locks the order the affected records belong to (the same key
order cancellation and webhook ingestion use) and then runs its command in
one Unit of Work. Calls made out of order (paying a record that was never
cleared, clearing a paid record) fail with InvalidTransition.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.errors import InvalidTransition
from marketplace.ledger.financial_record import FinancialRecord, FinancialStatus
from marketplace.ledger.ledger import Ledger, posting_summary
from marketplace.order.order import Order
from marketplace.shared.access import Action, Caller, authorize, ensure_allowed
from marketplace.shared.locking import order_key, row_locks
from marketplace.shared.money import money_sum

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="FinancialRecord")
class ClearFinancialRecord:
    record_id = Identifier(required=True)


@marketplace.command(part_of="FinancialRecord")
class MarkFinancialRecordPaid:
    record_id = Identifier(required=True)
    payout_reference = String(required=True, max_length=255)
    payout_method = String(max_length=50)
    payout_details = Text()  # JSON


@marketplace.command(part_of="FinancialRecord")
class ProcessSellerPayout:
    seller_id = Identifier(required=True)
    record_ids = Text(required=True)  # JSON: list of record ids
    payout_reference = String(required=True, max_length=255)
    payout_method = String(max_length=50)


@marketplace.command(part_of="FinancialRecord")
class PostLedgerForOrder:
    order_id = Identifier(required=True)


@marketplace.command_handler(part_of=FinancialRecord)
class FinancialRecordHandler:
    @handle(ClearFinancialRecord)
    def clear_record(self, command):
        repo = current_domain.repository_for(FinancialRecord)
        record = repo.get(command.record_id)
        record.clear()
        repo.add(record)
        logger.info("Financial record cleared", record_id=str(record.id), seller_id=str(record.seller_id))
        return record.status

    @handle(MarkFinancialRecordPaid)
    def mark_paid(self, command):
        repo = current_domain.repository_for(FinancialRecord)
        record = repo.get(command.record_id)
        record.mark_paid(
            payout_reference=command.payout_reference,
            payout_method=command.payout_method,
            payout_details=json.loads(command.payout_details) if command.payout_details else None,
        )
        repo.add(record)
        logger.info(
            "Financial record paid",
            record_id=str(record.id),
            seller_id=str(record.seller_id),
            payout_id=command.payout_reference,
        )
        return record.status

    @handle(ProcessSellerPayout)
    def process_seller_payout(self, command):
        repo = current_domain.repository_for(FinancialRecord)
        record_ids = json.loads(command.record_ids)
        records = [repo.get(record_id) for record_id in record_ids]

        for record in records:
            if str(record.seller_id) != str(command.seller_id):
                raise InvalidTransition({"record_ids": [f"Record {record.id} belongs to another seller"]})
            if record.status != FinancialStatus.CLEARED.value:
                raise InvalidTransition(
                    {"record_ids": [f"Record {record.id} is {record.status}; only cleared records can be paid out"]}
                )

        for record in records:
            record.mark_paid(payout_reference=command.payout_reference, payout_method=command.payout_method)
            repo.add(record)

        total = money_sum(record.net_amount for record in records)
        logger.info(
            "Seller payout processed",
            seller_id=str(command.seller_id),
            payout_id=command.payout_reference,
            record_count=len(records),
            net_total=total,
        )
        return {"payout_id": command.payout_reference, "record_ids": [str(r.id) for r in records], "net_total": total}

    @handle(PostLedgerForOrder)
    def post_ledger_for_order(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        records = Ledger().post_for_completed_order(order)
        return posting_summary(records)


def _record_order_key(record_id) -> str:
    record = current_domain.repository_for(FinancialRecord).get(record_id)
    return order_key(record.order_id)


def clear_record(record_id: str, caller: Caller | None = None) -> str:
    """Move a PENDING record to CLEARED. Returns the new status."""
    ensure_allowed(authorize(caller, Action.MANAGE_PAYOUTS))
    with row_locks.hold(_record_order_key(record_id)):
        return current_domain.process(ClearFinancialRecord(record_id=record_id), asynchronous=False)


def mark_paid(
    record_id: str,
    payout_reference: str,
    payout_method: str | None = None,
    payout_details: dict | None = None,
    caller: Caller | None = None,
) -> str:
    """Move a CLEARED record to PAID under the given payout reference."""
    ensure_allowed(authorize(caller, Action.MANAGE_PAYOUTS))
    with row_locks.hold(_record_order_key(record_id)):
        return current_domain.process(
            MarkFinancialRecordPaid(
                record_id=record_id,
                payout_reference=payout_reference,
                payout_method=payout_method,
                payout_details=json.dumps(payout_details) if payout_details else None,
            ),
            asynchronous=False,
        )


def process_seller_payout(
    seller_id: str,
    record_ids: list[str],
    payout_reference: str,
    payout_method: str | None = None,
    caller: Caller | None = None,
) -> dict:
    """Pay out a batch of one seller's cleared records, all or nothing."""
    ensure_allowed(authorize(caller, Action.MANAGE_PAYOUTS))
    if not record_ids:
        raise InvalidTransition({"record_ids": ["At least one record is required for a payout"]})

    keys = [_record_order_key(record_id) for record_id in record_ids]
    with row_locks.hold(*keys):
        return current_domain.process(
            ProcessSellerPayout(
                seller_id=seller_id,
                record_ids=json.dumps([str(r) for r in record_ids]),
                payout_reference=payout_reference,
                payout_method=payout_method,
            ),
            asynchronous=False,
        )


def repost_ledger(order_id: str) -> list[dict]:
    """Post any records still missing for a paid order.

    Safe to call repeatedly; used to recover from a failed posting.
    """
    with row_locks.hold(order_key(order_id)):
        return current_domain.process(PostLedgerForOrder(order_id=order_id), asynchronous=False)
