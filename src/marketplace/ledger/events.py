"""Domain events for the FinancialRecord aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from marketplace.domain import marketplace


@marketplace.event(part_of="FinancialRecord")
class FinancialRecordPosted:
    """A seller earned the net amount of one order line."""

    __version__ = 1

    record_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    gross_amount = Float(required=True)
    platform_fee = Float(required=True)
    processing_fee = Float(required=True)
    net_amount = Float(required=True)
    posted_at = DateTime(required=True)


@marketplace.event(part_of="FinancialRecord")
class FinancialRecordStatusChanged:
    """A ledger row was cleared, paid out or cancelled."""

    __version__ = 1

    record_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    from_status = String(required=True, max_length=50)
    to_status = String(required=True, max_length=50)
    payout_id = String(max_length=255)
    changed_at = DateTime(required=True)
