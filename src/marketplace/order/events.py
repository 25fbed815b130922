"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A buyer's cart was turned into a pending order."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    currency = String(max_length=3, required=True)
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along one edge of its state machine."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True, max_length=50)
    to_status = String(required=True, max_length=50)
    reason = String(max_length=500)
    changed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class OrderPaymentStatusChanged:
    """The order's view of its payment changed."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_status = String(required=True, max_length=50)
    changed_at = DateTime(required=True)
