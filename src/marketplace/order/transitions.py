"""Order status transitions requested by sellers, buyers and administrators.

Cancellation cancels any ledger records that have not been paid out, and
delivery clears the order's PENDING records for payout, each in the same Unit
of Work as the status change. Stock of a cancelled order is returned to the
catalogue after commit (see stock_events).
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.ledger.ledger import Ledger
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.states import PaymentStatus
from marketplace.shared.access import Action, Caller, authorize, ensure_allowed
from marketplace.shared.locking import order_key, row_locks

logger = structlog.get_logger(__name__)

_ACTION_FOR_TARGET = {
    OrderStatus.CONFIRMED: Action.CONFIRM_ORDER,
    OrderStatus.PROCESSING: Action.FULFIL_ORDER,
    OrderStatus.SHIPPED: Action.FULFIL_ORDER,
    OrderStatus.DELIVERED: Action.FULFIL_ORDER,
    OrderStatus.CANCELLED: Action.CANCEL_ORDER,
    OrderStatus.REFUNDED: Action.REFUND_ORDER,
}


def parse_order_status(value) -> OrderStatus:
    """Accept an OrderStatus, its value ("Shipped") or its name ("SHIPPED")."""
    if isinstance(value, OrderStatus):
        return value
    text = str(value or "").strip()
    for status in OrderStatus:
        if text.upper() in (status.name, status.value.upper()):
            return status
    raise ValidationError({"target_status": [f"Unknown order status {value!r}"]})


@marketplace.command(part_of="Order")
class TransitionOrder:
    order_id = Identifier(required=True)
    target_status = String(required=True, choices=OrderStatus)
    reason = String(max_length=500)


@marketplace.command_handler(part_of=Order)
class TransitionOrderHandler:
    @handle(TransitionOrder)
    def transition_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status
        target = OrderStatus(command.target_status)

        order.transition_to(target, reason=command.reason)
        repo.add(order)

        if target == OrderStatus.CANCELLED:
            Ledger().cancel_for_order(order.id)
            if order.payment_status == PaymentStatus.COMPLETED.value:
                logger.warning("Cancelled order was already paid and needs a refund", order_id=str(order.id))
        elif target == OrderStatus.DELIVERED:
            Ledger().clear_for_order(order.id)

        logger.info(
            "Order status changed",
            order_id=str(order.id),
            from_status=previous,
            to_status=order.status,
        )
        return order.status


def transition_order(
    order_id: str,
    target_status,
    caller: Caller | None = None,
    reason: str | None = None,
) -> Order:
    """Move an order along one edge of its state machine and return it."""
    target = parse_order_status(target_status)
    repo = current_domain.repository_for(Order)

    if caller is not None:
        order = repo.get(order_id)
        ensure_allowed(
            authorize(
                caller,
                _ACTION_FOR_TARGET[target],
                buyer_id=order.buyer_id,
                seller_ids=order.seller_ids(),
            )
        )

    with row_locks.hold(order_key(order_id)):
        current_domain.process(
            TransitionOrder(order_id=order_id, target_status=target.value, reason=reason),
            asynchronous=False,
        )
    return repo.get(order_id)
