"""Buyer notifications driven by Order events.

Runs after the Unit of Work that confirmed the order has committed, so a
notifier outage can never roll back a confirmation.
"""

from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.notifications import notify_user
from marketplace.order.events import OrderStatusChanged
from marketplace.order.order import Order, OrderStatus


@marketplace.event_handler(part_of=Order)
class OrderNotificationsHandler:
    """Tells the buyer their order is confirmed once its payment completes."""

    @handle(OrderStatusChanged)
    def on_order_status_changed(self, event: OrderStatusChanged) -> None:
        if event.to_status != OrderStatus.CONFIRMED.value:
            return

        order = current_domain.repository_for(Order).get(event.order_id)
        notify_user(
            order.buyer_id,
            {
                "type": "order_confirmed",
                "order_id": str(order.id),
                "total_amount": order.total_amount,
            },
        )
