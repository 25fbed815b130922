"""Returns a cancelled order's stock to the catalogue.

The catalogue is an external collaborator, so the release happens only after
the cancellation has committed. A failed release is logged for follow-up and
does not undo the cancellation.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.catalogue import get_catalogue
from marketplace.domain import marketplace
from marketplace.order.checkout import release_stock
from marketplace.order.events import OrderStatusChanged
from marketplace.order.order import Order, OrderStatus
from marketplace.shared.locking import row_locks, stock_key

logger = structlog.get_logger(__name__)


@marketplace.event_handler(part_of=Order)
class OrderStockHandler:
    """Releases the stock reserved at checkout when an order is cancelled."""

    @handle(OrderStatusChanged)
    def on_order_status_changed(self, event: OrderStatusChanged) -> None:
        if event.to_status != OrderStatus.CANCELLED.value:
            return

        order = current_domain.repository_for(Order).get(event.order_id)
        lines = [{"product_id": str(item.product_id), "quantity": item.quantity} for item in order.items]
        try:
            with row_locks.hold(*[stock_key(line["product_id"]) for line in lines]):
                release_stock(get_catalogue(), lines)
        except Exception as exc:
            logger.error(
                "Stock release failed for cancelled order",
                order_id=str(order.id),
                error=f"{type(exc).__name__}: {exc}",
            )
            return

        logger.info("Released stock for cancelled order", order_id=str(order.id), item_count=len(lines))
