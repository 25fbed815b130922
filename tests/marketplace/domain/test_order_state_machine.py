"""Tests for Order state machine: valid transitions and invalid transition guards."""

import pytest

from marketplace.errors import InvalidTransition
from marketplace.order.events import OrderPaymentStatusChanged, OrderStatusChanged
from marketplace.order.order import Order, OrderStatus
from marketplace.payment.states import PaymentStatus

_PATH = [OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED]


def _make_order():
    return Order.place(
        buyer_id="buyer-1",
        items_data=[
            {
                "product_id": "prod-a",
                "seller_id": "seller-1",
                "quantity": 2,
                "unit_price": 12.5,
                "name": "Notebook",
                "description": "A5 dotted",
                "category": "stationery",
            }
        ],
        shipping_address={
            "name": "Ada",
            "address_line1": "1 Market Street",
            "city": "Springfield",
            "postal_code": "62701",
            "country": "US",
        },
        shipping_cost=5.0,
        tax_amount=3.0,
    )


def _order_at_state(target_status):
    order = _make_order()
    order._events.clear()
    if target_status == OrderStatus.PENDING:
        return order
    if target_status == OrderStatus.CANCELLED:
        order.cancel("Changed my mind")
        order._events.clear()
        return order

    for status in _PATH:
        order.transition_to(status)
        if status == target_status:
            break
    if target_status == OrderStatus.REFUNDED:
        order.transition_to(OrderStatus.REFUNDED)
    order._events.clear()
    return order


class TestValidTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
            (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.DELIVERED, OrderStatus.REFUNDED),
        ],
    )
    def test_allowed_edge(self, current, target):
        order = _order_at_state(current)
        order.transition_to(target)
        assert order.status == target.value

    def test_transition_raises_status_changed_event(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        order.transition_to(OrderStatus.PROCESSING)

        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderStatusChanged)
        assert event.from_status == "Confirmed"
        assert event.to_status == "Processing"

    def test_cancel_records_reason(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        order.cancel("Out of stock at warehouse")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Out of stock at warehouse"


class TestInvalidTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.PENDING, OrderStatus.DELIVERED),
            (OrderStatus.CONFIRMED, OrderStatus.DELIVERED),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.CONFIRMED),
            (OrderStatus.REFUNDED, OrderStatus.DELIVERED),
        ],
    )
    def test_rejected_edge_leaves_status_unchanged(self, current, target):
        order = _order_at_state(current)
        with pytest.raises(InvalidTransition) as exc:
            order.transition_to(target)

        assert order.status == current.value
        assert f"Cannot transition from {current.value} to {target.value}" in exc.value.messages["status"][0]
        assert order._events == []

    @pytest.mark.parametrize("terminal", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    def test_terminal_states_have_no_exits(self, terminal):
        order = _order_at_state(terminal)
        assert not any(order.can_transition_to(status) for status in OrderStatus)


class TestPaymentOutcome:
    def test_completed_payment_confirms_pending_order(self):
        order = _order_at_state(OrderStatus.PENDING)
        new_status = order.apply_payment_outcome(PaymentStatus.COMPLETED)

        assert new_status == OrderStatus.CONFIRMED
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.payment_status == PaymentStatus.COMPLETED.value
        assert any(isinstance(e, OrderPaymentStatusChanged) for e in order._events)

    def test_failed_payment_keeps_order_pending(self):
        order = _order_at_state(OrderStatus.PENDING)
        assert order.apply_payment_outcome(PaymentStatus.FAILED) is None
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.FAILED.value

    def test_cancelled_payment_cancels_pending_order(self):
        order = _order_at_state(OrderStatus.PENDING)
        assert order.apply_payment_outcome(PaymentStatus.CANCELLED) == OrderStatus.CANCELLED
        assert order.cancellation_reason == "Payment cancelled"

    def test_refund_moves_delivered_order_to_refunded(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        order.payment_status = PaymentStatus.COMPLETED.value
        assert order.apply_payment_outcome(PaymentStatus.REFUNDED) == OrderStatus.REFUNDED

    def test_refund_of_undelivered_order_only_mirrors_payment_status(self):
        order = _order_at_state(OrderStatus.SHIPPED)
        assert order.apply_payment_outcome(PaymentStatus.REFUNDED) is None
        assert order.status == OrderStatus.SHIPPED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value

    def test_processing_payment_does_not_move_order(self):
        order = _order_at_state(OrderStatus.PENDING)
        assert order.apply_payment_outcome(PaymentStatus.PROCESSING) is None
        assert order.status == OrderStatus.PENDING.value
