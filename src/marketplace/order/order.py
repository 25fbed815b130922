"""Order aggregate: a buyer's purchase across one or more sellers.

An Order is created once from a cart snapshot and afterwards changes only by
moving along its state machine. Line items capture product name, price,
description and category at the moment of purchase and are never edited, so
later catalogue changes cannot rewrite history.

State Machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    PENDING | CONFIRMED | PROCESSING → CANCELLED
    DELIVERED → REFUNDED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.errors import InvalidAddress, InvalidTransition
from marketplace.order.events import OrderPaymentStatusChanged, OrderPlaced, OrderStatusChanged
from marketplace.payment.states import PaymentStatus
from marketplace.shared.money import amounts_equal, line_subtotal, money_sum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

ADDRESS_FIELDS = (
    "name",
    "phone",
    "address_line1",
    "address_line2",
    "city",
    "region",
    "postal_code",
    "country",
)
REQUIRED_ADDRESS_FIELDS = ("name", "address_line1", "city", "postal_code", "country")


def validate_shipping_address(address: dict | None) -> dict:
    """Return a cleaned address dict or raise InvalidAddress naming the blank fields."""
    address = address or {}
    cleaned = {key: value.strip() if isinstance(value, str) else value for key, value in address.items()}
    errors = {field: ["is required"] for field in REQUIRED_ADDRESS_FIELDS if not cleaned.get(field)}
    if errors:
        raise InvalidAddress(errors)
    return {key: cleaned.get(key) for key in ADDRESS_FIELDS}


def build_seller_index(seller_ids) -> str:
    """Pipe-delimited, sorted seller ids so one seller can be matched with a substring query."""
    return "|" + "|".join(sorted({str(seller_id) for seller_id in seller_ids})) + "|"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, captured at checkout and never changed."""

    name = String(required=True, max_length=255)
    phone = String(max_length=50)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    region = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Order", schema_name="order_items")
class OrderItem:
    """One purchased product line with its snapshot of catalogue data."""

    product_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price_snapshot = Float(required=True, min_value=0.0)
    product_name_snapshot = String(required=True, max_length=255)
    product_description_snapshot = Text()
    category_snapshot = String(max_length=100)
    subtotal = Float(required=True, min_value=0.0)
    created_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate(schema_name="orders")
class Order:
    buyer_id = Identifier(required=True)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    items = HasMany(OrderItem)
    total_amount = Float(required=True, min_value=0.0)
    shipping_cost = Float(default=0.0)
    tax_amount = Float(default=0.0)
    currency = String(max_length=3, default="USD")
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(max_length=50)
    payment_status = String(
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    notes = Text()
    metadata = Text()  # JSON: opaque client metadata
    seller_index = Text()  # "|seller-a|seller-b|", searchable by seller
    cancellation_reason = String(max_length=500)
    placed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        buyer_id,
        items_data,
        shipping_address,
        shipping_cost,
        tax_amount,
        currency="USD",
        payment_method=None,
        notes=None,
        metadata=None,
    ):
        """Assemble a PENDING order from validated line data.

        Args:
            items_data: List of dicts with product_id, seller_id, quantity,
                        unit_price, name, description and category, taken
                        from the catalogue at the moment of purchase.
            shipping_address: Dict already checked by validate_shipping_address().
        """
        now = datetime.now(UTC)

        items = [
            OrderItem(
                product_id=data["product_id"],
                seller_id=data["seller_id"],
                quantity=data["quantity"],
                unit_price_snapshot=data["unit_price"],
                product_name_snapshot=data["name"],
                product_description_snapshot=data.get("description"),
                category_snapshot=data.get("category"),
                subtotal=line_subtotal(data["unit_price"], data["quantity"]),
                created_at=now,
            )
            for data in items_data
        ]
        items_subtotal = money_sum(item.subtotal for item in items)

        order = cls(
            buyer_id=buyer_id,
            status=OrderStatus.PENDING.value,
            total_amount=money_sum([items_subtotal, shipping_cost, tax_amount]),
            shipping_cost=shipping_cost,
            tax_amount=tax_amount,
            currency=currency,
            shipping_address=ShippingAddress(**shipping_address),
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            notes=notes,
            metadata=json.dumps(metadata) if metadata else None,
            seller_index=build_seller_index(item.seller_id for item in items),
            placed_at=now,
            updated_at=now,
        )
        for item in items:
            order.add_items(item)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                buyer_id=str(buyer_id),
                item_count=len(items),
                total_amount=order.total_amount,
                currency=currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    @property
    def items_subtotal(self) -> float:
        return money_sum(item.subtotal for item in self.items)

    def recomputed_total(self) -> float:
        """Total derived from the line items, shipping and tax."""
        return money_sum([self.items_subtotal, self.shipping_cost, self.tax_amount])

    @property
    def totals_consistent(self) -> bool:
        return amounts_equal(self.recomputed_total(), self.total_amount)

    def metadata_dict(self) -> dict:
        return json.loads(self.metadata) if self.metadata else {}

    def seller_ids(self) -> set[str]:
        return {str(item.seller_id) for item in self.items}

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def can_transition_to(self, target_status: OrderStatus) -> bool:
        return target_status in _VALID_TRANSITIONS.get(OrderStatus(self.status), set())

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if not self.can_transition_to(target_status):
            raise InvalidTransition({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def transition_to(self, target_status: OrderStatus, reason: str | None = None) -> None:
        self._assert_can_transition(target_status)

        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        if target_status == OrderStatus.CANCELLED:
            self.cancellation_reason = reason

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                from_status=previous,
                to_status=target_status.value,
                reason=reason,
                changed_at=now,
            )
        )

    def confirm(self) -> None:
        self.transition_to(OrderStatus.CONFIRMED)

    def cancel(self, reason: str | None = None) -> None:
        self.transition_to(OrderStatus.CANCELLED, reason=reason)

    # -------------------------------------------------------------------
    # Payment outcome
    # -------------------------------------------------------------------
    def apply_payment_outcome(self, payment_status: PaymentStatus) -> OrderStatus | None:
        """Mirror the payment status and derive the order transition it implies.

        COMPLETED confirms a pending order, CANCELLED cancels it, REFUNDED
        refunds a delivered order. FAILED leaves the order pending so the
        buyer can retry. Returns the new order status, or None when the
        payment outcome does not move the order.
        """
        now = datetime.now(UTC)
        if self.payment_status != payment_status.value:
            self.payment_status = payment_status.value
            self.updated_at = now
            self.raise_(
                OrderPaymentStatusChanged(
                    order_id=str(self.id),
                    payment_status=payment_status.value,
                    changed_at=now,
                )
            )

        current = OrderStatus(self.status)
        if payment_status == PaymentStatus.COMPLETED and current == OrderStatus.PENDING:
            self.confirm()
        elif payment_status == PaymentStatus.CANCELLED and current == OrderStatus.PENDING:
            self.cancel(reason="Payment cancelled")
        elif payment_status == PaymentStatus.REFUNDED and current == OrderStatus.DELIVERED:
            self.transition_to(OrderStatus.REFUNDED, reason="Payment refunded")
        else:
            return None
        return OrderStatus(self.status)
