"""Checkout: turning a cart snapshot into a PENDING order.

place_order() is the entry point. Holding the stock locks for every product in
the cart, it validates each line against the catalogue, snapshots product data
and reserves the stock. It then runs CreateOrderFromCart, whose handler prices
shipping and tax and persists the order in one Unit of Work. The catalogue is
not part of that transaction: if the order cannot be persisted, the
reservation is released again.
"""

import json
from dataclasses import asdict, dataclass

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.catalogue import get_catalogue
from marketplace.catalogue.port import CataloguePort
from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.errors import EmptyCart, InsufficientStock, ProductUnavailable, StalePrice
from marketplace.order.order import Order, validate_shipping_address
from marketplace.order.pricing import get_pricing_policy
from marketplace.shared.access import Action, Caller, authorize, ensure_allowed
from marketplace.shared.locking import row_locks, stock_key
from marketplace.shared.money import line_subtotal, money_sum, to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLine:
    """One line of the buyer's cart as submitted by the client.

    unit_price is the price the client displayed; it is only used to detect
    a stale cart and never becomes the order price.
    """

    product_id: str
    quantity: int
    unit_price: float | None = None


@marketplace.command(part_of="Order")
class CreateOrderFromCart:
    buyer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: validated line snapshots, see _snapshot_line
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(max_length=50, default="card")
    notes = Text()
    metadata = Text()  # JSON: opaque client metadata


def _merge_lines(raw_lines: list[dict]) -> list[CartLine]:
    """Collapse repeated products into one line so stock is checked once per product."""
    merged: dict[str, CartLine] = {}
    for raw in raw_lines:
        product_id = str(raw.get("product_id") or "")
        quantity = int(raw.get("quantity") or 0)
        if not product_id:
            raise ValidationError({"product_id": ["is required"]})
        if quantity < 1:
            raise ValidationError({"quantity": [f"must be at least 1 for product {product_id}"]})

        unit_price = raw.get("unit_price")
        existing = merged.get(product_id)
        if existing is not None:
            quantity += existing.quantity
            if existing.unit_price is not None and (unit_price is None or existing.unit_price < unit_price):
                unit_price = existing.unit_price
        merged[product_id] = CartLine(product_id=product_id, quantity=quantity, unit_price=unit_price)
    return list(merged.values())


def _snapshot_line(catalogue: CataloguePort, line: CartLine) -> dict:
    product = catalogue.get_product(line.product_id)
    if product is None or not product.is_active:
        raise ProductUnavailable({"product_id": [f"Product {line.product_id} is not available"]})
    if not product.seller_verified:
        raise ProductUnavailable({"product_id": [f"Seller of product {line.product_id} is not verified"]})

    available = catalogue.available_stock(line.product_id)
    if line.quantity > available:
        raise InsufficientStock(
            {
                "quantity": [
                    f"Only {available} unit(s) of product {line.product_id} available, requested {line.quantity}"
                ]
            }
        )

    if line.unit_price is not None and to_decimal(line.unit_price) < to_decimal(product.price):
        raise StalePrice(
            {"unit_price": [f"Price of product {line.product_id} changed from {line.unit_price} to {product.price}"]}
        )

    return {
        "product_id": product.product_id,
        "seller_id": product.seller_id,
        "quantity": line.quantity,
        "unit_price": product.price,
        "name": product.name,
        "description": product.description,
        "category": product.category,
    }


def reserve_stock(catalogue: CataloguePort, items_data: list[dict]) -> None:
    """Reserve stock for every line, undoing partial reservations on failure."""
    reserved = []
    try:
        for data in items_data:
            catalogue.reserve_stock(str(data["product_id"]), data["quantity"])
            reserved.append(data)
    except Exception:
        release_stock(catalogue, reserved)
        raise


def release_stock(catalogue: CataloguePort, items_data: list[dict]) -> None:
    for data in items_data:
        catalogue.release_stock(str(data["product_id"]), data["quantity"])


@marketplace.command_handler(part_of=Order)
class CreateOrderFromCartHandler:
    @handle(CreateOrderFromCart)
    def create_order_from_cart(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        raw_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )
        address = validate_shipping_address(raw_address)

        policy = get_pricing_policy()
        subtotal = money_sum(line_subtotal(data["unit_price"], data["quantity"]) for data in items_data)

        order = Order.place(
            buyer_id=command.buyer_id,
            items_data=items_data,
            shipping_address=address,
            shipping_cost=policy.shipping_for(subtotal, address),
            tax_amount=policy.tax_for(subtotal, address),
            currency=get_settings().default_currency,
            payment_method=command.payment_method or "card",
            notes=command.notes,
            metadata=json.loads(command.metadata) if command.metadata else None,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            buyer_id=str(command.buyer_id),
            item_count=len(items_data),
            total_amount=order.total_amount,
        )
        return str(order.id)


def place_order(
    buyer_id: str,
    lines: list,
    shipping_address: dict | None,
    payment_method: str = "card",
    notes: str | None = None,
    metadata: dict | None = None,
    caller: Caller | None = None,
) -> str:
    """Create a PENDING order from cart lines and return its id.

    Lines may be CartLine instances or dicts with product_id, quantity and
    an optional unit_price. Stock rows for every product stay locked for the
    whole check-and-reserve sequence.
    """
    if caller is not None:
        ensure_allowed(authorize(caller, Action.PLACE_ORDER, buyer_id=buyer_id))

    raw_lines = [asdict(line) if isinstance(line, CartLine) else dict(line) for line in lines or []]
    merged = _merge_lines(raw_lines)
    if not merged:
        raise EmptyCart({"lines": ["Cart is empty"]})
    address = validate_shipping_address(shipping_address)

    catalogue = get_catalogue()
    with row_locks.hold(*[stock_key(line.product_id) for line in merged]):
        items_data = [_snapshot_line(catalogue, line) for line in merged]
        reserve_stock(catalogue, items_data)
        try:
            return current_domain.process(
                CreateOrderFromCart(
                    buyer_id=buyer_id,
                    items=json.dumps(items_data),
                    shipping_address=json.dumps(address),
                    payment_method=payment_method,
                    notes=notes,
                    metadata=json.dumps(metadata) if metadata else None,
                ),
                asynchronous=False,
            )
        except Exception:
            release_stock(catalogue, items_data)
            logger.warning("Order not placed, stock reservation released", buyer_id=str(buyer_id))
            raise
