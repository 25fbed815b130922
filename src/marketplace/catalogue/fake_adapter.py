"""In-memory catalogue for development and testing.

Holds products and stock levels in dictionaries guarded by a lock so that
concurrent checkouts observe a consistent stock count.
"""

import threading
from dataclasses import replace

from marketplace.catalogue.port import CataloguePort, ProductSnapshot
from marketplace.errors import InsufficientStock


class FakeCatalogue(CataloguePort):
    """Catalogue adapter backed by dictionaries."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.products: dict[str, ProductSnapshot] = {}
        self.stock: dict[str, int] = {}
        self.calls: list[dict] = []

    def add_product(
        self,
        product_id: str,
        seller_id: str,
        name: str,
        price: float,
        stock: int = 0,
        description: str | None = None,
        category: str | None = None,
        is_active: bool = True,
        seller_verified: bool = True,
    ) -> ProductSnapshot:
        product = ProductSnapshot(
            product_id=str(product_id),
            seller_id=str(seller_id),
            name=name,
            price=price,
            description=description,
            category=category,
            is_active=is_active,
            seller_verified=seller_verified,
        )
        with self._lock:
            self.products[product.product_id] = product
            self.stock[product.product_id] = stock
        return product

    def update_product(self, product_id: str, **changes) -> ProductSnapshot:
        with self._lock:
            product = replace(self.products[str(product_id)], **changes)
            self.products[product.product_id] = product
        return product

    def get_product(self, product_id: str) -> ProductSnapshot | None:
        with self._lock:
            return self.products.get(str(product_id))

    def available_stock(self, product_id: str) -> int:
        with self._lock:
            return self.stock.get(str(product_id), 0)

    def reserve_stock(self, product_id: str, quantity: int) -> int:
        key = str(product_id)
        with self._lock:
            available = self.stock.get(key, 0)
            if quantity > available:
                raise InsufficientStock(
                    {"quantity": [f"Only {available} unit(s) of product {key} available, requested {quantity}"]}
                )
            self.stock[key] = available - quantity
            self.calls.append({"method": "reserve_stock", "product_id": key, "quantity": quantity})
            return self.stock[key]

    def release_stock(self, product_id: str, quantity: int) -> int:
        key = str(product_id)
        with self._lock:
            self.stock[key] = self.stock.get(key, 0) + quantity
            self.calls.append({"method": "release_stock", "product_id": key, "quantity": quantity})
            return self.stock[key]

    def reset(self) -> None:
        with self._lock:
            self.products.clear()
            self.stock.clear()
            self.calls.clear()
