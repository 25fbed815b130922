"""Catalogue port: the product and stock data checkout reads and reserves.

Checkout never owns products; it snapshots what the catalogue reports at the
moment of purchase and decrements stock through reserve_stock().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    """Product data as seen at one point in time."""

    product_id: str
    seller_id: str
    name: str
    price: float
    description: str | None = None
    category: str | None = None
    is_active: bool = True
    seller_verified: bool = True


class CataloguePort(ABC):
    """Abstract interface for product lookup and stock reservation."""

    @abstractmethod
    def get_product(self, product_id: str) -> ProductSnapshot | None:
        """Return the current product snapshot, or None if it does not exist."""
        ...

    @abstractmethod
    def available_stock(self, product_id: str) -> int:
        ...

    @abstractmethod
    def reserve_stock(self, product_id: str, quantity: int) -> int:
        """Decrement stock by quantity and return what remains.

        Raises InsufficientStock when quantity exceeds the available stock.
        """
        ...

    @abstractmethod
    def release_stock(self, product_id: str, quantity: int) -> int:
        """Return quantity units to stock and return the new level."""
        ...
