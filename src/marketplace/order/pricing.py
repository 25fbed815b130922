"""Shipping and tax policy applied at checkout.

StandardPricingPolicy charges a flat shipping fee that is waived once the
items subtotal reaches the free-shipping threshold, and tax as a percentage
of the items subtotal. Both come from configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from marketplace.config import Settings, get_settings
from marketplace.shared.money import as_money, percentage_of, to_decimal


class PricingPolicy(ABC):
    @abstractmethod
    def shipping_for(self, subtotal: float, address: dict) -> float:
        ...

    @abstractmethod
    def tax_for(self, subtotal: float, address: dict) -> float:
        ...


@dataclass(frozen=True)
class StandardPricingPolicy(PricingPolicy):
    flat_shipping_fee: float = 60.0
    free_shipping_threshold: float | None = 1000.0
    tax_rate_percent: float = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "StandardPricingPolicy":
        return cls(
            flat_shipping_fee=settings.shipping_flat_fee,
            free_shipping_threshold=settings.free_shipping_threshold,
            tax_rate_percent=settings.tax_rate_percent,
        )

    def shipping_for(self, subtotal: float, address: dict) -> float:  # noqa: ARG002
        if self.free_shipping_threshold is not None and to_decimal(subtotal) >= to_decimal(
            self.free_shipping_threshold
        ):
            return 0.0
        return as_money(self.flat_shipping_fee)

    def tax_for(self, subtotal: float, address: dict) -> float:  # noqa: ARG002
        return max(0.0, percentage_of(subtotal, to_decimal(self.tax_rate_percent) / 100))


_current_policy: PricingPolicy | None = None


def get_pricing_policy() -> PricingPolicy:
    """Return the active pricing policy, built from settings on first use."""
    global _current_policy
    if _current_policy is None:
        _current_policy = StandardPricingPolicy.from_settings(get_settings())
    return _current_policy


def set_pricing_policy(policy: PricingPolicy) -> None:
    """Override the active pricing policy (useful for tests)."""
    global _current_policy
    _current_policy = policy


def reset_pricing_policy() -> None:
    global _current_policy
    _current_policy = None
