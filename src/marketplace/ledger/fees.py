"""Fee schedule for seller ledger postings.

Platform commission is a percentage of the line gross, looked up by product
category with a default rate. Processing fee is a flat percentage. Fees are
rounded half-up to the cent and never negative, and the net amount is derived
from the rounded values so gross == net + platform fee + processing fee holds
exactly.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from marketplace.config import Settings, get_settings
from marketplace.shared.money import as_money, percentage_of, to_decimal


@dataclass(frozen=True)
class FeeBreakdown:
    gross_amount: float
    platform_fee: float
    processing_fee: float
    net_amount: float


@dataclass(frozen=True)
class FeeSchedule:
    platform_rate: float = 0.05
    processing_rate: float = 0.0
    category_rates: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeeSchedule":
        return cls(
            platform_rate=settings.platform_fee_rate,
            processing_rate=settings.processing_fee_rate,
            category_rates=dict(settings.platform_fee_rates),
        )

    def platform_rate_for(self, category: str | None) -> float:
        if category and category in self.category_rates:
            return self.category_rates[category]
        return self.platform_rate

    def breakdown(self, gross_amount: float, category: str | None = None) -> FeeBreakdown:
        gross = as_money(gross_amount)
        platform_fee = max(0.0, percentage_of(gross, self.platform_rate_for(category)))
        processing_fee = max(0.0, percentage_of(gross, self.processing_rate))
        net = as_money(to_decimal(gross) - to_decimal(platform_fee) - to_decimal(processing_fee))
        return FeeBreakdown(
            gross_amount=gross,
            platform_fee=platform_fee,
            processing_fee=processing_fee,
            net_amount=net,
        )


_current_schedule: FeeSchedule | None = None


def get_fee_schedule() -> FeeSchedule:
    global _current_schedule
    if _current_schedule is None:
        _current_schedule = FeeSchedule.from_settings(get_settings())
    return _current_schedule


def set_fee_schedule(schedule: FeeSchedule) -> None:
    """Override the active fee schedule (useful for tests)."""
    global _current_schedule
    _current_schedule = schedule


def reset_fee_schedule() -> None:
    global _current_schedule
    _current_schedule = None
