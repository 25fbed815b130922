"""Tests for ledger fee computation."""

from marketplace.config import Settings
from marketplace.ledger.fees import FeeSchedule


class TestFeeSchedule:
    def test_default_platform_rate(self):
        fees = FeeSchedule(platform_rate=0.05).breakdown(25.0)
        assert fees.gross_amount == 25.0
        assert fees.platform_fee == 1.25
        assert fees.processing_fee == 0.0
        assert fees.net_amount == 23.75

    def test_category_rate_overrides_default(self):
        schedule = FeeSchedule(platform_rate=0.05, category_rates={"lighting": 0.12})
        assert schedule.breakdown(30.0, "lighting").platform_fee == 3.6
        assert schedule.breakdown(30.0, "stationery").platform_fee == 1.5

    def test_fees_round_half_up_and_reconcile(self):
        fees = FeeSchedule(platform_rate=0.05, processing_rate=0.029).breakdown(10.1)
        assert fees.platform_fee == 0.51
        assert fees.processing_fee == 0.29
        assert fees.net_amount == 9.3
        assert round(fees.platform_fee + fees.processing_fee + fees.net_amount, 2) == fees.gross_amount

    def test_negative_rates_are_clamped_to_zero(self):
        fees = FeeSchedule(platform_rate=-0.1).breakdown(20.0)
        assert fees.platform_fee == 0.0
        assert fees.net_amount == 20.0

    def test_from_settings(self):
        settings = Settings(platform_fee_rate=0.08, processing_fee_rate=0.01, platform_fee_rates={"books": 0.02})
        schedule = FeeSchedule.from_settings(settings)
        assert schedule.platform_rate_for("books") == 0.02
        assert schedule.platform_rate_for(None) == 0.08
        assert schedule.processing_rate == 0.01
