"""Runtime settings for the marketplace core.

All knobs are read from environment variables once and cached. Tests call
reset_settings() (or set_settings()) to swap values between cases.

Environment variables:
    PROTEAN_ENV               Config overlay name (development, test, production)
    PAYMENT_GATEWAY           "fake" (default) or "stripe"
    STRIPE_SECRET_KEY         API key used by the Stripe adapter
    PAYMENT_WEBHOOK_SECRET    Secret used to verify webhook signatures
    GATEWAY_TIMEOUT_SECONDS   Timeout for calls to the payment provider
    DEFAULT_CURRENCY          ISO currency for new orders
    TAX_RATE                  Tax as a percentage of the items subtotal
    SHIPPING_FLAT_FEE         Flat shipping charged below the free threshold
    FREE_SHIPPING_THRESHOLD   Subtotal at which shipping is free ("" disables)
    PLATFORM_FEE_RATE         Default platform commission as a fraction
    PLATFORM_FEE_RATES        JSON object of per-category commission overrides
    PROCESSING_FEE_RATE       Processing fee as a fraction of the line gross
    LOCK_TIMEOUT_SECONDS      Bound on waiting for a row lock
"""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    payment_gateway: str = "fake"
    stripe_secret_key: str = ""
    webhook_secret: str = "whsec_development"
    gateway_timeout_seconds: float = 10.0
    default_currency: str = "USD"
    tax_rate_percent: float = 0.0
    shipping_flat_fee: float = 60.0
    free_shipping_threshold: float | None = 1000.0
    platform_fee_rate: float = 0.05
    platform_fee_rates: Mapping[str, float] = field(default_factory=dict)
    processing_fee_rate: float = 0.0
    lock_timeout_seconds: float = 10.0

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()

        threshold_raw = env.get("FREE_SHIPPING_THRESHOLD")
        if threshold_raw is None:
            threshold = defaults.free_shipping_threshold
        elif threshold_raw.strip() == "":
            threshold = None
        else:
            threshold = float(threshold_raw)

        rates_raw = env.get("PLATFORM_FEE_RATES", "").strip()
        rates = {str(k): float(v) for k, v in json.loads(rates_raw).items()} if rates_raw else {}

        return cls(
            environment=env.get("PROTEAN_ENV", defaults.environment),
            payment_gateway=env.get("PAYMENT_GATEWAY", defaults.payment_gateway).lower(),
            stripe_secret_key=env.get("STRIPE_SECRET_KEY", defaults.stripe_secret_key),
            webhook_secret=env.get("PAYMENT_WEBHOOK_SECRET", defaults.webhook_secret),
            gateway_timeout_seconds=float(env.get("GATEWAY_TIMEOUT_SECONDS", defaults.gateway_timeout_seconds)),
            default_currency=env.get("DEFAULT_CURRENCY", defaults.default_currency).upper(),
            tax_rate_percent=float(env.get("TAX_RATE", defaults.tax_rate_percent)),
            shipping_flat_fee=float(env.get("SHIPPING_FLAT_FEE", defaults.shipping_flat_fee)),
            free_shipping_threshold=threshold,
            platform_fee_rate=float(env.get("PLATFORM_FEE_RATE", defaults.platform_fee_rate)),
            platform_fee_rates=rates,
            processing_fee_rate=float(env.get("PROCESSING_FEE_RATE", defaults.processing_fee_rate)),
            lock_timeout_seconds=float(env.get("LOCK_TIMEOUT_SECONDS", defaults.lock_timeout_seconds)),
        )


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings, reading the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = Settings.from_env()
    return _current_settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Forget cached settings so the environment is read again."""
    global _current_settings
    _current_settings = None
