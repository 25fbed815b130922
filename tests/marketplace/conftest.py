import pytest
from protean.integrations.pytest import DomainFixture

from marketplace.catalogue import reset_catalogue, set_catalogue
from marketplace.catalogue.fake_adapter import FakeCatalogue
from marketplace.config import Settings, reset_settings, set_settings
from marketplace.gateway import reset_gateway, set_gateway
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.ledger.fees import FeeSchedule, reset_fee_schedule, set_fee_schedule
from marketplace.notifications import reset_notifier, set_notifier
from marketplace.notifications.adapters import FakeNotifier
from marketplace.order.pricing import PricingPolicy, reset_pricing_policy, set_pricing_policy
from marketplace.shared.access import Caller, Role

WEBHOOK_SECRET = "whsec_test"

ADDRESS = {
    "name": "Ada Buyer",
    "phone": "+1 555 0100",
    "address_line1": "1 Market Street",
    "city": "Springfield",
    "region": "IL",
    "postal_code": "62701",
    "country": "US",
}


class FixedPricingPolicy(PricingPolicy):
    """Charges the same shipping and tax on every order."""

    def __init__(self, shipping: float = 5.0, tax: float = 3.0) -> None:
        self.shipping = shipping
        self.tax = tax

    def shipping_for(self, subtotal, address):
        return self.shipping

    def tax_for(self, subtotal, address):
        return self.tax


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def settings():
    settings = Settings(environment="test", webhook_secret=WEBHOOK_SECRET, lock_timeout_seconds=5.0)
    set_settings(settings)
    yield settings
    reset_settings()


@pytest.fixture(autouse=True)
def catalogue():
    catalogue = FakeCatalogue()
    catalogue.add_product("prod-a", seller_id="seller-1", name="Notebook", price=12.5, stock=10, category="stationery")
    catalogue.add_product("prod-b", seller_id="seller-2", name="Desk Lamp", price=30.0, stock=5, category="lighting")
    set_catalogue(catalogue)
    yield catalogue
    reset_catalogue()


@pytest.fixture(autouse=True)
def gateway():
    gateway = FakeGateway(webhook_secret=WEBHOOK_SECRET)
    set_gateway(gateway)
    yield gateway
    reset_gateway()


@pytest.fixture(autouse=True)
def notifier():
    notifier = FakeNotifier()
    set_notifier(notifier)
    yield notifier
    reset_notifier()


@pytest.fixture(autouse=True)
def pricing():
    policy = FixedPricingPolicy(shipping=5.0, tax=3.0)
    set_pricing_policy(policy)
    yield policy
    reset_pricing_policy()


@pytest.fixture(autouse=True)
def fee_schedule():
    schedule = FeeSchedule(platform_rate=0.10, processing_rate=0.0)
    set_fee_schedule(schedule)
    yield schedule
    reset_fee_schedule()


@pytest.fixture
def address():
    return dict(ADDRESS)


@pytest.fixture
def buyer():
    return Caller(user_id="buyer-1", role=Role.BUYER, is_verified=True)


@pytest.fixture
def other_buyer():
    return Caller(user_id="buyer-2", role=Role.BUYER, is_verified=True)


@pytest.fixture
def seller():
    return Caller(user_id="seller-1", role=Role.SELLER, is_verified=True)


@pytest.fixture
def admin():
    return Caller(user_id="admin-1", role=Role.ADMIN, is_verified=True)


@pytest.fixture
def make_order(address):
    """Place a PENDING order for buyer-1: 2 x prod-a (25.00) + 1 x prod-b (30.00)."""
    from marketplace.order.checkout import place_order

    def _make(lines=None, buyer_id="buyer-1"):
        return place_order(
            buyer_id=buyer_id,
            lines=lines
            or [
                {"product_id": "prod-a", "quantity": 2, "unit_price": 12.5},
                {"product_id": "prod-b", "quantity": 1, "unit_price": 30.0},
            ],
            shipping_address=address,
        )

    return _make


@pytest.fixture
def deliver(gateway):
    """Sign and ingest a provider event; returns the WebhookAck."""
    from marketplace.webhook.ingestion import ingest_webhook

    def _deliver(event_type, payment_intent_id, **kwargs):
        payload, signature = gateway.make_event(event_type, payment_intent_id, **kwargs)
        return ingest_webhook(payload, signature)

    return _deliver


@pytest.fixture
def paid_order(make_order, deliver):
    """A CONFIRMED order whose payment completed and whose ledger is posted."""
    from marketplace.payment.intents import create_intent

    def _paid(**kwargs):
        order_id = make_order(**kwargs)
        handle = create_intent(order_id)
        deliver("payment_intent.succeeded", handle.provider_payment_id)
        return order_id, handle

    return _paid
