import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    """Start every test from a known configuration."""
    for name in (
        "CONNECT_ENABLED",
        "CONNECT_REQUIRE_ACCOUNT",
        "PLATFORM_FEE_BPS",
        "PAYMENT_GATEWAY",
        "FULFILLMENT_PROVIDER",
        "STORE_DEFAULT_CURRENCY",
        "SITE_URL",
        "WEBHOOK_REGISTRATION_TTL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def gateway():
    from storefront.payment.gateway import set_gateway
    from storefront.payment.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def provider():
    from storefront.fulfillment.provider import set_provider
    from storefront.fulfillment.provider.fake_adapter import FakeFulfillmentProvider

    fake = FakeFulfillmentProvider()
    set_provider(fake)
    return fake


@pytest.fixture()
def mailbox():
    from storefront.notifications.channel import set_email_channel
    from storefront.notifications.channel.fake_email import FakeEmailAdapter

    fake = FakeEmailAdapter()
    set_email_channel(fake)
    return fake


@pytest.fixture()
def admins():
    from storefront.notifications.directory import set_admin_directory
    from storefront.notifications.directory.static import StaticAdminDirectory

    directory = StaticAdminDirectory()
    set_admin_directory(directory)
    return directory
