"""Fulfillment provider factory.

Provides get_provider() / set_provider() to swap implementations:
- FakeFulfillmentProvider for development and testing (the default)
- PrintfulProvider when ``FULFILLMENT_PROVIDER=printful``
"""

import os

from storefront.config import get_printful_settings
from storefront.fulfillment.provider.fake_adapter import FakeFulfillmentProvider
from storefront.fulfillment.provider.port import FulfillmentProviderPort

_provider: FulfillmentProviderPort | None = None


def _build_provider() -> FulfillmentProviderPort:
    if os.environ.get("FULFILLMENT_PROVIDER", "fake").lower() == "printful":
        from storefront.fulfillment.provider.printful_adapter import PrintfulProvider

        return PrintfulProvider(get_printful_settings())
    return FakeFulfillmentProvider()


def get_provider() -> FulfillmentProviderPort:
    global _provider
    if _provider is None:
        _provider = _build_provider()
    return _provider


def set_provider(provider: FulfillmentProviderPort) -> None:
    global _provider
    _provider = provider


def reset_provider() -> None:
    global _provider
    _provider = None
