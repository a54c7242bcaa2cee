"""Fulfillment provider port: abstract interface for print/ship partners.

The dispatcher and the shipping resolver program against this port; the
concrete partner (Printful in production) is selected via configuration.
"""

from abc import ABC, abstractmethod


class FulfillmentProviderPort(ABC):
    """Abstract interface for fulfillment provider adapters."""

    @abstractmethod
    def quote_rates(self, recipient: dict, items: list[dict], currency: str) -> list[dict]:
        """Quote shipping rates for provider-side variants.

        Args:
            recipient: canonical address dict (line1, city, region, postal, country, ...)
            items: dicts with keys variant_id, quantity

        Returns:
            list of dicts with keys: id, name, amount_cents, currency,
            min_delivery_days, max_delivery_days
        """
        ...

    @abstractmethod
    def create_order(self, external_id: str, recipient: dict, items: list[dict]) -> dict:
        """Submit a confirmed order for manufacturing and shipping.

        Args:
            items: dicts with keys variant_id, quantity, retail_price, name

        Returns:
            dict with keys: provider_order_id, status, tracking_number,
            tracking_url, shipments; or a dict with an ``error`` key
        """
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> bool:
        """Verify that a webhook callback is authentic."""
        ...

    @abstractmethod
    def register_webhook(self, url: str, event_types: list[str]) -> bool:
        """Point the provider's webhook configuration at ``url``.

        Returns:
            True when the configuration is in place (already or newly).
        """
        ...
