"""Fake fulfillment provider: deterministic partner for testing and development.

Quotes a fixed set of rates for any mapped variant, issues mock provider
order ids and signs webhooks with a known secret.
"""

from uuid import uuid4

from storefront.fulfillment.provider.port import FulfillmentProviderPort
from storefront.fulfillment.signature import verify_signature

DEFAULT_WEBHOOK_SECRET = "test-fulfillment-secret"

DEFAULT_RATES = [
    {"id": "STANDARD", "name": "Standard shipping", "amount_cents": 499, "min_delivery_days": 4, "max_delivery_days": 8},
    {"id": "EXPRESS", "name": "Express shipping", "amount_cents": 1299, "min_delivery_days": 1, "max_delivery_days": 3},
]


class FakeFulfillmentProvider(FulfillmentProviderPort):
    """Fake provider that always succeeds by default."""

    def __init__(self, webhook_secret: str = DEFAULT_WEBHOOK_SECRET):
        self.webhook_secret = webhook_secret
        self.should_succeed = True
        self.failure_reason = "Provider unavailable"
        self.rates = [dict(rate) for rate in DEFAULT_RATES]
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Provider unavailable", rates=None):
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        if rates is not None:
            self.rates = [dict(rate) for rate in rates]

    def quote_rates(self, recipient: dict, items: list[dict], currency: str) -> list[dict]:
        self.calls.append({"method": "quote_rates", "recipient": recipient, "items": items, "currency": currency})
        if not items:
            return []
        return [{**rate, "currency": currency} for rate in self.rates]

    def create_order(self, external_id: str, recipient: dict, items: list[dict]) -> dict:
        self.calls.append({"method": "create_order", "external_id": external_id, "recipient": recipient, "items": items})
        if not self.should_succeed:
            return {"provider_order_id": None, "status": None, "error": self.failure_reason}
        return {
            "provider_order_id": f"pf_{uuid4().hex[:10]}",
            "status": "pending",
            "tracking_number": None,
            "tracking_url": None,
            "shipments": [],
        }

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> bool:
        return verify_signature(payload, signature, self.webhook_secret)

    def register_webhook(self, url: str, event_types: list[str]) -> bool:
        self.calls.append({"method": "register_webhook", "url": url, "event_types": list(event_types)})
        return True
