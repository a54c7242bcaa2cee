"""Printful fulfillment adapter.

Talks to the Printful REST API over httpx: shipping rate quotes, confirmed
order creation and webhook configuration. Webhook bodies are authenticated
with the store's HMAC secret.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import httpx
import structlog

from storefront.config import PrintfulSettings
from storefront.fulfillment.normalization import normalize_shipment
from storefront.fulfillment.provider.port import FulfillmentProviderPort
from storefront.fulfillment.signature import verify_signature

logger = structlog.get_logger(__name__)


def _to_cents(amount) -> int | None:
    try:
        return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, TypeError, ValueError):
        return None


def _recipient(address: dict) -> dict:
    payload = {
        "name": address.get("name") or address.get("email") or "Customer",
        "address1": address.get("line1"),
        "address2": address.get("line2"),
        "city": address.get("city"),
        "state_code": address.get("region"),
        "country_code": (address.get("country") or "").upper() or None,
        "zip": address.get("postal"),
        "phone": address.get("phone"),
        "email": address.get("email"),
    }
    return {key: value for key, value in payload.items() if value}


class PrintfulProvider(FulfillmentProviderPort):
    """Printful REST API adapter."""

    def __init__(self, settings: PrintfulSettings, timeout: float = 15.0, transport=None):
        self.settings = settings
        headers = {"Content-Type": "application/json"}
        if settings.api_key:
            headers["Authorization"] = f"Bearer {settings.api_key}"
        if settings.store_id:
            headers["X-PF-Store-Id"] = settings.store_id
        self._client = httpx.Client(
            base_url=settings.api_base,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def quote_rates(self, recipient: dict, items: list[dict], currency: str) -> list[dict]:
        if not items:
            return []
        response = self._client.post(
            "/shipping/rates",
            json={
                "recipient": _recipient(recipient),
                "items": [{"variant_id": item["variant_id"], "quantity": item["quantity"]} for item in items],
                "currency": currency.upper(),
            },
        )
        response.raise_for_status()

        rates = []
        for entry in response.json().get("result") or []:
            amount = _to_cents(entry.get("rate"))
            if amount is None or not entry.get("id"):
                continue
            rates.append(
                {
                    "id": str(entry["id"]),
                    "name": entry.get("name") or str(entry["id"]),
                    "amount_cents": amount,
                    "currency": (entry.get("currency") or currency).lower(),
                    "min_delivery_days": entry.get("minDeliveryDays"),
                    "max_delivery_days": entry.get("maxDeliveryDays"),
                }
            )
        return rates

    def create_order(self, external_id: str, recipient: dict, items: list[dict]) -> dict:
        payload = {
            "external_id": external_id,
            "recipient": _recipient(recipient),
            "items": [
                {
                    "sync_variant_id": int(item["variant_id"]),
                    "quantity": item["quantity"],
                    "retail_price": item.get("retail_price"),
                    "name": item.get("name"),
                }
                for item in items
            ],
            "confirm": True,
        }
        response = self._client.post("/orders", json=payload)
        if response.is_error:
            logger.error(
                "printful_order_create_failed",
                external_id=external_id,
                status_code=response.status_code,
                body=response.text[:500],
            )
            return {"provider_order_id": None, "status": None, "error": f"HTTP {response.status_code}"}

        result = response.json().get("result") or {}
        shipments = [s for s in map(normalize_shipment, result.get("shipments") or []) if s is not None]
        tracked = next((s for s in shipments if s["tracking_number"] or s["tracking_url"]), None)
        return {
            "provider_order_id": str(result["id"]) if result.get("id") is not None else None,
            "status": result.get("status"),
            "tracking_number": result.get("tracking_number") or (tracked and tracked["tracking_number"]),
            "tracking_url": result.get("tracking_url") or (tracked and tracked["tracking_url"]),
            "shipments": shipments,
        }

    def verify_webhook_signature(self, payload: bytes, signature: str | None) -> bool:
        return verify_signature(payload, signature, self.settings.webhook_secret)

    def register_webhook(self, url: str, event_types: list[str]) -> bool:
        try:
            existing = self._client.get("/webhooks")
            if existing.is_success:
                current = existing.json().get("result") or {}
                if current.get("url") == url and set(current.get("types") or []) == set(event_types):
                    return True
        except httpx.HTTPError as exc:
            logger.warning("printful_webhook_fetch_failed", error=str(exc))

        try:
            response = self._client.post("/webhooks", json={"url": url, "types": list(event_types)})
        except httpx.HTTPError as exc:
            logger.warning("printful_webhook_register_failed", error=str(exc))
            return False
        if response.is_error:
            logger.warning("printful_webhook_register_failed", status_code=response.status_code, body=response.text[:500])
            return False
        return True
