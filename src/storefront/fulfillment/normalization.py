"""Normalize fulfillment provider webhook bodies into one internal shape.

Provider events arrive as ``{type, created, data: {...}}`` where the order
reference, status, shipments and tracking may sit at several levels of the
payload. Everything downstream works with ``FulfillmentEvent`` instead.
"""

from dataclasses import dataclass, field

# Event type takes precedence over the provider order status
EVENT_STATUS_MAP = {
    "order_created": "preparing",
    "package_shipped": "shipped",
    "package_returned": "returned",
    "order_failed": "failed",
    "order_canceled": "canceled",
    "order_put_hold": "on_hold",
    "order_put_hold_approval": "in_review",
    "order_remove_hold": "preparing",
    "order_refunded": "refunded",
}

ORDER_STATUS_MAP = {
    "draft": "pending",
    "pending": "preparing",
    "inreview": "in_review",
    "onhold": "on_hold",
    "inprocess": "in_production",
    "partial": "partial",
    "fulfilled": "shipped",
    "failed": "failed",
    "canceled": "canceled",
}

WEBHOOK_EVENT_TYPES = [
    "order_created",
    "order_updated",
    "order_failed",
    "order_canceled",
    "order_put_hold",
    "order_put_hold_approval",
    "order_remove_hold",
    "order_refunded",
    "package_shipped",
    "package_returned",
]


@dataclass(frozen=True)
class FulfillmentEvent:
    external_id: str
    event_type: str | None
    order_status: str | None
    shipping_status: str | None
    shipments: list[dict] = field(default_factory=list)
    tracking_number: str | None = None
    tracking_url: str | None = None
    carrier: str | None = None
    created_at: int | None = None
    data: dict = field(default_factory=dict)


def _text(value) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int | float):
        return str(value)
    return None


def _integer(value) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


def normalize_shipment(entry) -> dict | None:
    if not isinstance(entry, dict):
        return None
    return {
        "id": _integer(entry.get("id")),
        "carrier": _text(entry.get("carrier")),
        "tracking_number": _text(
            entry.get("tracking_number") or entry.get("tracking_no") or entry.get("trackingNo")
        ),
        "tracking_url": _text(entry.get("tracking_url")),
        "service": _text(entry.get("service")),
        "status": _text(entry.get("status")),
        "shipped_at": _integer(entry.get("shipped_at") or entry.get("created")),
    }


def collect_shipments(data: dict, order: dict | None) -> list[dict]:
    candidates = []
    if isinstance(data.get("shipments"), list):
        candidates.extend(data["shipments"])
    if data.get("shipment"):
        candidates.append(data["shipment"])
    if order and isinstance(order.get("shipments"), list):
        candidates.extend(order["shipments"])
    return [shipment for shipment in map(normalize_shipment, candidates) if shipment is not None]


def map_shipping_status(event_type: str | None, order_status: str | None) -> str | None:
    """Translate a provider event type (preferred) or order status to a shipping label.

    An unrecognized order status is passed through as-is.
    """
    if event_type:
        mapped = EVENT_STATUS_MAP.get(event_type.lower())
        if mapped:
            return mapped
    if order_status:
        mapped = ORDER_STATUS_MAP.get(order_status.lower())
        if mapped:
            return mapped
    return order_status


def normalize_fulfillment_payload(payload) -> FulfillmentEvent | None:
    """Return a normalized event, or None when the body names no order."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    order = data.get("order") if isinstance(data.get("order"), dict) else None

    external_id = _text(data.get("external_id")) or (_text(order.get("external_id")) if order else None)
    if not external_id:
        return None

    event_type = _text(payload.get("type"))
    order_status = _text(data.get("status")) or (_text(order.get("status")) if order else None)
    shipments = collect_shipments(data, order)

    # Shipment sub-objects win over top-level tracking fields
    tracked = next((s for s in shipments if s["tracking_url"] or s["tracking_number"]), None)
    tracking_url = tracked["tracking_url"] if tracked and tracked["tracking_url"] else _text(data.get("tracking_url"))
    tracking_number = (
        tracked["tracking_number"]
        if tracked and tracked["tracking_number"]
        else _text(data.get("tracking_number") or data.get("tracking_no"))
    )
    carrier = tracked["carrier"] if tracked and tracked["carrier"] else _text(data.get("carrier"))

    created = payload.get("created")
    return FulfillmentEvent(
        external_id=external_id,
        event_type=event_type,
        order_status=order_status,
        shipping_status=map_shipping_status(event_type, order_status),
        shipments=shipments,
        tracking_number=tracking_number,
        tracking_url=tracking_url,
        carrier=carrier,
        created_at=int(created) if isinstance(created, int | float) and not isinstance(created, bool) else None,
        data=data,
    )
