"""Seller dashboard: a per-selling-group summary of orders and catalogue.

Computed on read from the Order and Product rows. Revenue covers paid orders
placed in the last 30 days; net revenue is the order total less the platform
fee.
"""

from datetime import UTC, datetime, timedelta

from storefront.catalogue.product import products_for
from storefront.config import default_currency
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.order.queries import orders_for_selling_group

REVENUE_WINDOW = timedelta(days=30)
RECENT_ORDER_LIMIT = 8
CATALOGUE_LIMIT = 12

_OPEN_STATUSES = {
    OrderStatus.PENDING.value,
    OrderStatus.REQUIRES_PAYMENT.value,
    OrderStatus.FULFILLMENT_PENDING.value,
}
_IN_TRANSIT_MARKERS = ("transit", "shipped", "preparing", "out_for_delivery")


def _aware(moment: datetime | None) -> datetime | None:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def _net_cents(order: Order) -> int:
    return max(0, (order.total_cents or 0) - (order.fee_cents or 0))


def _in_transit(order: Order) -> bool:
    label = (order.shipping_status or "").lower()
    return any(marker in label for marker in _IN_TRANSIT_MARKERS)


def _recent_order(order: Order, currency: str) -> dict:
    items = order.items or []
    return {
        "id": str(order.id),
        "confirmation_code": order.confirmation_code,
        "status": order.status,
        "payment_status": order.payment_status,
        "shipping_status": order.shipping_status or "pending",
        "tracking_number": order.tracking_number,
        "shipping_carrier": order.shipping_carrier,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "total_cents": order.total_cents,
        "net_revenue_cents": _net_cents(order),
        "currency": (order.currency or currency).lower(),
        "item_summary": items[0].title if items else "Order items",
        "item_count": len(items),
    }


def store_dashboard(selling_group_id: str, now: datetime | None = None) -> dict:
    """Revenue, order counts, recent orders and catalogue for one selling group."""
    now = _aware(now) or datetime.now(UTC)
    orders = orders_for_selling_group(selling_group_id)
    products = sorted(
        products_for(selling_group_id),
        key=lambda p: (not p.active, p.created_at.isoformat() if p.created_at else ""),
    )

    if orders and orders[0].currency:
        currency = orders[0].currency
    elif products and products[0].currency:
        currency = products[0].currency
    else:
        currency = default_currency()
    currency = currency.lower()

    since = now - REVENUE_WINDOW
    paid_recently = [
        order
        for order in orders
        if order.payment_status == PaymentStatus.SUCCEEDED.value
        and order.created_at is not None
        and _aware(order.created_at) >= since
    ]

    return {
        "selling_group_id": str(selling_group_id),
        "currency": currency,
        "summary": {
            "gross_last_30_cents": sum(order.total_cents or 0 for order in paid_recently),
            "net_last_30_cents": sum(_net_cents(order) for order in paid_recently),
            "total_orders": len(orders),
            "open_orders": len(
                [
                    o
                    for o in orders
                    if o.status in _OPEN_STATUSES or o.payment_status == PaymentStatus.REQUIRES_PAYMENT.value
                ]
            ),
            "in_transit_orders": len([o for o in orders if _in_transit(o)]),
            "fulfilled_orders": len([o for o in orders if o.status == OrderStatus.FULFILLED.value]),
            "failed_orders": len([o for o in orders if o.payment_status == PaymentStatus.FAILED.value]),
            "pending_payment": len([o for o in orders if o.payment_status == PaymentStatus.REQUIRES_PAYMENT.value]),
            "last_order_at": orders[0].created_at.isoformat() if orders and orders[0].created_at else None,
        },
        "recent_orders": [_recent_order(order, currency) for order in orders[:RECENT_ORDER_LIMIT]],
        "catalogue": [
            {
                "id": str(product.id),
                "title": product.title,
                "price_cents": product.price_cents,
                "currency": (product.currency or currency).lower(),
                "active": product.active,
                "kind": product.kind,
                "fulfillment_kind": product.fulfillment_kind,
            }
            for product in products[:CATALOGUE_LIMIT]
        ],
    }
