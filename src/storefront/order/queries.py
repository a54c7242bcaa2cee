"""Order lookups and the read shape returned by the store API."""

import json

from protean.utils.globals import current_domain

from storefront.order.order import Order


def order_for_payment_intent(payment_intent_id: str) -> Order | None:
    """Fully loaded order for a processor intent id, or None."""
    if not payment_intent_id:
        return None
    repo = current_domain.repository_for(Order)
    matches = repo._dao.query.filter(payment_intent_id=payment_intent_id).all().items
    return repo.get(matches[0].id) if matches else None


def _newest_first(orders: list[Order]) -> list[Order]:
    return sorted(orders, key=lambda o: o.created_at.isoformat() if o.created_at else "", reverse=True)


def orders_for_buyer(buyer_id: str) -> list[Order]:
    repo = current_domain.repository_for(Order)
    found = repo._dao.query.filter(buyer_id=str(buyer_id)).all().items
    return _newest_first([repo.get(order.id) for order in found])


def orders_for_selling_group(selling_group_id: str) -> list[Order]:
    repo = current_domain.repository_for(Order)
    found = repo._dao.query.filter(selling_group_id=str(selling_group_id)).all().items
    return _newest_first([repo.get(order.id) for order in found])


def order_to_dict(order: Order) -> dict:
    return {
        "id": str(order.id),
        "selling_group_id": str(order.selling_group_id),
        "buyer_id": str(order.buyer_id) if order.buyer_id else None,
        "status": order.status,
        "payment_status": order.payment_status,
        "confirmation_code": order.confirmation_code,
        "subtotal_cents": order.subtotal_cents,
        "shipping_cents": order.shipping_cents,
        "tax_cents": order.tax_cents,
        "fee_cents": order.fee_cents,
        "total_cents": order.total_cents,
        "currency": order.currency,
        "shipping_required": bool(order.shipping_required),
        "shipping_status": order.shipping_status,
        "shipping_carrier": order.shipping_carrier,
        "tracking_number": order.tracking_number,
        "tracking_url": order.tracking_url,
        "shipping_address": order.shipping_address.as_dict() if order.shipping_address else None,
        "contact_email": order.contact_email,
        "payment_intent_id": order.payment_intent_id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {
                "id": str(item.id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "title": item.title,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "total_cents": item.total_cents,
                "currency": item.currency,
                "metadata": json.loads(item.metadata) if item.metadata else {},
            }
            for item in order.items or []
        ],
        "payments": [
            {
                "payment_intent_id": attempt.payment_intent_id,
                "status": attempt.status,
                "amount_cents": attempt.amount_cents,
                "charge_id": attempt.charge_id,
                "receipt_url": attempt.receipt_url,
            }
            for attempt in order.payments or []
        ],
    }
