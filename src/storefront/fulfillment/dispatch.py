"""Fulfillment dispatch: submit paid physical orders to the provider.

Runs off OrderPaid, outside the webhook request. Orders with nothing the
provider can make are skipped. A failed submission is logged and its ledger
claim released so it can be retried by hand; it is never retried
automatically.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.fulfillment.provider import get_provider
from storefront.ledger.effect import FULFILLMENT_DISPATCH, claim_effect, release_effect
from storefront.order.events import OrderPaid
from storefront.order.order import Order, PaymentStatus

logger = structlog.get_logger(__name__)


def _provider_items(order: Order) -> list[dict]:
    items = []
    for item in order.items or []:
        if not item.provider_variant_id:
            continue
        items.append(
            {
                "variant_id": item.provider_variant_id,
                "quantity": item.quantity,
                "retail_price": f"{item.unit_price_cents / 100:.2f}",
                "name": item.title,
            }
        )
    return items


def _recipient(order: Order) -> dict:
    recipient = order.shipping_address.as_dict() if order.shipping_address else {}
    recipient["email"] = recipient.get("email") or order.contact_email
    recipient["phone"] = recipient.get("phone") or order.contact_phone
    return recipient


def dispatch_fulfillment(order_id: str) -> bool:
    """Submit the order to the fulfillment provider. Returns True when submitted."""
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)

    if not order.shipping_required or order.payment_status != PaymentStatus.SUCCEEDED.value:
        return False

    items = _provider_items(order)
    if not items:
        logger.info("fulfillment_skipped_no_provider_items", order_id=order_id)
        return False

    if not claim_effect(FULFILLMENT_DISPATCH, order_id):
        logger.info("fulfillment_already_dispatched", order_id=order_id)
        return False

    try:
        result = get_provider().create_order(external_id=order_id, recipient=_recipient(order), items=items)
    except Exception:
        logger.error("fulfillment_submit_failed", order_id=order_id, exc_info=True)
        release_effect(FULFILLMENT_DISPATCH, order_id)
        return False

    if result.get("error") or not result.get("provider_order_id"):
        logger.error("fulfillment_submit_rejected", order_id=order_id, error=result.get("error"))
        release_effect(FULFILLMENT_DISPATCH, order_id)
        return False

    order.mark_fulfillment_submitted(result["provider_order_id"], result.get("status"))
    if result.get("tracking_number") or result.get("tracking_url"):
        order.apply_fulfillment_update(
            tracking_number=result.get("tracking_number"),
            tracking_url=result.get("tracking_url"),
            shipments=result.get("shipments") or [],
        )
    repo.add(order)
    logger.info(
        "fulfillment_submitted",
        order_id=order_id,
        provider_order_id=result["provider_order_id"],
        item_count=len(items),
    )
    return True


@storefront.event_handler(part_of=Order)
class FulfillmentDispatchHandler:
    """Sends paid orders that need shipping to the fulfillment provider."""

    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        if not event.shipping_required:
            return
        try:
            dispatch_fulfillment(str(event.order_id))
        except Exception:
            logger.error("fulfillment_dispatch_failed", order_id=str(event.order_id), exc_info=True)
