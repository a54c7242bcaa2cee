"""Fulfillment webhook reconciliation: verify, normalize, apply.

The provider signs the raw body; nothing is parsed before the signature is
checked. The order is found by the external id the dispatcher sent with the
fulfillment order (the storefront order id). Unknown orders are acknowledged
and ignored.
"""

import json
from collections.abc import Mapping

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.fulfillment.normalization import normalize_fulfillment_payload
from storefront.fulfillment.provider import get_provider
from storefront.fulfillment.signature import resolve_signature_header
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


class InvalidFulfillmentSignature(Exception):
    pass


class MalformedFulfillmentPayload(Exception):
    pass


@storefront.command(part_of="Order")
class ApplyFulfillmentEvent:
    """Merge a normalized provider event into the matching order."""

    order_id = Identifier(required=True)
    event_type = String(max_length=100)
    shipping_status = String(max_length=50)
    tracking_number = String(max_length=255)
    tracking_url = String(max_length=1000)
    carrier = String(max_length=100)
    shipments = Text()  # JSON list
    event_created_at = Integer()
    raw_event = Text()  # JSON object


@storefront.command_handler(part_of=Order)
class ApplyFulfillmentEventHandler:
    @handle(ApplyFulfillmentEvent)
    def apply_event(self, command):
        repo = current_domain.repository_for(Order)
        try:
            order = repo.get(command.order_id)
        except ObjectNotFoundError:
            logger.info("fulfillment_webhook_unknown_order", order_id=command.order_id, event_type=command.event_type)
            return False

        changed = order.apply_fulfillment_update(
            shipping_status=command.shipping_status,
            tracking_number=command.tracking_number,
            tracking_url=command.tracking_url,
            carrier=command.carrier,
            shipments=json.loads(command.shipments) if command.shipments else [],
            event_created_at=command.event_created_at,
            raw_event=json.loads(command.raw_event) if command.raw_event else {},
        )
        repo.add(order)
        logger.info(
            "fulfillment_webhook_applied",
            order_id=str(order.id),
            event_type=command.event_type,
            shipping_status=order.shipping_status,
            changed=changed,
        )
        return True


def handle_fulfillment_webhook(raw_body: bytes, headers: Mapping[str, str]) -> str:
    """Verify and apply one provider webhook. Returns "processed" or "ignored".

    Raises InvalidFulfillmentSignature or MalformedFulfillmentPayload; the
    caller turns those into 401 / 400.
    """
    signature = resolve_signature_header(headers)
    if not get_provider().verify_webhook_signature(raw_body, signature):
        logger.warning("fulfillment_webhook_bad_signature", has_signature=signature is not None)
        raise InvalidFulfillmentSignature("Invalid fulfillment webhook signature")

    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedFulfillmentPayload(str(exc)) from exc

    event = normalize_fulfillment_payload(payload)
    if event is None:
        logger.info("fulfillment_webhook_ignored", reason="no_external_id", event_type=payload.get("type") if isinstance(payload, dict) else None)
        return "ignored"

    applied = current_domain.process(
        ApplyFulfillmentEvent(
            order_id=event.external_id,
            event_type=event.event_type,
            shipping_status=event.shipping_status,
            tracking_number=event.tracking_number,
            tracking_url=event.tracking_url,
            carrier=event.carrier,
            shipments=json.dumps(event.shipments),
            event_created_at=event.created_at,
            raw_event=json.dumps(payload),
        ),
        asynchronous=False,
    )
    return "processed" if applied else "ignored"
