"""Order placement: commands and handler used by checkout.

Placing the order and attaching the processor's intent id are separate
commands so each runs in its own unit of work: the order is durable before
the processor is called, and stays recoverable if that call fails.
"""

import json

from protean import handle
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order


@storefront.command(part_of="Order")
class PlaceOrder:
    """Persist a priced checkout as an order awaiting payment."""

    selling_group_id = Identifier(required=True)
    buyer_id = Identifier()
    confirmation_code = String(required=True, max_length=8)
    lines = Text(required=True)  # JSON list of line snapshots
    subtotal_cents = Integer(required=True, min_value=0)
    shipping_cents = Integer(default=0, min_value=0)
    tax_cents = Integer(default=0, min_value=0)
    fee_cents = Integer(default=0, min_value=0)
    currency = String(required=True, max_length=3)
    shipping_required = Boolean(default=False)
    shipping_address = Text()  # JSON
    billing_address = Text()  # JSON
    billing_same_as_shipping = Boolean(default=True)
    contact_email = String(max_length=255)
    contact_phone = String(max_length=50)
    shipping_rate_id = String(max_length=100)
    shipping_carrier = String(max_length=100)
    promo_code = String(max_length=100)
    notes = String(max_length=2000)
    payment_method = String(max_length=50)
    terms_version = String(max_length=50)
    terms_accepted_at = DateTime()
    metadata = Text()  # JSON


@storefront.command(part_of="Order")
class AttachPaymentIntent:
    """Link the processor's payment intent to an order and its pending payment."""

    order_id = Identifier(required=True)
    payment_intent_id = String(required=True, max_length=255)


def _loads(value):
    return json.loads(value) if value else None


@storefront.command_handler(part_of=Order)
class OrderPlacementHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        order = Order.place(
            selling_group_id=command.selling_group_id,
            buyer_id=command.buyer_id,
            confirmation_code=command.confirmation_code,
            lines=json.loads(command.lines),
            subtotal_cents=command.subtotal_cents,
            shipping_cents=command.shipping_cents or 0,
            tax_cents=command.tax_cents or 0,
            fee_cents=command.fee_cents or 0,
            currency=command.currency,
            shipping_required=command.shipping_required,
            shipping_address=_loads(command.shipping_address),
            billing_address=_loads(command.billing_address),
            billing_same_as_shipping=command.billing_same_as_shipping,
            contact_email=command.contact_email,
            contact_phone=command.contact_phone,
            shipping_rate_id=command.shipping_rate_id,
            shipping_carrier=command.shipping_carrier,
            promo_code=command.promo_code,
            notes=command.notes,
            payment_method=command.payment_method,
            terms_version=command.terms_version,
            terms_accepted_at=command.terms_accepted_at,
            metadata=_loads(command.metadata),
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(AttachPaymentIntent)
    def attach_payment_intent(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.attach_payment_intent(command.payment_intent_id)
        repo.add(order)
