"""Domain events for the Order aggregate.

OrderPaid and OrderPaymentFailed are the triggers for fulfillment dispatch,
payout bookkeeping and buyer/seller notifications; none of those run inside
the webhook request that caused the transition.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A checkout persisted a new order awaiting payment."""

    __version__ = 1

    order_id = Identifier(required=True)
    selling_group_id = Identifier(required=True)
    buyer_id = Identifier()
    confirmation_code = String(required=True)
    total_cents = Integer(required=True)
    currency = String(required=True)
    shipping_required = Boolean(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaid:
    """The processor confirmed the payment for an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    selling_group_id = Identifier(required=True)
    buyer_id = Identifier()
    payment_intent_id = String(required=True)
    amount_cents = Integer(required=True)
    currency = String(required=True)
    shipping_required = Boolean(required=True)
    paid_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentFailed:
    """The processor reported the payment as failed or canceled."""

    __version__ = 1

    order_id = Identifier(required=True)
    selling_group_id = Identifier(required=True)
    buyer_id = Identifier()
    payment_intent_id = String(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class ShippingUpdated:
    """Shipping status or tracking details changed."""

    __version__ = 1

    order_id = Identifier(required=True)
    shipping_status = String()
    tracking_number = String()
    tracking_url = String()
    carrier = String()
    updated_at = DateTime(required=True)
