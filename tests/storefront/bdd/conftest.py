"""Shared BDD fixtures and step definitions for the Storefront domain."""

from pytest_bdd import given, parsers, then

from storefront.order.events import OrderPaid, OrderPaymentFailed, OrderPlaced, ShippingUpdated
from storefront.order.order import Order

# Map event name strings to classes for dynamic lookup
_ORDER_EVENT_CLASSES = {
    "OrderPlaced": OrderPlaced,
    "OrderPaid": OrderPaid,
    "OrderPaymentFailed": OrderPaymentFailed,
    "ShippingUpdated": ShippingUpdated,
}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("an order awaiting payment for {total:d} cents"), target_fixture="order")
def _order_awaiting_payment(total):
    order = Order.place(
        selling_group_id="sg-bdd",
        buyer_id="buyer-bdd",
        confirmation_code="BDDX2345",
        lines=[{"product_id": "prod-bdd", "title": "Poster", "quantity": 1, "unit_price_cents": total}],
        subtotal_cents=total,
        shipping_cents=0,
        tax_cents=0,
        currency="usd",
    )
    order.attach_payment_intent("pi_bdd")
    order._events.clear()
    return order


@given("the order needs shipping", target_fixture="order")
def _order_needs_shipping(order):
    order.shipping_required = True
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _order_status(order, status):
    assert order.status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _payment_status(order, status):
    assert order.payment_status == status


@then(parsers.cfparse('the payment attempt status is "{status}"'))
def _attempt_status(order, status):
    assert order.payments[0].status == status


@then(parsers.cfparse('the shipping status is "{status}"'))
def _shipping_status(order, status):
    assert order.shipping_status == status


@then(parsers.cfparse('the tracking number is "{tracking_number}"'))
def _tracking_number(order, tracking_number):
    assert order.tracking_number == tracking_number


@then(parsers.cfparse("{count:d} {event_type} event is raised"))
def _event_count(order, count, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    raised = [e for e in order._events if isinstance(e, event_cls)]
    assert len(raised) == count, f"Events: {[type(e).__name__ for e in order._events]}"
