"""Checkout orchestration: from a cart to an authorized payment intent.

Sequence:
    1. Assemble the cart against the live catalogue (empty → abort)
    2. Resolve shipping when any line ships
    3. Calculate tax (degrades to zero tax, never aborts)
    4. Resolve the platform fee / split (a block aborts with its code)
    5. Generate the confirmation code
    6. Persist the order, its items and a pending payment      (PlaceOrder)
    7. Authorize the total with the payment processor
    8. Attach the intent id to the order and payment          (AttachPaymentIntent)

Nothing is persisted before step 6. A failure at step 7 leaves the order in
``requires_payment``; a later webhook or manual reconciliation resolves it.
"""

import json
from dataclasses import dataclass, field

import structlog
from protean.utils.globals import current_domain

from storefront.cart.assembly import CartLine, assemble_cart
from storefront.catalogue.product import products_for
from storefront.checkout.confirmation import generate_confirmation_code
from storefront.checkout.errors import (
    EMPTY_CART,
    PAYMENT_AUTHORIZATION_FAILED,
    PAYMENT_PROCESSOR_UNAVAILABLE,
    CheckoutError,
)
from storefront.checkout.request import CheckoutRequest
from storefront.config import default_currency
from storefront.connect.fees import BlockedCharge, resolve_connect_charge
from storefront.order.placement import AttachPaymentIntent, PlaceOrder
from storefront.payment.gateway import get_gateway
from storefront.shipping.resolver import resolve_shipping
from storefront.tax.calculation import calculate_tax

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    client_secret: str
    payment_intent_id: str
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    fee_cents: int
    total_cents: int
    currency: str
    confirmation_code: str
    tax_calculation_id: str | None = None
    shipping_rates: list[dict] = field(default_factory=list)


def create_checkout_intent(request: CheckoutRequest) -> CheckoutResult:
    cart = assemble_cart(
        [CartLine(product_id=line.product_id, quantity=line.quantity, variant_id=line.variant_id) for line in request.cart],
        products_for(request.selling_group_id),
    )
    if cart.is_empty:
        raise CheckoutError(400, EMPTY_CART, "No valid items in cart")

    currency = cart.currency(default_currency())
    shipping_address = request.shipping_address_dict
    shipping = resolve_shipping(cart, shipping_address, currency, request.shipping_rate_id)

    tax = calculate_tax(cart, currency, shipping_address, shipping.shipping_cents)

    charge = resolve_connect_charge(request.selling_group_id, tax.total_cents)
    if isinstance(charge, BlockedCharge):
        logger.info(
            "checkout_blocked",
            selling_group_id=request.selling_group_id,
            code=charge.code,
        )
        raise CheckoutError(409, charge.code, charge.message)

    confirmation_code = generate_confirmation_code()
    contact_email = request.contact.email or (shipping_address or {}).get("email")

    metadata = {
        "cart": [
            {
                "product_id": str(line.product.id),
                "variant_id": str(line.variant.id) if line.variant is not None else None,
                "quantity": line.quantity,
            }
            for line in cart.lines
        ],
        "shipping_rate_id": shipping.rate_id,
        "tax_calculation_id": tax.calculation_id,
        "tax_reported_total_cents": tax.reported_total_cents,
        "platform_fee_cents": charge.fee_cents,
        "connect_destination_account_id": charge.destination_account_id,
        "promo_code": request.promo_code,
    }
    lines = [
        {
            "product_id": str(line.product.id),
            "variant_id": str(line.variant.id) if line.variant is not None else None,
            "title": line.product.title if line.variant is None else f"{line.product.title} ({line.variant.label})",
            "quantity": line.quantity,
            "unit_price_cents": line.unit_price_cents,
            "fulfillment_kind": line.product.fulfillment_kind,
            "provider_variant_id": line.provider_variant_id,
        }
        for line in cart.lines
    ]

    order_id = current_domain.process(
        PlaceOrder(
            selling_group_id=request.selling_group_id,
            buyer_id=request.buyer_id,
            confirmation_code=confirmation_code,
            lines=json.dumps(lines),
            subtotal_cents=tax.subtotal_cents,
            shipping_cents=tax.shipping_cents,
            tax_cents=tax.tax_cents,
            fee_cents=charge.fee_cents,
            currency=currency,
            shipping_required=shipping.required,
            shipping_address=json.dumps(shipping_address) if shipping_address else None,
            billing_address=json.dumps(request.billing_address_dict) if request.billing_address else None,
            billing_same_as_shipping=request.billing_same_as_shipping,
            contact_email=contact_email,
            contact_phone=request.contact.phone,
            shipping_rate_id=shipping.rate_id,
            shipping_carrier=shipping.carrier,
            promo_code=request.promo_code,
            notes=request.notes or (shipping_address or {}).get("notes"),
            payment_method=request.payment_method,
            terms_version=request.terms_version,
            terms_accepted_at=request.terms_accepted_at,
            metadata=json.dumps(metadata),
        ),
        asynchronous=False,
    )
    logger.info(
        "order_placed",
        order_id=order_id,
        selling_group_id=request.selling_group_id,
        total_cents=tax.total_cents,
        currency=currency,
    )

    intent = get_gateway().create_payment_intent(
        amount_cents=tax.total_cents,
        currency=currency,
        receipt_email=contact_email,
        metadata={
            "order_id": order_id,
            "selling_group_id": request.selling_group_id,
            "confirmation_code": confirmation_code,
            "tax_calculation_id": tax.calculation_id,
        },
        idempotency_key=f"checkout:{order_id}",
        description=f"{len(cart.lines)} item(s) from {request.selling_group_id}",
        shipping=shipping_address if shipping.required else None,
        application_fee_cents=charge.fee_cents if charge.use_split else None,
        destination_account_id=charge.destination_account_id if charge.use_split else None,
    )
    if not intent.success:
        logger.error(
            "payment_authorization_failed",
            order_id=order_id,
            unavailable=intent.unavailable,
            reason=intent.failure_reason,
        )
        if intent.unavailable:
            raise CheckoutError(503, PAYMENT_PROCESSOR_UNAVAILABLE, "The payment processor is unavailable, try again shortly")
        raise CheckoutError(502, PAYMENT_AUTHORIZATION_FAILED, intent.failure_reason or "Payment could not be authorized")

    current_domain.process(
        AttachPaymentIntent(order_id=order_id, payment_intent_id=intent.payment_intent_id),
        asynchronous=False,
    )

    return CheckoutResult(
        order_id=order_id,
        client_secret=intent.client_secret or "",
        payment_intent_id=intent.payment_intent_id,
        subtotal_cents=tax.subtotal_cents,
        shipping_cents=tax.shipping_cents,
        tax_cents=tax.tax_cents,
        fee_cents=charge.fee_cents,
        total_cents=tax.total_cents,
        currency=currency,
        confirmation_code=confirmation_code,
        tax_calculation_id=tax.calculation_id,
        shipping_rates=shipping.rates,
    )
