"""Shipping resolution for carts that contain physical goods."""

from dataclasses import dataclass, field

import structlog

from storefront.cart.assembly import AssembledCart
from storefront.checkout.errors import SHIPPING_ADDRESS_REQUIRED, SHIPPING_UNAVAILABLE, CheckoutError
from storefront.fulfillment.provider import get_provider

logger = structlog.get_logger(__name__)

REQUIRED_ADDRESS_FIELDS = ("country", "postal", "city")


@dataclass(frozen=True)
class ShippingResolution:
    required: bool
    rates: list[dict] = field(default_factory=list)
    selected: dict | None = None

    @property
    def shipping_cents(self) -> int:
        return int(self.selected["amount_cents"]) if self.selected else 0

    @property
    def rate_id(self) -> str | None:
        return self.selected["id"] if self.selected else None

    @property
    def carrier(self) -> str | None:
        return self.selected.get("name") if self.selected else None


def has_complete_address(address: dict | None) -> bool:
    if not address:
        return False
    return all(str(address.get(key) or "").strip() for key in REQUIRED_ADDRESS_FIELDS)


def resolve_shipping(
    cart: AssembledCart,
    address: dict | None,
    currency: str,
    chosen_rate_id: str | None = None,
) -> ShippingResolution:
    """Quote and select a shipping rate, or report that none is needed.

    Raises CheckoutError when the address is incomplete or no rate can be quoted.
    """
    if not cart.shipping_required:
        return ShippingResolution(required=False)

    if not has_complete_address(address):
        raise CheckoutError(400, SHIPPING_ADDRESS_REQUIRED, "A shipping address with city, postal code and country is required")

    # Lines without a provider variant are left out of the quote
    quantities: dict[str, int] = {}
    for line in cart.lines:
        if not line.requires_shipping or not line.provider_variant_id:
            continue
        quantities[line.provider_variant_id] = quantities.get(line.provider_variant_id, 0) + line.quantity
    items = [{"variant_id": variant_id, "quantity": quantity} for variant_id, quantity in quantities.items()]

    rates: list[dict] = []
    if items:
        try:
            rates = get_provider().quote_rates(address, items, currency)
        except Exception as exc:
            logger.warning("shipping_quote_failed", error=str(exc))
            rates = []

    if not rates:
        raise CheckoutError(422, SHIPPING_UNAVAILABLE, "Shipping is not available for this address")

    selected = next((rate for rate in rates if chosen_rate_id and rate["id"] == chosen_rate_id), rates[0])
    return ShippingResolution(required=True, rates=rates, selected=selected)
