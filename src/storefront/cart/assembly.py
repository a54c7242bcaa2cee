"""Cart assembly: resolve cart lines against the live catalogue.

Inactive or unknown products and inactive variants are dropped silently; they are a
normal consequence of a stale cart, not an error. Quantities are clamped to at
least one and the unit price is the variant override when present, else the
product price.
"""

from dataclasses import dataclass, field

from storefront.catalogue.product import Product, ProductVariant


@dataclass(frozen=True)
class CartLine:
    """One ephemeral cart line as submitted by the buyer."""

    product_id: str
    quantity: int = 1
    variant_id: str | None = None


@dataclass(frozen=True)
class PricedLine:
    product: Product
    variant: ProductVariant | None
    quantity: int
    unit_price_cents: int

    @property
    def total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @property
    def requires_shipping(self) -> bool:
        return self.product.requires_shipping

    @property
    def provider_variant_id(self) -> str | None:
        if self.variant is not None and self.variant.provider_variant_id:
            return str(self.variant.provider_variant_id)
        return _provider_variant_from_metadata(self.product.metadata_dict)


@dataclass(frozen=True)
class AssembledCart:
    lines: list[PricedLine] = field(default_factory=list)

    @property
    def subtotal_cents(self) -> int:
        return sum(line.total_cents for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def shipping_required(self) -> bool:
        return any(line.requires_shipping for line in self.lines)

    def currency(self, default: str) -> str:
        if self.lines and self.lines[0].product.currency:
            return self.lines[0].product.currency.lower()
        return default


def _provider_variant_from_metadata(metadata: dict) -> str | None:
    for key in ("provider_variant_id", "printful_variant_id", "printful_sync_variant_id"):
        value = metadata.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, int | float):
            return str(int(value))
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _clamp_quantity(quantity) -> int:
    try:
        return max(1, int(quantity))
    except (TypeError, ValueError):
        return 1


def assemble_cart(lines: list[CartLine], products: list[Product]) -> AssembledCart:
    """Price every cart line that still refers to an active product/variant."""
    by_id = {str(product.id): product for product in products}
    priced: list[PricedLine] = []

    for line in lines:
        product = by_id.get(str(line.product_id))
        if product is None or not product.active:
            continue

        # An unknown variant id falls back to the product itself
        variant = product.variant(line.variant_id)
        if variant is not None and not variant.active:
            continue

        unit_price = variant.price_cents if variant is not None and variant.price_cents is not None else product.price_cents
        priced.append(
            PricedLine(
                product=product,
                variant=variant,
                quantity=_clamp_quantity(line.quantity),
                unit_price_cents=int(unit_price),
            )
        )

    return AssembledCart(lines=priced)
