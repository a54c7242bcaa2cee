"""Product aggregate: the live catalogue a cart is priced against.

Products and their variants are edited elsewhere (catalogue screens); the
checkout only reads them. Prices are integer minor-currency units.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront


class ProductKind(Enum):
    DIGITAL = "digital"
    PHYSICAL = "physical"
    SERVICE = "service"


class FulfillmentKind(Enum):
    DOWNLOAD = "download"
    SHIP = "ship"
    EXTERNAL = "external"


@storefront.entity(part_of="Product")
class ProductVariant:
    """A purchasable variation of a product that may override price and SKU."""

    label = String(required=True, max_length=255)
    price_cents = Integer(min_value=0)  # None means "use the product price"
    currency = String(max_length=3)
    sku = String(max_length=100)
    provider_variant_id = String(max_length=100)
    active = Boolean(default=True)
    sort_order = Integer(default=0)


@storefront.aggregate
class Product:
    selling_group_id = Identifier(required=True)
    title = String(required=True, max_length=255)
    description = Text()
    price_cents = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="usd")
    active = Boolean(default=True)
    kind = String(choices=ProductKind, default=ProductKind.DIGITAL.value)
    fulfillment_kind = String(choices=FulfillmentKind, default=FulfillmentKind.DOWNLOAD.value)
    fulfillment_url = String(max_length=1000)
    sku = String(max_length=100)
    metadata = Text()  # JSON object
    variants = HasMany(ProductVariant)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        selling_group_id,
        title,
        price_cents,
        currency="usd",
        kind=ProductKind.DIGITAL.value,
        fulfillment_kind=FulfillmentKind.DOWNLOAD.value,
        active=True,
        sku=None,
        metadata=None,
        description=None,
    ):
        now = datetime.now(UTC)
        return cls(
            selling_group_id=selling_group_id,
            title=title,
            description=description,
            price_cents=price_cents,
            currency=(currency or "usd").lower(),
            kind=kind,
            fulfillment_kind=fulfillment_kind,
            active=active,
            sku=sku,
            metadata=json.dumps(metadata or {}),
            created_at=now,
            updated_at=now,
        )

    def add_variant(self, label, price_cents=None, sku=None, provider_variant_id=None, active=True):
        if price_cents is not None and price_cents < 0:
            raise ValidationError({"price_cents": ["Variant price cannot be negative"]})
        variant = ProductVariant(
            label=label,
            price_cents=price_cents,
            currency=self.currency,
            sku=sku,
            provider_variant_id=str(provider_variant_id) if provider_variant_id is not None else None,
            active=active,
            sort_order=len(self.variants or []),
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)
        return variant

    @property
    def metadata_dict(self) -> dict:
        try:
            data = json.loads(self.metadata) if self.metadata else {}
        except (json.JSONDecodeError, TypeError):
            return {}
        return data if isinstance(data, dict) else {}

    @property
    def requires_shipping(self) -> bool:
        return self.fulfillment_kind == FulfillmentKind.SHIP.value or self.kind == ProductKind.PHYSICAL.value

    def variant(self, variant_id):
        if not variant_id:
            return None
        return next((v for v in (self.variants or []) if str(v.id) == str(variant_id)), None)


def products_for(selling_group_id: str) -> list[Product]:
    """Every product (active or not) listed by a selling group."""
    repo = current_domain.repository_for(Product)
    return repo._dao.query.filter(selling_group_id=str(selling_group_id)).all().items
