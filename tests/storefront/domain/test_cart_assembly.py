"""Tests for cart assembly and confirmation codes."""

from storefront.cart.assembly import CartLine, assemble_cart
from storefront.catalogue.product import FulfillmentKind, Product, ProductKind
from storefront.checkout.confirmation import (
    CONFIRMATION_ALPHABET,
    CONFIRMATION_CODE_LENGTH,
    generate_confirmation_code,
)


def _product(title="Poster", price_cents=1500, active=True, **kwargs):
    return Product.create(selling_group_id="sg-001", title=title, price_cents=price_cents, active=active, **kwargs)


class TestAssembleCart:
    def test_prices_lines_from_catalogue(self):
        product = _product()
        cart = assemble_cart([CartLine(product_id=str(product.id), quantity=2)], [product])
        assert len(cart.lines) == 1
        assert cart.lines[0].unit_price_cents == 1500
        assert cart.subtotal_cents == 3000

    def test_unknown_and_inactive_products_are_dropped(self):
        active = _product()
        inactive = _product(title="Retired", active=False)
        cart = assemble_cart(
            [
                CartLine(product_id=str(active.id)),
                CartLine(product_id=str(inactive.id)),
                CartLine(product_id="missing"),
            ],
            [active, inactive],
        )
        assert [line.product.title for line in cart.lines] == ["Poster"]

    def test_all_lines_invalid_is_empty(self):
        cart = assemble_cart([CartLine(product_id="missing")], [])
        assert cart.is_empty
        assert cart.subtotal_cents == 0

    def test_variant_price_overrides_product_price(self):
        product = _product()
        variant = product.add_variant("Large", price_cents=2500)
        cart = assemble_cart([CartLine(product_id=str(product.id), variant_id=str(variant.id))], [product])
        assert cart.lines[0].unit_price_cents == 2500
        assert cart.lines[0].variant.label == "Large"

    def test_inactive_variant_is_dropped(self):
        product = _product()
        variant = product.add_variant("Sold out", active=False)
        cart = assemble_cart([CartLine(product_id=str(product.id), variant_id=str(variant.id))], [product])
        assert cart.is_empty

    def test_quantity_is_at_least_one(self):
        product = _product()
        cart = assemble_cart([CartLine(product_id=str(product.id), quantity=0)], [product])
        assert cart.lines[0].quantity == 1

    def test_shipping_required_for_physical_goods(self):
        digital = _product()
        physical = _product(title="Mug", kind=ProductKind.PHYSICAL.value, fulfillment_kind=FulfillmentKind.SHIP.value)
        assert not assemble_cart([CartLine(product_id=str(digital.id))], [digital]).shipping_required
        cart = assemble_cart([CartLine(product_id=str(digital.id)), CartLine(product_id=str(physical.id))], [digital, physical])
        assert cart.shipping_required

    def test_provider_variant_from_variant_or_metadata(self):
        product = _product(metadata={"printful_variant_id": 4011})
        cart = assemble_cart([CartLine(product_id=str(product.id))], [product])
        assert cart.lines[0].provider_variant_id == "4011"

        variant = product.add_variant("Black", provider_variant_id="9001")
        cart = assemble_cart([CartLine(product_id=str(product.id), variant_id=str(variant.id))], [product])
        assert cart.lines[0].provider_variant_id == "9001"

    def test_currency_comes_from_first_line(self):
        product = _product(currency="EUR")
        cart = assemble_cart([CartLine(product_id=str(product.id))], [product])
        assert cart.currency("usd") == "eur"
        assert assemble_cart([], []).currency("usd") == "usd"


class TestConfirmationCode:
    def test_code_shape(self):
        code = generate_confirmation_code()
        assert len(code) == CONFIRMATION_CODE_LENGTH
        assert set(code) <= set(CONFIRMATION_ALPHABET)

    def test_ambiguous_characters_excluded(self):
        assert not set("01IO") & set(CONFIRMATION_ALPHABET)

    def test_codes_vary(self):
        assert len({generate_confirmation_code() for _ in range(50)}) > 1
