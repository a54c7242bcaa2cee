"""Tests for the checkout orchestration, from cart to authorized payment intent."""

import pytest
from protean import current_domain
from storefront.catalogue.product import FulfillmentKind, Product, ProductKind
from storefront.checkout.errors import (
    EMPTY_CART,
    PAYMENT_AUTHORIZATION_FAILED,
    PAYMENT_PROCESSOR_UNAVAILABLE,
    SELLER_CONNECT_MISSING,
    SELLER_ONBOARDING_INCOMPLETE,
    SHIPPING_ADDRESS_REQUIRED,
    SHIPPING_UNAVAILABLE,
    CheckoutError,
)
from storefront.checkout.orchestrator import create_checkout_intent
from storefront.checkout.request import CheckoutRequest
from storefront.connect.account import ConnectAccount
from storefront.order.order import Order, OrderStatus, PaymentStatus
from storefront.payment.gateway.port import AccountSnapshot

ADDRESS = {"name": "Ada Lovelace", "address1": "1 Main St", "city": "Austin", "stateCode": "TX", "zip": "78701", "countryCode": "us"}


def _add_product(title="Poster", price_cents=1500, physical=False, provider_variant_id=None):
    product = Product.create(
        selling_group_id="sg-001",
        title=title,
        price_cents=price_cents,
        kind=ProductKind.PHYSICAL.value if physical else ProductKind.DIGITAL.value,
        fulfillment_kind=FulfillmentKind.SHIP.value if physical else FulfillmentKind.DOWNLOAD.value,
        metadata={"provider_variant_id": provider_variant_id} if provider_variant_id else None,
    )
    current_domain.repository_for(Product).add(product)
    return product


def _request(product, quantity=1, **extra):
    payload = {
        "sellingGroupId": "sg-001",
        "buyerId": "buyer-001",
        "cart": [{"productId": str(product.id), "quantity": quantity}],
        "contact": {"email": "ada@example.com"},
        **extra,
    }
    return CheckoutRequest.model_validate(payload)


def _all_orders():
    return current_domain.repository_for(Order)._dao.query.all().items


def _add_connect_account(gateway, complete=True):
    snapshot = AccountSnapshot(
        account_id="acct_seller",
        charges_enabled=complete,
        payouts_enabled=complete,
        details_submitted=complete,
    )
    gateway.add_account(snapshot)
    current_domain.repository_for(ConnectAccount).add(ConnectAccount.from_snapshot("sg-001", snapshot))


class TestDigitalCheckout:
    def test_creates_order_and_intent(self, gateway):
        gateway.configure_tax(tax_cents=240)
        product = _add_product()

        result = create_checkout_intent(_request(product, quantity=2))

        assert result.subtotal_cents == 3000
        assert result.tax_cents == 240
        assert result.shipping_cents == 0
        assert result.total_cents == 3240
        assert result.client_secret.startswith(result.payment_intent_id)
        assert len(result.confirmation_code) == 8

        order = current_domain.repository_for(Order).get(result.order_id)
        assert order.status == OrderStatus.REQUIRES_PAYMENT.value
        assert order.payment_status == PaymentStatus.REQUIRES_PAYMENT.value
        assert order.payment_intent_id == result.payment_intent_id
        assert order.payments[0].payment_intent_id == result.payment_intent_id
        assert order.total_cents == 3240
        assert order.contact_email == "ada@example.com"

    def test_intent_carries_order_reference_and_idempotency_key(self, gateway):
        product = _add_product()
        result = create_checkout_intent(_request(product))

        call = next(c for c in gateway.calls if c["method"] == "create_payment_intent")
        assert call["amount_cents"] == result.total_cents
        assert call["idempotency_key"] == f"checkout:{result.order_id}"
        assert call["metadata"]["order_id"] == result.order_id
        assert call["application_fee_cents"] is None
        assert call["shipping"] is None

    def test_metadata_records_cart_snapshot(self, gateway):
        product = _add_product()
        result = create_checkout_intent(_request(product, quantity=3, promoCode="SPRING"))

        metadata = current_domain.repository_for(Order).get(result.order_id).metadata_dict
        assert metadata["cart"] == [{"product_id": str(product.id), "variant_id": None, "quantity": 3}]
        assert metadata["promo_code"] == "SPRING"
        assert metadata["tax_calculation_id"] == result.tax_calculation_id

    def test_empty_cart_rejected(self, gateway):
        request = CheckoutRequest.model_validate({"sellingGroupId": "sg-001", "cart": [{"productId": "missing"}]})
        with pytest.raises(CheckoutError) as exc:
            create_checkout_intent(request)
        assert exc.value.status == 400
        assert exc.value.code == EMPTY_CART
        assert _all_orders() == []

    def test_tax_failure_degrades_to_zero_tax(self, gateway):
        gateway.configure_tax(should_fail=True)
        product = _add_product()

        result = create_checkout_intent(_request(product, quantity=2))

        assert result.tax_cents == 0
        assert result.total_cents == 3000
        assert result.tax_calculation_id is None


class TestPhysicalCheckout:
    def test_missing_address_rejected_before_persisting(self, gateway, provider):
        product = _add_product(title="Mug", physical=True, provider_variant_id="4011")
        with pytest.raises(CheckoutError) as exc:
            create_checkout_intent(_request(product))
        assert exc.value.status == 400
        assert exc.value.code == SHIPPING_ADDRESS_REQUIRED
        assert _all_orders() == []

    def test_first_rate_selected_by_default(self, gateway, provider):
        product = _add_product(title="Mug", physical=True, provider_variant_id="4011")

        result = create_checkout_intent(_request(product, shippingAddress=ADDRESS))

        assert result.shipping_cents == 499
        assert result.total_cents == 1500 + 499
        assert [rate["id"] for rate in result.shipping_rates] == ["STANDARD", "EXPRESS"]
        order = current_domain.repository_for(Order).get(result.order_id)
        assert order.shipping_required is True
        assert order.shipping_rate_id == "STANDARD"
        assert order.shipping_address.country == "US"
        assert order.shipping_address.postal == "78701"

    def test_chosen_rate_is_honored(self, gateway, provider):
        product = _add_product(title="Mug", physical=True, provider_variant_id="4011")
        result = create_checkout_intent(_request(product, shippingAddress=ADDRESS, shippingRateId="EXPRESS"))
        assert result.shipping_cents == 1299

    def test_quote_aggregates_quantities_per_variant(self, gateway, provider):
        product = _add_product(title="Mug", physical=True, provider_variant_id="4011")
        request = CheckoutRequest.model_validate(
            {
                "sellingGroupId": "sg-001",
                "cart": [{"productId": str(product.id), "quantity": 1}, {"productId": str(product.id), "quantity": 2}],
                "shippingAddress": ADDRESS,
            }
        )
        create_checkout_intent(request)
        quote = next(c for c in provider.calls if c["method"] == "quote_rates")
        assert quote["items"] == [{"variant_id": "4011", "quantity": 3}]

    def test_unmapped_physical_goods_cannot_ship(self, gateway, provider):
        product = _add_product(title="Handmade vase", physical=True)
        with pytest.raises(CheckoutError) as exc:
            create_checkout_intent(_request(product, shippingAddress=ADDRESS))
        assert exc.value.status == 422
        assert exc.value.code == SHIPPING_UNAVAILABLE
        assert _all_orders() == []


class TestConnectCheckout:
    def test_split_payment_with_platform_fee(self, gateway, monkeypatch):
        monkeypatch.setenv("CONNECT_ENABLED", "true")
        _add_connect_account(gateway)
        product = _add_product(price_cents=10000)

        result = create_checkout_intent(_request(product))

        assert result.fee_cents == 1000
        call = next(c for c in gateway.calls if c["method"] == "create_payment_intent")
        assert call["application_fee_cents"] == 1000
        assert call["destination_account_id"] == "acct_seller"
        order = current_domain.repository_for(Order).get(result.order_id)
        assert order.fee_applied is True

    def test_missing_account_blocks_when_required(self, gateway, monkeypatch):
        monkeypatch.setenv("CONNECT_ENABLED", "true")
        monkeypatch.setenv("CONNECT_REQUIRE_ACCOUNT", "true")
        product = _add_product()

        with pytest.raises(CheckoutError) as exc:
            create_checkout_intent(_request(product))

        assert exc.value.status == 409
        assert exc.value.code == SELLER_CONNECT_MISSING
        assert _all_orders() == []
        assert not [c for c in gateway.calls if c["method"] == "create_payment_intent"]

    def test_incomplete_onboarding_blocks_when_required(self, gateway, monkeypatch):
        monkeypatch.setenv("CONNECT_ENABLED", "true")
        monkeypatch.setenv("CONNECT_REQUIRE_ACCOUNT", "true")
        _add_connect_account(gateway, complete=False)
        product = _add_product()

        with pytest.raises(CheckoutError) as exc:
            create_checkout_intent(_request(product))
        assert exc.value.code == SELLER_ONBOARDING_INCOMPLETE

    def test_missing_account_charges_platform_when_optional(self, gateway, monkeypatch):
        monkeypatch.setenv("CONNECT_ENABLED", "true")
        product = _add_product()
        result = create_checkout_intent(_request(product))
        assert result.fee_cents == 0


class TestPaymentAuthorizationFailures:
    def test_processor_unavailable(self, gateway):
        gateway.configure(should_succeed=False, unavailable=True)
        product = _add_product()

        with pytest.raises(CheckoutError) as exc:
            create_checkout_intent(_request(product))

        assert exc.value.status == 503
        assert exc.value.code == PAYMENT_PROCESSOR_UNAVAILABLE
        [order] = _all_orders()
        assert order.status == OrderStatus.REQUIRES_PAYMENT.value
        assert order.payment_intent_id is None

    def test_processor_refuses(self, gateway):
        gateway.configure(should_succeed=False, failure_reason="Card declined")
        product = _add_product()

        with pytest.raises(CheckoutError) as exc:
            create_checkout_intent(_request(product))

        assert exc.value.status == 502
        assert exc.value.code == PAYMENT_AUTHORIZATION_FAILED
        assert exc.value.message == "Card declined"
