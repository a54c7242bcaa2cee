"""Tests for fulfillment dispatch, webhook reconciliation and webhook registration."""

import json

import pytest
from protean import current_domain
from storefront.fulfillment.dispatch import dispatch_fulfillment
from storefront.fulfillment.provider.fake_adapter import DEFAULT_WEBHOOK_SECRET
from storefront.fulfillment.provider.registration import WEBHOOK_PATH, WebhookRegistrar
from storefront.fulfillment.signature import sign
from storefront.fulfillment.webhook import (
    InvalidFulfillmentSignature,
    MalformedFulfillmentPayload,
    handle_fulfillment_webhook,
)
from storefront.ledger.effect import FULFILLMENT_DISPATCH, claim_effect
from storefront.order.order import Order, OrderStatus
from storefront.payment.webhook import handle_payment_event


def _place_physical_order(paid=True, provider_variant_id="4011"):
    order = Order.place(
        selling_group_id="sg-001",
        confirmation_code="SHIP2345",
        lines=[
            {
                "product_id": "prod-001",
                "title": "Mug",
                "quantity": 2,
                "unit_price_cents": 1800,
                "fulfillment_kind": "ship",
                "provider_variant_id": provider_variant_id,
            }
        ],
        subtotal_cents=3600,
        shipping_cents=499,
        tax_cents=0,
        currency="usd",
        shipping_required=True,
        shipping_address={"name": "Ada", "city": "Austin", "postal": "78701", "country": "US"},
        contact_email="ada@example.com",
    )
    order.attach_payment_intent("pi_ship")
    if paid:
        order.record_payment_success("pi_ship")
    current_domain.repository_for(Order).add(order)
    return str(order.id)


def _signed(payload: dict) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode("utf-8")
    return body, {"X-Printful-Signature": sign(body, DEFAULT_WEBHOOK_SECRET)}


def _reload(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestDispatchFulfillment:
    def test_payment_webhook_dispatches_and_notifies(self, provider, mailbox):
        order_id = _place_physical_order(paid=False)

        handle_payment_event(
            {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_ship", "amount": 4099}}}
        )

        assert [c["external_id"] for c in provider.calls if c["method"] == "create_order"] == [order_id]
        assert _reload(order_id).shipping_status == "preparing"
        assert mailbox.sent_to("ada@example.com")

    def test_paid_order_is_submitted_once(self, provider):
        order_id = _place_physical_order()
        # The OrderPaid handler has already dispatched it
        submissions = [c for c in provider.calls if c["method"] == "create_order"]
        assert len(submissions) == 1
        assert submissions[0]["external_id"] == order_id
        assert submissions[0]["items"][0]["variant_id"] == "4011"
        assert submissions[0]["items"][0]["retail_price"] == "18.00"
        assert submissions[0]["recipient"]["email"] == "ada@example.com"

        assert dispatch_fulfillment(order_id) is False
        assert len([c for c in provider.calls if c["method"] == "create_order"]) == 1

        order = _reload(order_id)
        assert order.shipping_status == "preparing"
        assert order.metadata_dict["fulfillment_provider_order_id"].startswith("pf_")

    def test_unpaid_order_is_not_submitted(self, provider):
        order_id = _place_physical_order(paid=False)
        assert dispatch_fulfillment(order_id) is False
        assert not [c for c in provider.calls if c["method"] == "create_order"]

    def test_order_without_provider_items_is_skipped(self, provider):
        order_id = _place_physical_order(provider_variant_id=None)
        assert not [c for c in provider.calls if c["method"] == "create_order"]
        assert _reload(order_id).shipping_status == "pending"

    def test_rejected_submission_releases_claim(self, provider):
        provider.configure(should_succeed=False, failure_reason="Out of stock")
        order_id = _place_physical_order()
        assert _reload(order_id).shipping_status == "pending"

        provider.configure(should_succeed=True)
        assert dispatch_fulfillment(order_id) is True
        assert _reload(order_id).shipping_status == "preparing"

    def test_claimed_order_is_not_resubmitted(self, provider):
        order_id = _place_physical_order(paid=False)
        order = _reload(order_id)
        order.record_payment_success("pi_ship")
        claim_effect(FULFILLMENT_DISPATCH, order_id)
        current_domain.repository_for(Order).add(order)
        assert not [c for c in provider.calls if c["method"] == "create_order"]


class TestFulfillmentWebhook:
    def test_shipped_event_updates_order(self, provider):
        order_id = _place_physical_order()
        body, headers = _signed(
            {
                "type": "package_shipped",
                "created": 1700000000,
                "data": {
                    "order": {"external_id": order_id, "status": "fulfilled"},
                    "shipment": {"id": 1, "carrier": "UPS", "tracking_number": "1Z999", "tracking_url": "https://t/1Z999"},
                },
            }
        )

        assert handle_fulfillment_webhook(body, headers) == "processed"

        order = _reload(order_id)
        assert order.shipping_status == "shipped"
        assert order.tracking_number == "1Z999"
        assert order.shipping_carrier == "UPS"
        assert order.status == OrderStatus.FULFILLED.value
        assert order.metadata_dict["fulfillment_last_webhook"]["type"] == "package_shipped"

    def test_later_event_without_tracking_keeps_tracking(self, provider):
        order_id = _place_physical_order()
        body, headers = _signed(
            {"type": "package_shipped", "created": 100, "data": {"external_id": order_id, "tracking_number": "1Z999"}}
        )
        handle_fulfillment_webhook(body, headers)
        body, headers = _signed(
            {"type": "order_updated", "created": 200, "data": {"external_id": order_id, "status": "fulfilled"}}
        )
        handle_fulfillment_webhook(body, headers)

        assert _reload(order_id).tracking_number == "1Z999"

    def test_bad_signature_rejected_without_mutation(self, provider):
        order_id = _place_physical_order()
        body = json.dumps({"type": "package_shipped", "data": {"external_id": order_id}}).encode("utf-8")

        with pytest.raises(InvalidFulfillmentSignature):
            handle_fulfillment_webhook(body, {"X-Printful-Signature": "deadbeef"})
        with pytest.raises(InvalidFulfillmentSignature):
            handle_fulfillment_webhook(body, {})

        assert _reload(order_id).shipping_status == "preparing"

    def test_malformed_body_rejected(self, provider):
        body = b"{not json"
        with pytest.raises(MalformedFulfillmentPayload):
            handle_fulfillment_webhook(body, {"x-printful-signature": sign(body, DEFAULT_WEBHOOK_SECRET)})

    def test_unknown_order_is_ignored(self, provider):
        body, headers = _signed({"type": "package_shipped", "data": {"external_id": "no-such-order"}})
        assert handle_fulfillment_webhook(body, headers) == "ignored"

    def test_event_without_order_reference_is_ignored(self, provider):
        body, headers = _signed({"type": "stock_updated", "data": {}})
        assert handle_fulfillment_webhook(body, headers) == "ignored"


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestWebhookRegistrar:
    def test_registers_once_within_ttl(self, provider, monkeypatch):
        monkeypatch.setenv("SITE_URL", "https://shop.example")
        clock = _Clock()
        registrar = WebhookRegistrar(clock=clock)

        assert registrar.ensure_registered() is True
        clock.now += 60
        assert registrar.ensure_registered() is True

        registrations = [c for c in provider.calls if c["method"] == "register_webhook"]
        assert len(registrations) == 1
        assert registrations[0]["url"] == f"https://shop.example{WEBHOOK_PATH}"
        assert "package_shipped" in registrations[0]["event_types"]

    def test_registers_again_after_ttl(self, provider, monkeypatch):
        monkeypatch.setenv("WEBHOOK_REGISTRATION_TTL_SECONDS", "10")
        clock = _Clock()
        registrar = WebhookRegistrar(clock=clock)

        registrar.ensure_registered()
        clock.now += 11
        registrar.ensure_registered()

        assert len([c for c in provider.calls if c["method"] == "register_webhook"]) == 2

    def test_failure_is_not_cached(self, provider):
        registrar = WebhookRegistrar(clock=_Clock())
        attempts = []

        def _flaky(url, event_types):
            attempts.append(url)
            if len(attempts) == 1:
                raise ConnectionError("provider down")
            return True

        provider.register_webhook = _flaky
        assert registrar.ensure_registered() is False
        assert registrar.ensure_registered() is True
        assert len(attempts) == 2
