"""Tests for the buyer and seller notifications raised by payment outcomes."""

from protean import current_domain
from storefront.notifications.fanout import fan_out_payment_succeeded, notify
from storefront.notifications.notification import Notification, NotificationStatus, NotificationType, RecipientType
from storefront.notifications.preference import NotificationPreference, email_mirror_enabled
from storefront.order.order import Order


def _place_order(buyer_id="buyer-001", contact_email="ada@example.com"):
    order = Order.place(
        selling_group_id="sg-001",
        buyer_id=buyer_id,
        confirmation_code="NOTE2345",
        lines=[{"product_id": "prod-001", "title": "Poster", "quantity": 2, "unit_price_cents": 1500}],
        subtotal_cents=3000,
        shipping_cents=0,
        tax_cents=240,
        currency="usd",
        contact_email=contact_email,
    )
    order.attach_payment_intent("pi_note")
    return order


def _save(order):
    current_domain.repository_for(Order).add(order)
    return str(order.id)


def _notifications(notification_type=None):
    items = current_domain.repository_for(Notification)._dao.query.all().items
    if notification_type:
        items = [n for n in items if n.notification_type == notification_type]
    return items


class TestPaymentSucceededFanout:
    def test_receipt_buyer_and_admin_notifications(self, mailbox, admins):
        admins.register("sg-001", "admin-001", "owner@shop.example")
        order = _place_order()
        order.record_payment_success("pi_note")
        _save(order)

        receipts = [e for e in mailbox.sent_to("ada@example.com") if e["subject"] == "Your order NOTE2345"]
        assert len(receipts) == 1
        assert "Total: USD 32.40" in receipts[0]["body"]

        [confirmed] = _notifications(NotificationType.ORDER_CONFIRMED.value)
        assert confirmed.recipient_id == "buyer-001"
        assert confirmed.status == NotificationStatus.SENT.value
        assert confirmed.emailed_to == "ada@example.com"

        [sale] = _notifications(NotificationType.SALE_CONFIRMED.value)
        assert sale.recipient_id == "admin-001"
        assert sale.recipient_type == RecipientType.ADMIN.value
        assert mailbox.sent_to("owner@shop.example")

    def test_fanout_runs_once_per_order(self, mailbox, admins):
        order = _place_order()
        order.record_payment_success("pi_note")
        order_id = _save(order)

        fan_out_payment_succeeded(order_id)

        assert len(_notifications(NotificationType.ORDER_CONFIRMED.value)) == 1
        assert len([e for e in mailbox.sent_emails if e["subject"].startswith("Your order")]) == 1

    def test_guest_order_gets_receipt_only(self, mailbox, admins):
        order = _place_order(buyer_id=None)
        order.record_payment_success("pi_note")
        _save(order)

        assert mailbox.sent_to("ada@example.com")
        assert _notifications(NotificationType.ORDER_CONFIRMED.value) == []

    def test_email_failure_does_not_block_notifications(self, mailbox, admins):
        mailbox.configure(should_succeed=False)
        order = _place_order()
        order.record_payment_success("pi_note")
        _save(order)

        [confirmed] = _notifications(NotificationType.ORDER_CONFIRMED.value)
        assert confirmed.status == NotificationStatus.SENT.value
        assert confirmed.emailed_to is None


class TestPaymentFailedFanout:
    def test_buyer_told_about_failure(self, mailbox):
        order = _place_order()
        order.record_payment_failure("pi_note", reason="Card declined")
        _save(order)

        [failed] = _notifications(NotificationType.PAYMENT_FAILED.value)
        assert failed.recipient_id == "buyer-001"
        assert "Card declined" in failed.body

    def test_guest_order_emailed_about_failure(self, mailbox):
        order = _place_order(buyer_id=None)
        order.record_payment_failure("pi_note", reason="Card declined")
        _save(order)

        [email] = mailbox.sent_to("ada@example.com")
        assert email["subject"] == "Payment for order NOTE2345 did not go through"
        assert "Card declined" in email["body"]
        assert _notifications(NotificationType.PAYMENT_FAILED.value) == []


class TestEmailPreference:
    def test_mirror_enabled_without_preference(self):
        assert email_mirror_enabled("buyer-001") is True

    def test_opt_out_suppresses_email(self, mailbox):
        preference = NotificationPreference.create_default("buyer-001")
        preference.set_email_enabled(False)
        current_domain.repository_for(NotificationPreference).add(preference)

        notification = notify(
            "buyer-001",
            RecipientType.BUYER.value,
            NotificationType.ORDER_CONFIRMED.value,
            {"order_id": "ord-001", "confirmation_code": "ABCD2345", "total_cents": 100, "currency": "usd"},
            email="ada@example.com",
        )

        assert notification.emailed_to is None
        assert mailbox.sent_emails == []
