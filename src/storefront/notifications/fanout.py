"""Buyer and seller notifications for payment outcomes.

Fire-and-forget relative to the payment transition that triggered them: each
message (receipt email, buyer notification, each admin notification) is sent
independently, and a failure is logged without affecting the others or the
order.
"""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.ledger.effect import PAYMENT_FAILURE_NOTIFICATIONS, PAYMENT_NOTIFICATIONS, claim_effect
from storefront.notifications.channel import get_email_channel
from storefront.notifications.directory import get_admin_directory
from storefront.notifications.notification import Notification, NotificationType, RecipientType
from storefront.notifications.preference import email_mirror_enabled
from storefront.notifications.templates import render
from storefront.order.events import OrderPaid, OrderPaymentFailed
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


def order_context(order: Order, **extra) -> dict:
    return {
        "order_id": str(order.id),
        "confirmation_code": order.confirmation_code,
        "currency": order.currency,
        "subtotal_cents": order.subtotal_cents,
        "shipping_cents": order.shipping_cents,
        "tax_cents": order.tax_cents,
        "total_cents": order.total_cents,
        "shipping_required": bool(order.shipping_required),
        "tracking_number": order.tracking_number,
        "carrier": order.shipping_carrier,
        "items": [
            {"title": item.title, "quantity": item.quantity, "unit_price_cents": item.unit_price_cents}
            for item in order.items or []
        ],
        **extra,
    }


def _buyer_email(order: Order) -> str | None:
    return order.contact_email or (order.shipping_address.email if order.shipping_address else None)


def _email_buyer(order: Order, notification_type: str, context: dict) -> bool:
    email = _buyer_email(order)
    if not email:
        return False
    content = render(notification_type, context)
    result = get_email_channel().send(
        to=email,
        subject=content["subject"],
        body=content["body"],
        html_body=content["body"].replace("\n", "<br/>"),
    )
    if result.get("status") != "sent":
        logger.error(
            "buyer_email_failed",
            order_id=str(order.id),
            notification_type=notification_type,
            error=result.get("error"),
        )
        return False
    return True


def send_receipt(order: Order) -> bool:
    return _email_buyer(order, NotificationType.ORDER_RECEIPT.value, order_context(order))


def notify(
    recipient_id: str,
    recipient_type: str,
    notification_type: str,
    context: dict,
    email: str | None = None,
) -> Notification:
    """Create an in-app notification and mirror it to email when the recipient allows it."""
    content = render(notification_type, context)
    notification = Notification.create(
        recipient_id=recipient_id,
        recipient_type=recipient_type,
        notification_type=notification_type,
        subject=content["subject"],
        body=content["body"],
        order_id=context.get("order_id"),
        context=context,
    )

    emailed_to = None
    if email and email_mirror_enabled(recipient_id):
        result = get_email_channel().send(to=email, subject=content["subject"], body=content["body"])
        if result.get("status") == "sent":
            emailed_to = email
        else:
            logger.warning(
                "notification_email_failed",
                recipient_id=recipient_id,
                notification_type=notification_type,
                error=result.get("error"),
            )

    notification.mark_sent(emailed_to=emailed_to)
    current_domain.repository_for(Notification).add(notification)
    return notification


def _isolated(effect: str, order_id: str, func, *args, **kwargs) -> None:
    try:
        func(*args, **kwargs)
    except Exception:
        logger.error("notification_effect_failed", effect=effect, order_id=order_id, exc_info=True)


def fan_out_payment_succeeded(order_id: str) -> None:
    if not claim_effect(PAYMENT_NOTIFICATIONS, order_id):
        return
    order = current_domain.repository_for(Order).get(order_id)
    context = order_context(order)

    _isolated("receipt", order_id, send_receipt, order)
    if order.buyer_id:
        _isolated(
            "buyer_notification",
            order_id,
            notify,
            str(order.buyer_id),
            RecipientType.BUYER.value,
            NotificationType.ORDER_CONFIRMED.value,
            context,
            email=order.contact_email,
        )
    for admin in get_admin_directory().admins_for(str(order.selling_group_id)):
        _isolated(
            "admin_notification",
            order_id,
            notify,
            str(admin["id"]),
            RecipientType.ADMIN.value,
            NotificationType.SALE_CONFIRMED.value,
            context,
            email=admin.get("email"),
        )


def fan_out_payment_failed(order_id: str, reason: str | None = None) -> None:
    if not claim_effect(PAYMENT_FAILURE_NOTIFICATIONS, order_id):
        return
    order = current_domain.repository_for(Order).get(order_id)
    context = order_context(order, reason=reason)
    if not order.buyer_id:
        # Guests have no inbox, only the checkout email
        _isolated("guest_email", order_id, _email_buyer, order, NotificationType.PAYMENT_FAILED.value, context)
        return
    _isolated(
        "buyer_notification",
        order_id,
        notify,
        str(order.buyer_id),
        RecipientType.BUYER.value,
        NotificationType.PAYMENT_FAILED.value,
        context,
        email=order.contact_email,
    )


@storefront.event_handler(part_of=Order)
class PaymentNotificationHandler:
    """Notifies buyers and selling-group admins about payment outcomes."""

    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        try:
            fan_out_payment_succeeded(str(event.order_id))
        except Exception:
            logger.error("payment_notifications_failed", order_id=str(event.order_id), exc_info=True)

    @handle(OrderPaymentFailed)
    def on_payment_failed(self, event: OrderPaymentFailed) -> None:
        try:
            fan_out_payment_failed(str(event.order_id), reason=event.reason)
        except Exception:
            logger.error("payment_failure_notifications_failed", order_id=str(event.order_id), exc_info=True)
