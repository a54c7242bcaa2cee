"""Template registry: maps NotificationType to template classes.

Each template renders ``{"subject", "body"}`` from an order context dict.
"""

from storefront.notifications.notification import NotificationType
from storefront.notifications.templates.order_confirmed import OrderConfirmedTemplate
from storefront.notifications.templates.order_receipt import OrderReceiptTemplate
from storefront.notifications.templates.payment_failed import PaymentFailedTemplate
from storefront.notifications.templates.sale_confirmed import SaleConfirmedTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    NotificationType.ORDER_RECEIPT.value: OrderReceiptTemplate,
    NotificationType.ORDER_CONFIRMED.value: OrderConfirmedTemplate,
    NotificationType.PAYMENT_FAILED.value: PaymentFailedTemplate,
    NotificationType.SALE_CONFIRMED.value: SaleConfirmedTemplate,
}


def get_template(notification_type: str):
    """Look up a template class by notification type string."""
    template_cls = TEMPLATE_REGISTRY.get(notification_type)
    if template_cls is None:
        raise ValueError(f"No template registered for notification type: {notification_type}")
    return template_cls


def render(notification_type: str, context: dict) -> dict:
    return get_template(notification_type).render(context)
