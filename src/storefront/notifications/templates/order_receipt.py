"""Order receipt: emailed to the buyer once payment is confirmed."""

from storefront.notifications.notification import NotificationType
from storefront.notifications.templates._money import format_money


class OrderReceiptTemplate:
    notification_type = NotificationType.ORDER_RECEIPT.value

    @staticmethod
    def render(context: dict) -> dict:
        currency = context.get("currency", "usd")
        lines = [
            f"{item['title']} x{item['quantity']} - {format_money(item['unit_price_cents'], currency)}"
            for item in context.get("items", [])
        ]
        summary = [
            f"Subtotal: {format_money(context.get('subtotal_cents'), currency)}",
            f"Shipping: {format_money(context.get('shipping_cents'), currency)}",
            f"Tax: {format_money(context.get('tax_cents'), currency)}",
            f"Total: {format_money(context.get('total_cents'), currency)}",
        ]
        tracking = []
        if context.get("tracking_number"):
            tracking.append(f"Tracking: {context['tracking_number']}")
            if context.get("carrier"):
                tracking.append(f"Carrier: {context['carrier']}")

        body = "\n".join(
            ["Thank you for your order!", "", *lines, "", *summary, "", *tracking, f"Order ID: {context.get('order_id')}"]
        )
        reference = context.get("confirmation_code") or context.get("order_id")
        return {"subject": f"Your order {reference}", "body": body}
