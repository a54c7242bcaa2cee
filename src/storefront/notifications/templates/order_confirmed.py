from storefront.notifications.notification import NotificationType
from storefront.notifications.templates._money import format_money


class OrderConfirmedTemplate:
    notification_type = NotificationType.ORDER_CONFIRMED.value

    @staticmethod
    def render(context: dict) -> dict:
        code = context.get("confirmation_code", "")
        return {
            "subject": f"Order {code} confirmed",
            "body": (
                f"Your payment of {format_money(context.get('total_cents'), context.get('currency'))} "
                f"was received. Confirmation code: {code}."
            ),
        }
