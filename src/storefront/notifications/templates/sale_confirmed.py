from storefront.notifications.notification import NotificationType
from storefront.notifications.templates._money import format_money


class SaleConfirmedTemplate:
    notification_type = NotificationType.SALE_CONFIRMED.value

    @staticmethod
    def render(context: dict) -> dict:
        code = context.get("confirmation_code", "")
        item_count = sum(item["quantity"] for item in context.get("items", []))
        return {
            "subject": f"New sale: order {code}",
            "body": (
                f"Order {code} was paid: {item_count} item(s) for "
                f"{format_money(context.get('total_cents'), context.get('currency'))}."
                + (" It needs to be shipped." if context.get("shipping_required") else "")
            ),
        }
