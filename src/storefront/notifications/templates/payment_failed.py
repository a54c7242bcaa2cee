"""Payment failure: tells the buyer their order was not charged."""

from storefront.notifications.notification import NotificationType


class PaymentFailedTemplate:
    notification_type = NotificationType.PAYMENT_FAILED.value

    @staticmethod
    def render(context: dict) -> dict:
        code = context.get("confirmation_code", "")
        reason = context.get("reason") or "the payment was declined"
        return {
            "subject": f"Payment for order {code} did not go through",
            "body": f"We could not complete payment for order {code}: {reason}. You have not been charged.",
        }
