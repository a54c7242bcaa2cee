"""Notification aggregate: one in-app message to a buyer or seller admin.

State Machine:
    PENDING → SENT → READ
    PENDING → FAILED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront


class NotificationType(Enum):
    ORDER_RECEIPT = "order_receipt"
    ORDER_CONFIRMED = "order_confirmed"
    PAYMENT_FAILED = "payment_failed"
    SALE_CONFIRMED = "sale_confirmed"


class RecipientType(Enum):
    BUYER = "buyer"
    ADMIN = "admin"


class NotificationStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    READ = "read"
    FAILED = "failed"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.SENT: {NotificationStatus.READ},
    NotificationStatus.READ: set(),
    NotificationStatus.FAILED: set(),
}


@storefront.aggregate
class Notification:
    """An in-app notification, optionally mirrored to the recipient's email."""

    recipient_id: Identifier(required=True)
    recipient_type: String(choices=RecipientType, default=RecipientType.BUYER.value)
    notification_type: String(choices=NotificationType, required=True)
    order_id: Identifier()
    subject: String(max_length=500)
    body: Text(required=True)
    context_data: Text()  # JSON
    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    emailed_to: String(max_length=255)
    failure_reason: String(max_length=500)
    created_at: DateTime()
    sent_at: DateTime()
    read_at: DateTime()

    @classmethod
    def create(cls, recipient_id, recipient_type, notification_type, subject, body, order_id=None, context=None):
        return cls(
            recipient_id=recipient_id,
            recipient_type=recipient_type,
            notification_type=notification_type,
            order_id=order_id,
            subject=subject,
            body=body,
            context_data=json.dumps(context or {}),
            created_at=datetime.now(UTC),
        )

    def _assert_can_transition(self, target: NotificationStatus) -> None:
        current = NotificationStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

    def mark_sent(self, emailed_to=None) -> None:
        self._assert_can_transition(NotificationStatus.SENT)
        self.status = NotificationStatus.SENT.value
        self.emailed_to = emailed_to
        self.sent_at = datetime.now(UTC)

    def mark_failed(self, reason: str) -> None:
        self._assert_can_transition(NotificationStatus.FAILED)
        self.status = NotificationStatus.FAILED.value
        self.failure_reason = reason

    def mark_read(self) -> None:
        self._assert_can_transition(NotificationStatus.READ)
        self.status = NotificationStatus.READ.value
        self.read_at = datetime.now(UTC)


def notifications_for(recipient_id: str) -> list[Notification]:
    repo = current_domain.repository_for(Notification)
    return repo._dao.query.filter(recipient_id=str(recipient_id)).all().items
