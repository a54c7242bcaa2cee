"""NotificationPreference aggregate: whether in-app notifications are mirrored to email.

A recipient without a stored preference gets email mirrors.
"""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier
from protean.utils.globals import current_domain

from storefront.domain import storefront


@storefront.aggregate
class NotificationPreference:
    recipient_id: Identifier(required=True, unique=True)
    email_enabled: Boolean(default=True)
    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def create_default(cls, recipient_id):
        now = datetime.now(UTC)
        return cls(recipient_id=recipient_id, email_enabled=True, created_at=now, updated_at=now)

    def set_email_enabled(self, enabled: bool) -> None:
        self.email_enabled = enabled
        self.updated_at = datetime.now(UTC)


def preference_for(recipient_id) -> NotificationPreference | None:
    repo = current_domain.repository_for(NotificationPreference)
    prefs = repo._dao.query.filter(recipient_id=str(recipient_id)).all().items
    return prefs[0] if prefs else None


def email_mirror_enabled(recipient_id) -> bool:
    pref = preference_for(recipient_id)
    return True if pref is None else bool(pref.email_enabled)
