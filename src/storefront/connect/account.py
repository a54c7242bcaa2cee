"""ConnectAccount aggregate: a selling group's payment sub-account.

``onboarding_complete`` is derived from the three capability flags and is
never stored on its own.
"""

import json
from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.payment.gateway.port import AccountSnapshot


@storefront.aggregate
class ConnectAccount:
    selling_group_id = Identifier(required=True)
    account_id = String(required=True, max_length=255)
    charges_enabled = Boolean(default=False)
    payouts_enabled = Boolean(default=False)
    details_submitted = Boolean(default=False)
    requirements = Text()  # JSON object
    metadata = Text()  # JSON object
    synced_at = DateTime()

    @classmethod
    def from_snapshot(cls, selling_group_id, snapshot: AccountSnapshot):
        account = cls(selling_group_id=selling_group_id, account_id=snapshot.account_id)
        account.sync(snapshot)
        return account

    def sync(self, snapshot: AccountSnapshot) -> None:
        self.account_id = snapshot.account_id
        self.charges_enabled = snapshot.charges_enabled
        self.payouts_enabled = snapshot.payouts_enabled
        self.details_submitted = snapshot.details_submitted
        self.requirements = json.dumps(snapshot.requirements or {})
        self.metadata = json.dumps(snapshot.metadata or {})
        self.synced_at = datetime.now(UTC)

    @property
    def onboarding_complete(self) -> bool:
        return bool(self.charges_enabled and self.payouts_enabled and self.details_submitted)

    def to_dict(self) -> dict:
        return {
            "selling_group_id": str(self.selling_group_id),
            "account_id": self.account_id,
            "charges_enabled": bool(self.charges_enabled),
            "payouts_enabled": bool(self.payouts_enabled),
            "details_submitted": bool(self.details_submitted),
            "onboarding_complete": self.onboarding_complete,
            "requirements": json.loads(self.requirements) if self.requirements else {},
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
        }


def account_for(selling_group_id) -> ConnectAccount | None:
    repo = current_domain.repository_for(ConnectAccount)
    accounts = repo._dao.query.filter(selling_group_id=str(selling_group_id)).all().items
    return accounts[0] if accounts else None
