"""Platform fee resolution for split payments.

``resolve_connect_charge`` answers with a tagged result instead of raising:
a ``ConnectCharge`` tells checkout how to split (or not), a ``BlockedCharge``
carries the code and message the buyer-facing remediation UI branches on.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from storefront.checkout.errors import SELLER_CONNECT_MISSING, SELLER_ONBOARDING_INCOMPLETE
from storefront.config import MAX_BASIS_POINTS, get_connect_settings
from storefront.connect.account import ConnectAccount, account_for
from storefront.payment.gateway import get_gateway

logger = structlog.get_logger(__name__)

CONNECT_MISSING_MESSAGE = "This seller must finish payouts setup before charging customers."
ONBOARDING_INCOMPLETE_MESSAGE = "Payouts onboarding is not complete for this seller."


@dataclass(frozen=True)
class ConnectCharge:
    use_split: bool
    fee_cents: int = 0
    destination_account_id: str | None = None
    basis_points: int = 0


@dataclass(frozen=True)
class BlockedCharge:
    code: str
    message: str


def compute_platform_fee(amount_cents: int, basis_points: int) -> int:
    """floor(amount * bps / 10000), clamped to [0, amount]."""
    if amount_cents <= 0 or basis_points <= 0:
        return 0
    fee = (amount_cents * min(basis_points, MAX_BASIS_POINTS)) // MAX_BASIS_POINTS
    return max(0, min(fee, amount_cents))


def load_connect_account(selling_group_id, refresh: bool = True) -> ConnectAccount | None:
    """Return the stored account, refreshed from the processor when possible.

    A failed refresh falls back to the last synced snapshot.
    """
    account = account_for(selling_group_id)
    if account is None or not refresh:
        return account

    try:
        snapshot = get_gateway().retrieve_account(account.account_id)
    except Exception as exc:
        logger.warning(
            "connect_account_refresh_failed",
            selling_group_id=str(selling_group_id),
            account_id=account.account_id,
            error=str(exc),
        )
        return account

    account.sync(snapshot)
    current_domain.repository_for(ConnectAccount).add(account)
    return account


def resolve_connect_charge(selling_group_id, total_cents: int) -> ConnectCharge | BlockedCharge:
    settings = get_connect_settings()
    if not settings.enabled:
        return ConnectCharge(use_split=False)

    account = load_connect_account(selling_group_id)
    if account is None:
        if settings.require_account:
            return BlockedCharge(SELLER_CONNECT_MISSING, CONNECT_MISSING_MESSAGE)
        return ConnectCharge(use_split=False)

    if not account.onboarding_complete:
        if settings.require_account:
            return BlockedCharge(SELLER_ONBOARDING_INCOMPLETE, ONBOARDING_INCOMPLETE_MESSAGE)
        return ConnectCharge(use_split=False)

    return ConnectCharge(
        use_split=True,
        fee_cents=compute_platform_fee(total_cents, settings.platform_fee_basis_points),
        destination_account_id=account.account_id,
        basis_points=settings.platform_fee_basis_points,
    )
