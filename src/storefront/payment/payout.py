"""Payout aggregate: seller share of a settled split-payment order."""

from datetime import UTC, datetime

import structlog
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.ledger.effect import PAYOUT, claim_effect, release_effect
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.aggregate
class Payout:
    order_id = Identifier(required=True)
    selling_group_id = Identifier(required=True)
    destination_account_id = String(required=True, max_length=255)
    amount_cents = Integer(required=True, min_value=0)
    platform_fee_cents = Integer(required=True, min_value=0)
    net_cents = Integer(required=True, min_value=0)
    currency = String(required=True, max_length=3)
    transfer_reference = String(max_length=255)
    created_at = DateTime()

    @classmethod
    def for_order(cls, order: Order, amount_cents: int, transfer_reference: str | None = None):
        fee = min(order.fee_cents or 0, amount_cents)
        return cls(
            order_id=str(order.id),
            selling_group_id=str(order.selling_group_id),
            destination_account_id=order.metadata_dict["connect_destination_account_id"],
            amount_cents=amount_cents,
            platform_fee_cents=fee,
            net_cents=amount_cents - fee,
            currency=order.currency,
            transfer_reference=transfer_reference,
            created_at=datetime.now(UTC),
        )


def record_payout(order: Order, amount_cents: int, transfer_reference: str | None = None) -> Payout | None:
    """Record the seller's payout for a split order, at most once per order.

    Best-effort: a failure is logged and never propagates to the webhook.
    """
    if not order.fee_applied:
        return None
    try:
        if not claim_effect(PAYOUT, order.id):
            return None
    except Exception:
        logger.error("payout_record_failed", order_id=str(order.id), exc_info=True)
        return None

    try:
        payout = Payout.for_order(order, amount_cents, transfer_reference)
        current_domain.repository_for(Payout).add(payout)
    except Exception:
        logger.error("payout_record_failed", order_id=str(order.id), exc_info=True)
        release_effect(PAYOUT, order.id)
        return None

    logger.info(
        "payout_recorded",
        order_id=str(order.id),
        net_cents=payout.net_cents,
        platform_fee_cents=payout.platform_fee_cents,
    )
    return payout
