"""Exactly-once side effects.

Payment webhooks are delivered at least once, and two deliveries of the same
success can be processed concurrently. Every non-idempotent side effect
(payout row, fulfillment submission, notification fanout) first claims a
``ProcessedEffect`` row keyed ``"<effect>:<order_id>"`` and runs only if the
claim succeeds.

Claims are serialized within one process. Across processes, exactly-once
holds only when the configured store enforces the unique key on insert; the
memory provider upserts, so it is single-process only.
"""

import threading
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront

PAYOUT = "payout"
FULFILLMENT_DISPATCH = "fulfillment_dispatch"
PAYMENT_NOTIFICATIONS = "payment_notifications"
PAYMENT_FAILURE_NOTIFICATIONS = "payment_failure_notifications"

_claim_lock = threading.Lock()


@storefront.aggregate
class ProcessedEffect:
    key = Identifier(identifier=True)
    effect = String(required=True, max_length=50)
    order_id = Identifier(required=True)
    processed_at = DateTime()


def effect_key(effect: str, order_id) -> str:
    return f"{effect}:{order_id}"


def claim_effect(effect: str, order_id) -> bool:
    """Return True if this caller is the first to claim ``effect`` for the order."""
    repo = current_domain.repository_for(ProcessedEffect)
    key = effect_key(effect, order_id)
    with _claim_lock:
        try:
            repo.get(key)
            return False
        except ObjectNotFoundError:
            repo.add(
                ProcessedEffect(
                    key=key,
                    effect=effect,
                    order_id=str(order_id),
                    processed_at=datetime.now(UTC),
                )
            )
            return True


def release_effect(effect: str, order_id) -> None:
    """Drop a claim so a failed effect can be retried manually."""
    repo = current_domain.repository_for(ProcessedEffect)
    try:
        repo._dao.delete(repo.get(effect_key(effect, order_id)))
    except ObjectNotFoundError:
        return
