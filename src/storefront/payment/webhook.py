"""Payment webhook reconciliation: command, handler and event dispatch.

Handles the processor's payment_intent.succeeded / payment_failed / canceled
events. The order is found by payment-intent id; an unknown intent or an
unhandled event type is acknowledged and ignored so the processor never
retries it.
"""

import json

import structlog
from protean import handle
from protean.fields import Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.order import Order
from storefront.order.queries import order_for_payment_intent
from storefront.payment.payout import record_payout

logger = structlog.get_logger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"
CANCELED = "canceled"

EVENT_OUTCOMES = {
    "payment_intent.succeeded": SUCCEEDED,
    "payment_intent.payment_failed": FAILED,
    "payment_intent.canceled": CANCELED,
}

IGNORED = "ignored"
PROCESSED = "processed"


@storefront.command(part_of="Order")
class ReconcilePaymentIntent:
    """Apply a processor-reported payment outcome to the matching order."""

    payment_intent_id = String(required=True, max_length=255)
    outcome = String(required=True, max_length=20)  # succeeded, failed, canceled
    amount_cents = Integer(min_value=0)
    charge_id = String(max_length=255)
    receipt_url = String(max_length=1000)
    failure_reason = String(max_length=500)
    raw_payload = Text()


@storefront.command_handler(part_of=Order)
class ReconcilePaymentHandler:
    @handle(ReconcilePaymentIntent)
    def reconcile(self, command):
        order = order_for_payment_intent(command.payment_intent_id)
        if order is None:
            logger.info("payment_webhook_unknown_intent", payment_intent_id=command.payment_intent_id)
            return None

        if command.outcome == SUCCEEDED:
            changed = order.record_payment_success(
                payment_intent_id=command.payment_intent_id,
                amount_cents=command.amount_cents,
                charge_id=command.charge_id,
                receipt_url=command.receipt_url,
                raw_payload=command.raw_payload,
            )
        else:
            changed = order.record_payment_failure(
                payment_intent_id=command.payment_intent_id,
                canceled=command.outcome == CANCELED,
                reason=command.failure_reason,
                raw_payload=command.raw_payload,
            )

        current_domain.repository_for(Order).add(order)
        logger.info(
            "payment_webhook_applied",
            order_id=str(order.id),
            payment_intent_id=command.payment_intent_id,
            outcome=command.outcome,
            changed=changed,
        )
        return str(order.id)


def extract_charge(intent: dict) -> tuple[str | None, str | None]:
    """(charge id, receipt url) from the intent's first charge or latest charge."""
    charges = (intent.get("charges") or {}).get("data") or []
    charge = charges[0] if charges else intent.get("latest_charge")
    if isinstance(charge, dict):
        return charge.get("id"), charge.get("receipt_url")
    if isinstance(charge, str):
        return charge, None
    return None, None


def handle_payment_event(event: dict) -> str:
    """Reconcile one verified processor event. Returns "processed" or "ignored"."""
    event_type = event.get("type")
    outcome = EVENT_OUTCOMES.get(event_type)
    intent = (event.get("data") or {}).get("object") or {}
    intent_id = intent.get("id")
    if outcome is None or not intent_id:
        logger.info("payment_webhook_ignored", event_type=event_type, event_id=event.get("id"))
        return IGNORED

    charge_id, receipt_url = extract_charge(intent)
    failure = intent.get("last_payment_error") or {}
    amount = intent.get("amount_received") or intent.get("amount")

    order_id = current_domain.process(
        ReconcilePaymentIntent(
            payment_intent_id=intent_id,
            outcome=outcome,
            amount_cents=int(amount) if amount is not None else None,
            charge_id=charge_id,
            receipt_url=receipt_url,
            failure_reason=failure.get("message") if isinstance(failure, dict) else None,
            raw_payload=json.dumps(intent),
        ),
        asynchronous=False,
    )
    if order_id is None:
        return IGNORED

    if outcome == SUCCEEDED:
        order = current_domain.repository_for(Order).get(order_id)
        if order.payment_status == SUCCEEDED:
            record_payout(order, int(amount) if amount is not None else order.total_cents, transfer_reference=charge_id)
    return PROCESSED
