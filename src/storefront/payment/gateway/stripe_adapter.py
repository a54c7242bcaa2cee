"""Stripe payment gateway adapter.

Uses the stripe-python resource API with a per-call ``api_key`` so no global
SDK state is mutated:
- PaymentIntents (with application fee + destination for split payments)
- Stripe Tax calculations
- Connect Express accounts and onboarding account links
- Webhook signature verification against the endpoint signing secret
"""

import json

import stripe
import structlog

from storefront.payment.gateway.port import (
    AccountSnapshot,
    PaymentGateway,
    PaymentIntentResult,
    TaxLine,
    TaxQuote,
    WebhookPayloadError,
    WebhookSignatureError,
)

logger = structlog.get_logger(__name__)


def _stripe_address(address: dict | None) -> dict | None:
    if not address:
        return None
    payload = {
        "line1": address.get("line1"),
        "line2": address.get("line2"),
        "city": address.get("city"),
        "state": address.get("region"),
        "postal_code": address.get("postal"),
        "country": (address.get("country") or "").strip().upper() or None,
    }
    payload = {key: value for key, value in payload.items() if value}
    return payload or None


def _stripe_metadata(metadata: dict) -> dict[str, str]:
    # Stripe metadata values must be strings
    return {key: str(value) for key, value in metadata.items() if value is not None}


def _snapshot(account) -> AccountSnapshot:
    requirements = account.get("requirements") or {}
    return AccountSnapshot(
        account_id=account["id"],
        charges_enabled=bool(account.get("charges_enabled")),
        payouts_enabled=bool(account.get("payouts_enabled")),
        details_submitted=bool(account.get("details_submitted")),
        requirements={
            "currently_due": list(requirements.get("currently_due") or []),
            "past_due": list(requirements.get("past_due") or []),
            "disabled_reason": requirements.get("disabled_reason"),
        },
        metadata=dict(account.get("metadata") or {}),
    )


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        receipt_email: str | None,
        metadata: dict,
        idempotency_key: str,
        description: str | None = None,
        shipping: dict | None = None,
        application_fee_cents: int | None = None,
        destination_account_id: str | None = None,
    ) -> PaymentIntentResult:
        params: dict = {
            "amount": amount_cents,
            "currency": currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": _stripe_metadata(metadata),
        }
        if description:
            params["description"] = description
        if receipt_email:
            params["receipt_email"] = receipt_email
        if shipping:
            stripe_address = _stripe_address(shipping)
            if stripe_address:
                params["shipping"] = {
                    "name": shipping.get("name") or receipt_email or "Customer",
                    "phone": shipping.get("phone"),
                    "address": stripe_address,
                }
        if destination_account_id:
            params["application_fee_amount"] = application_fee_cents or 0
            params["transfer_data"] = {"destination": destination_account_id}

        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                idempotency_key=idempotency_key,
                **params,
            )
        except (stripe.APIConnectionError, stripe.RateLimitError) as exc:
            logger.warning("stripe_payment_intent_unavailable", error=str(exc))
            return PaymentIntentResult(success=False, failure_reason=str(exc), unavailable=True)
        except stripe.StripeError as exc:
            logger.warning("stripe_payment_intent_failed", error=str(exc))
            return PaymentIntentResult(success=False, status="failed", failure_reason=exc.user_message or str(exc))

        return PaymentIntentResult(
            success=True,
            payment_intent_id=intent["id"],
            client_secret=intent.get("client_secret") or "",
            status=intent.get("status"),
        )

    def calculate_tax(
        self,
        lines: list[TaxLine],
        currency: str,
        address: dict | None,
        shipping_cents: int,
    ) -> TaxQuote:
        params: dict = {
            "currency": currency,
            "line_items": [
                {
                    "amount": line.amount_cents * line.quantity,
                    "quantity": line.quantity,
                    **({"reference": line.reference} if line.reference else {}),
                    **({"tax_code": line.tax_code} if line.tax_code else {}),
                }
                for line in lines
            ],
        }
        stripe_address = _stripe_address(address)
        if stripe_address and stripe_address.get("country"):
            params["customer_details"] = {"address": stripe_address, "address_source": "shipping"}
        if shipping_cents > 0:
            params["shipping_cost"] = {"amount": shipping_cents}

        calculation = stripe.tax.Calculation.create(api_key=self.api_key, **params)
        tax = calculation.get("tax_amount_exclusive") or 0
        total = calculation.get("amount_total")
        subtotal = None
        if total is not None:
            shipping = (calculation.get("shipping_cost") or {}).get("amount") or 0
            subtotal = total - tax - shipping
        return TaxQuote(
            calculation_id=calculation.get("id"),
            tax_cents=int(tax),
            subtotal_cents=subtotal,
            total_cents=total,
        )

    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        return _snapshot(stripe.Account.retrieve(account_id, api_key=self.api_key))

    def create_account(self, selling_group_id: str, email: str | None = None) -> AccountSnapshot:
        params: dict = {
            "type": "express",
            "capabilities": {"card_payments": {"requested": True}, "transfers": {"requested": True}},
            "metadata": {"selling_group_id": selling_group_id},
        }
        if email:
            params["email"] = email
        return _snapshot(stripe.Account.create(api_key=self.api_key, **params))

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        link = stripe.AccountLink.create(
            api_key=self.api_key,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return link["url"]

    def construct_event(self, payload: bytes, signature: str) -> dict:
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            event = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise WebhookPayloadError(str(exc)) from exc
        if not isinstance(event, dict):
            raise WebhookPayloadError("Event envelope must be an object")

        try:
            stripe.WebhookSignature.verify_header(text, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(str(exc)) from exc
        return event
