"""Configurable fake payment processor for development and testing.

Simulates the processor without any external calls. It can be configured at
runtime to authorize or refuse payments, to report a fixed tax amount or to
fail the tax call, and to hold a set of connect sub-accounts. Every call is
recorded in ``calls`` so tests can assert on what was sent.
"""

import json
from uuid import uuid4

from storefront.payment.gateway.port import (
    AccountSnapshot,
    PaymentGateway,
    PaymentIntentResult,
    TaxLine,
    TaxQuote,
    WebhookPayloadError,
    WebhookSignatureError,
)

TEST_SIGNATURE = "test-signature"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.unavailable: bool = False
        self.tax_cents: int = 0
        self.tax_should_fail: bool = False
        self.accounts: dict[str, AccountSnapshot] = {}
        self.accounts_unavailable: bool = False
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        unavailable: bool = False,
    ) -> None:
        """Configure authorization behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unavailable = unavailable

    def configure_tax(self, tax_cents: int = 0, should_fail: bool = False) -> None:
        self.tax_cents = tax_cents
        self.tax_should_fail = should_fail

    def add_account(self, snapshot: AccountSnapshot) -> None:
        self.accounts[snapshot.account_id] = snapshot

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
        self.calls.append(
            {
                "method": "create_payment_intent",
                "amount_cents": amount_cents,
                "currency": currency,
                "receipt_email": receipt_email,
                "metadata": dict(metadata),
                "idempotency_key": idempotency_key,
                "description": description,
                "shipping": shipping,
                "application_fee_cents": application_fee_cents,
                "destination_account_id": destination_account_id,
            }
        )

        if self.unavailable:
            return PaymentIntentResult(success=False, failure_reason="Processor unreachable", unavailable=True)
        if not self.should_succeed:
            return PaymentIntentResult(success=False, status="failed", failure_reason=self.failure_reason)

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        return PaymentIntentResult(
            success=True,
            payment_intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
            status="requires_payment_method",
        )

    def calculate_tax(
        self,
        lines: list[TaxLine],
        currency: str,
        address: dict | None,
        shipping_cents: int,
    ) -> TaxQuote:
        self.calls.append(
            {
                "method": "calculate_tax",
                "lines": list(lines),
                "currency": currency,
                "address": address,
                "shipping_cents": shipping_cents,
            }
        )
        if self.tax_should_fail:
            raise RuntimeError("Tax engine unavailable")

        subtotal = sum(line.amount_cents * line.quantity for line in lines)
        return TaxQuote(
            calculation_id=f"taxcalc_fake_{uuid4().hex[:12]}",
            tax_cents=self.tax_cents,
            subtotal_cents=subtotal,
            total_cents=subtotal + shipping_cents + self.tax_cents,
        )

    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        self.calls.append({"method": "retrieve_account", "account_id": account_id})
        if self.accounts_unavailable:
            raise ConnectionError("Processor unreachable")
        try:
            return self.accounts[account_id]
        except KeyError:
            raise LookupError(f"No such account: {account_id}") from None

    def create_account(self, selling_group_id: str, email: str | None = None) -> AccountSnapshot:
        self.calls.append({"method": "create_account", "selling_group_id": selling_group_id, "email": email})
        snapshot = AccountSnapshot(
            account_id=f"acct_fake_{uuid4().hex[:12]}",
            metadata={"selling_group_id": selling_group_id},
        )
        self.accounts[snapshot.account_id] = snapshot
        return snapshot

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        self.calls.append(
            {
                "method": "create_account_link",
                "account_id": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
            }
        )
        return f"https://connect.example.test/setup/{account_id}"

    def construct_event(self, payload: bytes, signature: str) -> dict:
        try:
            event = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
            raise WebhookPayloadError(str(exc)) from exc
        if not isinstance(event, dict):
            raise WebhookPayloadError("Event envelope must be an object")
        if signature != TEST_SIGNATURE:
            raise WebhookSignatureError("Invalid signature")
        return event
