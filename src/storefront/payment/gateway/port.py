"""Payment processor port (abstract interface).

Everything the storefront needs from the payment processor: payment intents,
tax calculations, connect sub-accounts and their onboarding links, and
webhook envelope verification. FakeGateway (dev/test) and StripeGateway
(production) implement it; no domain or application code imports a
processor SDK directly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class WebhookSignatureError(Exception):
    """The webhook signature did not verify against the signing secret."""


class WebhookPayloadError(Exception):
    """The webhook body is not a parsable event envelope."""


@dataclass(frozen=True)
class PaymentIntentResult:
    """Result of a payment authorization request."""

    success: bool
    payment_intent_id: str | None = None
    client_secret: str | None = None
    status: str | None = None
    failure_reason: str | None = None
    # True when the processor could not be reached at all (vs. a refusal)
    unavailable: bool = False


@dataclass(frozen=True)
class TaxLine:
    amount_cents: int
    quantity: int
    reference: str | None = None
    tax_code: str | None = None


@dataclass(frozen=True)
class TaxQuote:
    """Amounts reported by the tax engine. ``None`` means "not reported"."""

    calculation_id: str | None
    tax_cents: int
    subtotal_cents: int | None = None
    total_cents: int | None = None


@dataclass(frozen=True)
class AccountSnapshot:
    """Processor-side state of a selling group's payment sub-account."""

    account_id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    requirements: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment processor interface."""

    @abstractmethod
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
        """Authorize ``amount_cents`` and return the intent handle and client secret."""
        ...

    @abstractmethod
    def calculate_tax(
        self,
        lines: list[TaxLine],
        currency: str,
        address: dict | None,
        shipping_cents: int,
    ) -> TaxQuote:
        """Compute tax for the given lines. Raises on any processor failure."""
        ...

    @abstractmethod
    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        """Fetch the current state of a sub-account. Raises on failure."""
        ...

    @abstractmethod
    def create_account(self, selling_group_id: str, email: str | None = None) -> AccountSnapshot:
        """Create a new sub-account for a selling group."""
        ...

    @abstractmethod
    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        """Return a hosted onboarding URL for the sub-account."""
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> dict:
        """Verify and decode a webhook envelope.

        Raises WebhookPayloadError for an unparsable body and
        WebhookSignatureError for a signature mismatch.
        """
        ...
