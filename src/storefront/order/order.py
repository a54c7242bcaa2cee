"""Order aggregate: one checkout attempt and its payment/fulfillment progress.

Two independent lifecycles live on an Order:

    payment_status: requires_payment → succeeded | failed   (both terminal)
    status:         pending → requires_payment → fulfillment_pending → fulfilled
                    (canceled / refunded are recorded, never reached automatically)

``status`` only ever moves forward. ``shipping_status`` is a free-form label
driven by the fulfillment provider (pending → preparing → shipped → delivered,
or on_hold / canceled / refunded / failed ...).

Every mutator here is safe to call again with the same or older data: webhook
deliveries are at-least-once and unordered, so a repeat must converge on the
same stored state and must not raise a second event.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.domain import storefront
from storefront.order.events import OrderPaid, OrderPaymentFailed, OrderPlaced, ShippingUpdated


class OrderStatus(Enum):
    PENDING = "pending"
    REQUIRES_PAYMENT = "requires_payment"
    FULFILLMENT_PENDING = "fulfillment_pending"
    FULFILLED = "fulfilled"
    CANCELED = "canceled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    REQUIRES_PAYMENT = "requires_payment"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AttemptStatus(Enum):
    PENDING = "requires_payment"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


_STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.REQUIRES_PAYMENT: 1,
    OrderStatus.FULFILLMENT_PENDING: 2,
    OrderStatus.FULFILLED: 3,
    OrderStatus.CANCELED: 4,
    OrderStatus.REFUNDED: 4,
}

_TERMINAL_PAYMENT = {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED}
_TERMINAL_ATTEMPT = {AttemptStatus.SUCCEEDED, AttemptStatus.FAILED, AttemptStatus.CANCELED}

# Shipping labels that mean the goods have left the provider
_SHIPPED_LABELS = {"shipped", "in_transit", "delivered"}

MAX_TRACKED_SHIPMENTS = 50


@storefront.value_object(part_of="Order")
class Address:
    """A postal address as captured at checkout. Immutable once on an Order."""

    name: String(max_length=255)
    email: String(max_length=255)
    phone: String(max_length=50)
    line1: String(max_length=255)
    line2: String(max_length=255)
    city: String(max_length=100)
    region: String(max_length=100)
    postal: String(max_length=20)
    country: String(max_length=100)
    notes: String(max_length=1000)

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "region": self.region,
            "postal": self.postal,
            "country": self.country,
            "notes": self.notes,
        }


@storefront.entity(part_of="Order")
class OrderItem:
    """Immutable snapshot of one cart line at the time of purchase."""

    product_id: Identifier(required=True)
    variant_id: Identifier()
    title: String(required=True, max_length=255)
    quantity: Integer(required=True, min_value=1)
    unit_price_cents: Integer(required=True, min_value=0)
    total_cents: Integer(required=True, min_value=0)
    currency: String(max_length=3, required=True)
    fulfillment_kind: String(max_length=20)
    provider_variant_id: String(max_length=100)
    metadata: Text()


@storefront.entity(part_of="Order")
class PaymentAttempt:
    """One authorization attempt, keyed by the processor's intent id once known."""

    payment_intent_id: String(max_length=255)
    provider: String(max_length=50, default="stripe")
    status: String(choices=AttemptStatus, default=AttemptStatus.PENDING.value)
    amount_cents: Integer(required=True, min_value=0)
    currency: String(max_length=3, required=True)
    charge_id: String(max_length=255)
    receipt_url: String(max_length=1000)
    raw_payload: Text()
    created_at: DateTime()
    updated_at: DateTime()

    @property
    def is_terminal(self) -> bool:
        return AttemptStatus(self.status) in _TERMINAL_ATTEMPT


@storefront.aggregate
class Order:
    selling_group_id: Identifier(required=True)
    buyer_id: Identifier()
    status: String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status: String(choices=PaymentStatus, default=PaymentStatus.REQUIRES_PAYMENT.value)
    subtotal_cents: Integer(default=0, min_value=0)
    shipping_cents: Integer(default=0, min_value=0)
    tax_cents: Integer(default=0, min_value=0)
    fee_cents: Integer(default=0, min_value=0)
    total_cents: Integer(default=0, min_value=0)
    currency: String(max_length=3, default="usd")
    shipping_required: Boolean(default=False)
    shipping_address: ValueObject(Address)
    billing_address: ValueObject(Address)
    billing_same_as_shipping: Boolean(default=True)
    contact_email: String(max_length=255)
    contact_phone: String(max_length=50)
    shipping_rate_id: String(max_length=100)
    shipping_carrier: String(max_length=100)
    shipping_status: String(max_length=50, default="pending")
    tracking_number: String(max_length=255)
    tracking_url: String(max_length=1000)
    confirmation_code: String(max_length=8)
    payment_intent_id: String(max_length=255)
    promo_code: String(max_length=100)
    notes: String(max_length=2000)
    payment_method: String(max_length=50, default="card")
    terms_version: String(max_length=50)
    terms_accepted_at: DateTime()
    metadata: Text()
    items: HasMany(OrderItem)
    payments: HasMany(PaymentAttempt)
    created_at: DateTime()
    updated_at: DateTime()

    @invariant.post
    def total_is_sum_of_parts(self):
        expected = (self.subtotal_cents or 0) + (self.tax_cents or 0) + (self.shipping_cents or 0)
        if (self.total_cents or 0) != expected:
            raise ValidationError({"total_cents": ["Total must equal subtotal + tax + shipping"]})

    @invariant.post
    def fee_cannot_exceed_total(self):
        if (self.fee_cents or 0) > (self.total_cents or 0):
            raise ValidationError({"fee_cents": ["Platform fee cannot exceed the order total"]})

    @invariant.post
    def at_most_one_open_payment(self):
        open_attempts = [p for p in (self.payments or []) if not p.is_terminal]
        if len(open_attempts) > 1:
            raise ValidationError({"payments": ["Only one payment attempt may be open at a time"]})

    @classmethod
    def place(
        cls,
        selling_group_id,
        confirmation_code,
        lines,
        subtotal_cents,
        shipping_cents,
        tax_cents,
        currency,
        fee_cents=0,
        buyer_id=None,
        shipping_required=False,
        shipping_address=None,
        billing_address=None,
        billing_same_as_shipping=True,
        contact_email=None,
        contact_phone=None,
        shipping_rate_id=None,
        shipping_carrier=None,
        promo_code=None,
        notes=None,
        payment_method=None,
        terms_version=None,
        terms_accepted_at=None,
        metadata=None,
    ):
        """Create an order awaiting payment, with its line snapshots and a pending payment.

        Args:
            lines: dicts with product_id, variant_id, title, quantity,
                   unit_price_cents, fulfillment_kind, provider_variant_id.
            shipping_address / billing_address: canonical address dicts or None.
        """
        now = datetime.now(UTC)
        total_cents = subtotal_cents + shipping_cents + tax_cents
        billing = shipping_address if billing_same_as_shipping else billing_address

        order = cls(
            selling_group_id=selling_group_id,
            buyer_id=buyer_id,
            status=OrderStatus.REQUIRES_PAYMENT.value,
            payment_status=PaymentStatus.REQUIRES_PAYMENT.value,
            subtotal_cents=subtotal_cents,
            shipping_cents=shipping_cents,
            tax_cents=tax_cents,
            fee_cents=fee_cents,
            total_cents=total_cents,
            currency=currency,
            shipping_required=shipping_required,
            shipping_address=Address(**shipping_address) if shipping_address else None,
            billing_address=Address(**billing) if billing else None,
            billing_same_as_shipping=billing_same_as_shipping,
            contact_email=contact_email,
            contact_phone=contact_phone,
            shipping_rate_id=shipping_rate_id,
            shipping_carrier=shipping_carrier,
            shipping_status="pending",
            confirmation_code=confirmation_code,
            promo_code=promo_code,
            notes=notes,
            payment_method=payment_method or "card",
            terms_version=terms_version,
            terms_accepted_at=terms_accepted_at or now,
            metadata=json.dumps(metadata or {}),
            created_at=now,
            updated_at=now,
        )

        for line in lines:
            quantity = int(line["quantity"])
            unit_price = int(line["unit_price_cents"])
            order.add_items(
                OrderItem(
                    product_id=line["product_id"],
                    variant_id=line.get("variant_id"),
                    title=line["title"],
                    quantity=quantity,
                    unit_price_cents=unit_price,
                    total_cents=unit_price * quantity,
                    currency=currency,
                    fulfillment_kind=line.get("fulfillment_kind"),
                    provider_variant_id=line.get("provider_variant_id"),
                    metadata=json.dumps(
                        {"variant_id": line.get("variant_id"), "fulfillment_kind": line.get("fulfillment_kind")}
                    ),
                )
            )

        order.add_payments(
            PaymentAttempt(
                amount_cents=total_cents,
                currency=currency,
                raw_payload=json.dumps({}),
                created_at=now,
                updated_at=now,
            )
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                selling_group_id=str(selling_group_id),
                buyer_id=str(buyer_id) if buyer_id else None,
                confirmation_code=confirmation_code,
                total_cents=total_cents,
                currency=currency,
                shipping_required=bool(shipping_required),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def metadata_dict(self) -> dict:
        try:
            data = json.loads(self.metadata) if self.metadata else {}
        except (json.JSONDecodeError, TypeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _merge_metadata(self, **updates) -> None:
        data = self.metadata_dict
        data.update(updates)
        self.metadata = json.dumps(data)

    def _advance_status(self, target: OrderStatus) -> bool:
        if _STATUS_RANK[target] <= _STATUS_RANK[OrderStatus(self.status)]:
            return False
        self.status = target.value
        return True

    def _attempt_for(self, payment_intent_id):
        attempts = self.payments or []
        match = next((p for p in attempts if p.payment_intent_id == payment_intent_id), None)
        if match is not None:
            return match
        return next((p for p in attempts if not p.is_terminal and not p.payment_intent_id), None)

    @property
    def payment_is_terminal(self) -> bool:
        return PaymentStatus(self.payment_status) in _TERMINAL_PAYMENT

    @property
    def fee_applied(self) -> bool:
        return bool(self.metadata_dict.get("connect_destination_account_id"))

    # -------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------
    def attach_payment_intent(self, payment_intent_id: str) -> None:
        if self.payment_intent_id == payment_intent_id:
            return
        if self.payment_intent_id:
            raise ValidationError({"payment_intent_id": ["Order already has a payment intent"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.payment_intent_id = payment_intent_id
            attempt = self._attempt_for(payment_intent_id)
            if attempt is not None:
                attempt.payment_intent_id = payment_intent_id
                attempt.updated_at = now
            self.updated_at = now

    def record_payment_success(
        self,
        payment_intent_id: str,
        amount_cents: int | None = None,
        charge_id: str | None = None,
        receipt_url: str | None = None,
        raw_payload: str | None = None,
    ) -> bool:
        """Mark the order paid. Returns True only on the first successful transition.

        A repeat only fills in a charge id or receipt URL that was still missing.
        A failed payment is terminal and is left alone.
        """
        now = datetime.now(UTC)
        current = PaymentStatus(self.payment_status)
        attempt = self._attempt_for(payment_intent_id)

        if current == PaymentStatus.SUCCEEDED:
            if attempt is not None:
                with atomic_change(self):
                    if charge_id and not attempt.charge_id:
                        attempt.charge_id = charge_id
                    if receipt_url and not attempt.receipt_url:
                        attempt.receipt_url = receipt_url
            return False
        if current in _TERMINAL_PAYMENT:
            return False

        with atomic_change(self):
            self.payment_status = PaymentStatus.SUCCEEDED.value
            self._advance_status(
                OrderStatus.FULFILLMENT_PENDING if self.shipping_required else OrderStatus.FULFILLED
            )
            if attempt is not None:
                attempt.payment_intent_id = payment_intent_id
                attempt.status = AttemptStatus.SUCCEEDED.value
                attempt.amount_cents = amount_cents if amount_cents is not None else attempt.amount_cents
                attempt.charge_id = charge_id or attempt.charge_id
                attempt.receipt_url = receipt_url or attempt.receipt_url
                attempt.raw_payload = raw_payload or attempt.raw_payload
                attempt.updated_at = now
            self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                selling_group_id=str(self.selling_group_id),
                buyer_id=str(self.buyer_id) if self.buyer_id else None,
                payment_intent_id=payment_intent_id,
                amount_cents=amount_cents if amount_cents is not None else self.total_cents,
                currency=self.currency,
                shipping_required=bool(self.shipping_required),
                paid_at=now,
            )
        )
        return True

    def record_payment_failure(
        self,
        payment_intent_id: str,
        canceled: bool = False,
        reason: str | None = None,
        raw_payload: str | None = None,
    ) -> bool:
        """Mark the payment failed. Order ``status`` is left as it is."""
        if self.payment_is_terminal:
            return False

        now = datetime.now(UTC)
        attempt = self._attempt_for(payment_intent_id)
        with atomic_change(self):
            self.payment_status = PaymentStatus.FAILED.value
            if attempt is not None:
                attempt.payment_intent_id = payment_intent_id
                attempt.status = (AttemptStatus.CANCELED if canceled else AttemptStatus.FAILED).value
                attempt.raw_payload = raw_payload or attempt.raw_payload
                attempt.updated_at = now
            self.updated_at = now

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                selling_group_id=str(self.selling_group_id),
                buyer_id=str(self.buyer_id) if self.buyer_id else None,
                payment_intent_id=payment_intent_id,
                reason=reason,
                failed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def mark_fulfillment_submitted(self, provider_order_id: str, provider_status: str | None) -> None:
        """Record a successful submission to the fulfillment provider."""
        now = datetime.now(UTC)
        with atomic_change(self):
            self._merge_metadata(
                fulfillment_provider_order_id=provider_order_id,
                fulfillment_provider_status=provider_status,
                fulfillment_submitted_at=now.isoformat(),
            )
            changed = self.shipping_status in (None, "", "pending")
            if changed:
                self.shipping_status = "preparing"
            self.updated_at = now

        if changed:
            self.raise_(ShippingUpdated(order_id=str(self.id), shipping_status="preparing", updated_at=now))

    def apply_fulfillment_update(
        self,
        shipping_status: str | None = None,
        tracking_number: str | None = None,
        tracking_url: str | None = None,
        carrier: str | None = None,
        shipments: list[dict] | None = None,
        event_created_at: int | None = None,
        raw_event: dict | None = None,
    ) -> bool:
        """Merge a provider event. Known tracking is never cleared by an event that omits it.

        An event older than the last one applied still contributes shipments
        and tracking, but does not overwrite the shipping status label.
        """
        now = datetime.now(UTC)
        data = self.metadata_dict
        last_applied = data.get("fulfillment_last_event_created")
        stale = event_created_at is not None and last_applied is not None and event_created_at < last_applied

        before = (self.shipping_status, self.tracking_number, self.tracking_url, self.shipping_carrier, self.status)

        known = data.get("fulfillment_shipments") or []
        merged = list(known)
        for shipment in shipments or []:
            if shipment not in merged:
                merged.append(shipment)

        with atomic_change(self):
            if shipping_status and not stale:
                self.shipping_status = shipping_status
            if tracking_number:
                self.tracking_number = tracking_number
            if tracking_url:
                self.tracking_url = tracking_url
            if carrier:
                self.shipping_carrier = carrier

            updates = {"fulfillment_shipments": merged[-MAX_TRACKED_SHIPMENTS:]}
            if raw_event is not None:
                updates["fulfillment_last_webhook"] = raw_event
            if event_created_at is not None and not stale:
                updates["fulfillment_last_event_created"] = event_created_at
            self._merge_metadata(**updates)

            if (
                self.shipping_status in _SHIPPED_LABELS
                and PaymentStatus(self.payment_status) == PaymentStatus.SUCCEEDED
            ):
                self._advance_status(OrderStatus.FULFILLED)
            self.updated_at = now

        after = (self.shipping_status, self.tracking_number, self.tracking_url, self.shipping_carrier, self.status)
        if after != before:
            self.raise_(
                ShippingUpdated(
                    order_id=str(self.id),
                    shipping_status=self.shipping_status,
                    tracking_number=self.tracking_number,
                    tracking_url=self.tracking_url,
                    carrier=self.shipping_carrier,
                    updated_at=now,
                )
            )
            return True
        return False
