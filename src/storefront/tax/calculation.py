"""Tax computation through the payment processor's tax engine.

A failing engine never fails checkout: the result degrades to zero tax over
the local subtotal plus shipping, with no calculation id.
"""

from dataclasses import dataclass

import structlog

from storefront.cart.assembly import AssembledCart
from storefront.payment.gateway import get_gateway
from storefront.payment.gateway.port import TaxLine

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TaxResult:
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    calculation_id: str | None = None
    # Total as reported by the tax engine, kept for audit only
    reported_total_cents: int | None = None

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.shipping_cents + self.tax_cents


def _tax_code(line) -> str | None:
    code = line.product.metadata_dict.get("tax_code")
    return str(code) if code else None


def calculate_tax(
    cart: AssembledCart,
    currency: str,
    address: dict | None,
    shipping_cents: int,
) -> TaxResult:
    local_subtotal = cart.subtotal_cents
    lines = [
        TaxLine(
            amount_cents=line.unit_price_cents,
            quantity=line.quantity,
            reference=str(line.product.id),
            tax_code=_tax_code(line),
        )
        for line in cart.lines
    ]

    try:
        quote = get_gateway().calculate_tax(lines, currency, address, shipping_cents)
    except Exception as exc:
        logger.warning("tax_calculation_failed", error=str(exc), subtotal_cents=local_subtotal)
        return TaxResult(subtotal_cents=local_subtotal, shipping_cents=shipping_cents, tax_cents=0)

    subtotal = quote.subtotal_cents if quote.subtotal_cents is not None else local_subtotal
    result = TaxResult(
        subtotal_cents=max(0, int(subtotal)),
        shipping_cents=shipping_cents,
        tax_cents=max(0, int(quote.tax_cents or 0)),
        calculation_id=quote.calculation_id,
        reported_total_cents=quote.total_cents,
    )
    if quote.total_cents is not None and quote.total_cents != result.total_cents:
        logger.warning(
            "tax_total_mismatch",
            reported_total_cents=quote.total_cents,
            computed_total_cents=result.total_cents,
            calculation_id=quote.calculation_id,
        )
    return result
