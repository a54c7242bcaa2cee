"""Storefront bounded context: checkout, payment reconciliation and fulfillment.

Turns a shopping cart into a paid, provisioned order: prices the cart (tax and
shipping included), decides how funds split between the platform and the
selling group, authorizes payment with the processor, and reconciles the
resulting Order against asynchronous payment and fulfillment webhooks.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
