"""Structured checkout failures surfaced to the caller as {status, code, message}."""


class CheckoutError(Exception):
    """A checkout that must abort before (or while) authorizing payment."""

    def __init__(self, status: int, code: str, message: str):
        super().__init__(message)
        self.status = status
        self.code = code
        self.message = message

    def as_dict(self) -> dict:
        return {"status": self.status, "code": self.code, "message": self.message}


INVALID_REQUEST = "invalid_request"
EMPTY_CART = "empty_cart"
SHIPPING_ADDRESS_REQUIRED = "shipping_address_required"
SHIPPING_UNAVAILABLE = "shipping_unavailable"
SELLER_CONNECT_MISSING = "seller_connect_missing"
SELLER_ONBOARDING_INCOMPLETE = "seller_onboarding_incomplete"
PAYMENT_PROCESSOR_UNAVAILABLE = "payment_processor_unavailable"
PAYMENT_AUTHORIZATION_FAILED = "payment_authorization_failed"
