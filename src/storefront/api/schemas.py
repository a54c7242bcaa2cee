"""Pydantic request/response schemas for the Store API.

The checkout request itself is the canonical ``CheckoutRequest`` model; the
response is emitted in camelCase for browser clients.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShippingRateSchema(_CamelModel):
    id: str
    name: str
    amount_cents: int
    currency: str
    min_delivery_days: int | None = None
    max_delivery_days: int | None = None


class CheckoutResponse(_CamelModel):
    order_id: str
    client_secret: str
    payment_intent_id: str
    confirmation_code: str
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    fee_cents: int
    total_cents: int
    currency: str
    tax_calculation_id: str | None = None
    shipping_rates: list[ShippingRateSchema] = Field(default_factory=list)


class CheckoutErrorResponse(BaseModel):
    status: int
    code: str
    message: str


class StatusResponse(BaseModel):
    status: str


class OnboardingLinkRequest(BaseModel):
    return_url: str
    refresh_url: str
    email: str | None = None


class OnboardingLinkResponse(BaseModel):
    url: str
    account: dict


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Card declined"
    unavailable: bool = False
    tax_cents: int = Field(default=0, ge=0)
    tax_should_fail: bool = False


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
    unavailable: bool
    tax_cents: int
    tax_should_fail: bool


class ConfigureProviderRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Provider unavailable"


class ProviderConfigResponse(BaseModel):
    provider: str
    should_succeed: bool
    failure_reason: str
