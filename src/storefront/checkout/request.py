"""Canonical checkout request.

Clients send either camelCase or snake_case and a few historical aliases
(``postal_code``, ``state``, ``shippingRateId``). They are collapsed here, once,
so nothing downstream looks up alternative spellings.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Canonical(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class AddressInput(_Canonical):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    line1: str | None = Field(default=None, validation_alias=AliasChoices("line1", "address1", "addressLine1"))
    line2: str | None = Field(default=None, validation_alias=AliasChoices("line2", "address2", "addressLine2"))
    city: str | None = None
    region: str | None = Field(default=None, validation_alias=AliasChoices("region", "state", "stateCode"))
    postal: str | None = Field(
        default=None, validation_alias=AliasChoices("postal", "postalCode", "postal_code", "zip")
    )
    country: str | None = Field(default=None, validation_alias=AliasChoices("country", "countryCode", "country_code"))
    notes: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value):
        return value.upper() if value else value

    def as_dict(self) -> dict:
        return self.model_dump(by_alias=False)


class ContactInput(_Canonical):
    email: str | None = None
    phone: str | None = None


class CartLineInput(_Canonical):
    product_id: str
    variant_id: str | None = None
    quantity: int = 1


class CheckoutRequest(_Canonical):
    selling_group_id: str = Field(
        validation_alias=AliasChoices("sellingGroupId", "selling_group_id", "capsuleId", "capsule_id")
    )
    buyer_id: str | None = Field(
        default=None, validation_alias=AliasChoices("buyerId", "buyer_id", "buyerUserId", "buyer_user_id")
    )
    cart: list[CartLineInput] = Field(
        default_factory=list, validation_alias=AliasChoices("cart", "cartLines", "cart_lines", "items")
    )
    contact: ContactInput = Field(default_factory=ContactInput)
    shipping_rate_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("shippingRateId", "shipping_rate_id", "shippingOptionId", "shipping_option_id"),
    )
    shipping_address: AddressInput | None = None
    billing_address: AddressInput | None = None
    billing_same_as_shipping: bool = True
    promo_code: str | None = None
    notes: str | None = None
    payment_method: str | None = None
    terms_version: str | None = None
    terms_accepted_at: datetime | None = None

    @property
    def shipping_address_dict(self) -> dict | None:
        return self.shipping_address.as_dict() if self.shipping_address else None

    @property
    def billing_address_dict(self) -> dict | None:
        return self.billing_address.as_dict() if self.billing_address else None
