"""
Request bodies. Field names arrive camelCase; services receive snake_case.
"""
from typing import Annotated, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, NonNegativeFloat, model_validator
from pydantic.alias_generators import to_camel


def _falsy_to_none(value):
    # "", 0 and null all clear the amount
    return value if value else None


Amount = Annotated[NonNegativeFloat | None, BeforeValidator(_falsy_to_none)]
RequiredText = Annotated[str, Field(min_length=1)]


class RequestBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class OrderCreate(RequestBody):
    product_id: RequiredText
    customer_name: Annotated[str, Field(min_length=1, max_length=100)]
    customer_phone: Annotated[str, Field(min_length=1, max_length=20, pattern=r"^[\d\s+\-()]+$")]
    customer_address: Annotated[str, Field(min_length=1, max_length=500)]
    quantity: int = Field(default=1, ge=1, le=1000)
    notes: str = Field(default="", max_length=1000)


class AdminOrderUpdate(RequestBody):
    id: RequiredText
    status: str | None = None
    delivery_man_id: str | None = None
    shipping_price: Amount = None
    payment_received: Amount = None
    notes: str | None = Field(default=None, max_length=1000)


class DeliveryOrderUpdate(RequestBody):
    id: RequiredText
    status: str | None = None
    shipping_price: Amount = None
    payment_received: Amount = None


class ProductFields(RequestBody):
    name: Annotated[str, Field(min_length=1, max_length=200)]
    price: NonNegativeFloat
    discount_price: Amount = None
    stock: int | None = Field(default=None, ge=0)
    description: str = Field(default="", max_length=5000)
    media_url: str = Field(default="", max_length=2000)
    media_urls: list[str] = Field(default_factory=list, max_length=10)
    media_type: Literal["image", "video"] = "image"

    @model_validator(mode="after")
    def discount_below_price(self):
        if self.discount_price is not None and self.discount_price >= self.price:
            raise ValueError("Discount price must be less than regular price")
        return self


class ProductUpdate(RequestBody):
    """Partial update; merged onto the stored product and re-validated as ProductFields."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True, extra="ignore")

    id: RequiredText
    name: str | None = None
    price: float | None = None
    discount_price: float | None = None
    stock: int | None = None
    description: str | None = None
    media_url: str | None = None
    media_urls: list[str] | None = None
    media_type: str | None = None


class AdminLogin(RequestBody):
    password: RequiredText


class DeliveryAuthRequest(RequestBody):
    action: Literal["login", "signup"] = "login"
    name: str | None = None
    phone: RequiredText
    password: RequiredText
