# stivans/schemas/checkout_schemas.py
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field


class CheckoutItem(BaseModel):
    product_id: int
    quantity: int = 1
    unit_price: Decimal = Field(validation_alias=AliasChoices("unit_price", "price"))


class CheckoutRequest(BaseModel):
    # omitted -> the caller's cart is snapshotted instead
    items: Optional[List[CheckoutItem]] = None
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    total: Decimal
    order_tag: Optional[str] = Field(
        default=None,
        max_length=128,
        validation_alias=AliasChoices("order_tag", "idempotency_key"),
    )
    cadaver_details_id: Optional[int] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    payer_email: Optional[EmailStr] = None


class CheckoutResponse(BaseModel):
    invoice_url: str
    order_id: int
    external_id: str


class LineItemSnapshot(BaseModel):
    """One product line frozen at checkout time."""

    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    image_url: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderTotals(BaseModel):
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
