from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    image_url: Optional[str] = None
    line_total: Decimal


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    external_id: str
    status: str
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    invoice_id: Optional[str] = None
    invoice_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    shipping_carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    order_tag: Optional[str] = None
    cadaver_details_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead] = []


class OrderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    external_id: str
    status: str
    total: Decimal
    shipping_carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    invoice_url: Optional[str] = None
    created_at: datetime


class OrderItemPatch(BaseModel):
    id: int
    price: Optional[Decimal] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)


class OrderPatch(BaseModel):
    """Admin fulfillment patch. Only fields that are sent get written."""

    status: Optional[str] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    shipping_carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    items: Optional[List[OrderItemPatch]] = None
    subtotal: Optional[Decimal] = Field(default=None, ge=0)
    tax: Optional[Decimal] = Field(default=None, ge=0)
    shipping: Optional[Decimal] = Field(default=None, ge=0)
    total: Optional[Decimal] = Field(default=None, ge=0)


class AdminOrderUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(alias="orderId")
    patch: OrderPatch


class AdminOrderUpdateResponse(BaseModel):
    ok: bool = True
    order: OrderRead


class TrackingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(alias="orderId")
    carrier: Optional[str] = None


class TrackingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tracking_number: str = Field(serialization_alias="trackingNumber")
    carrier: str
