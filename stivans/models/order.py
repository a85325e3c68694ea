from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

from stivans.constants.order_status import OrderStatus
from stivans.models.order_item import OrderItem


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("user_id", "order_tag", name="uq_orders_user_order_tag"),
        UniqueConstraint(
            "shipping_carrier", "tracking_number", name="uq_orders_carrier_tracking"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)

    subtotal: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    tax: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    shipping: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    total: Decimal = Field(max_digits=12, decimal_places=2)

    status: str = Field(default=OrderStatus.pending.value, index=True)

    # join key with the payment processor
    external_id: str = Field(unique=True, index=True)
    order_tag: Optional[str] = None

    invoice_id: Optional[str] = Field(default=None, index=True)
    invoice_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None

    # snapshots, not references to the address book
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None

    shipping_carrier: Optional[str] = None
    tracking_number: Optional[str] = None

    cadaver_details_id: Optional[int] = Field(
        default=None, foreign_key="cadaver_details.id"
    )

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"order_by": "OrderItem.id"},
    )
