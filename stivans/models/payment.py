from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Payment(SQLModel, table=True):
    """One row per processor callback that changed an order."""

    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)

    order_id: int = Field(foreign_key="orders.id", index=True)
    user_id: str = Field(index=True)

    provider: str = Field(default="xendit")
    provider_event: Optional[str] = None
    provider_reference: Optional[str] = Field(default=None, index=True)  # invoice id
    provider_status: str  # PAID / SETTLED / EXPIRED / FAILED

    amount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    currency: str = Field(default="PHP")
    raw_payload: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=datetime.utcnow)
