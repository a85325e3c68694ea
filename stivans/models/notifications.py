from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field


class RecipientRole(str, Enum):
    admin = "admin"
    customer = "customer"


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)

    # None means every admin sees it
    user_id: Optional[str] = Field(default=None, index=True)
    recipient_role: str = Field(default=RecipientRole.customer.value)

    type: str  # order_placed / payment_success / shipped ...
    title: str
    body: Optional[str] = None
    order_id: Optional[int] = Field(default=None, index=True)

    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
