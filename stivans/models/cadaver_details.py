from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class CadaverDetails(SQLModel, table=True):
    __tablename__ = "cadaver_details"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    # set once, when the order is paid
    order_id: Optional[int] = Field(default=None, index=True)

    full_name: str
    death_certificate_url: str
    remains_location: Optional[str] = None
    pickup_datetime: Optional[datetime] = None
    special_instructions: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
