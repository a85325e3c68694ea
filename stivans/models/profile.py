from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"

    # same id as the auth platform's user
    id: str = Field(primary_key=True)
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str = Field(default="customer")
    created_at: datetime = Field(default_factory=datetime.utcnow)
