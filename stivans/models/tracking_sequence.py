from sqlmodel import SQLModel, Field


class TrackingSequence(SQLModel, table=True):
    __tablename__ = "tracking_sequences"

    carrier: str = Field(primary_key=True)
    last_value: int = Field(default=0)
