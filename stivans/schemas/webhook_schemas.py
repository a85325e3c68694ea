from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class InvoiceCallbackData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    external_id: Optional[str] = None
    status: str = ""

    @model_validator(mode="after")
    def check_reference(self):
        if not self.id and not self.external_id:
            raise ValueError("Callback carries neither id nor external_id")
        if not self.status.strip():
            raise ValueError("Callback carries no status")
        self.status = self.status.strip().upper()
        return self


class InvoiceCallback(BaseModel):
    """
    Xendit invoice callback.

    Accepts the `{event, data: {...}}` envelope as well as the legacy flat
    body where the invoice fields sit at the top level.
    """

    model_config = ConfigDict(extra="allow")

    event: Optional[str] = None
    data: InvoiceCallbackData

    @model_validator(mode="before")
    @classmethod
    def wrap_flat_payload(cls, values):
        if isinstance(values, dict) and "data" not in values:
            return {"event": values.get("event"), "data": values}
        return values

    @property
    def external_id(self) -> Optional[str]:
        return self.data.external_id

    @property
    def invoice_id(self) -> Optional[str]:
        return self.data.id

    @property
    def status(self) -> str:
        return self.data.status

    @property
    def amount(self) -> Optional[Any]:
        """Paid amount when the processor reports one."""
        extra = self.data.model_extra or {}
        return extra.get("paid_amount", extra.get("amount"))
