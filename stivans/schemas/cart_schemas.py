from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CartAddRequest(BaseModel):
    product_id: int
    quantity: int = 1


class CartUpdateRequest(BaseModel):
    quantity: int


class AdminCartUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["remove-item", "clear"]
    cart_id: int = Field(alias="cartId")
    item_id: Optional[int] = Field(default=None, alias="itemId")
