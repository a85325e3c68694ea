import logging

from fastapi import APIRouter, Depends

from stivans.dependencies.auth import CallerIdentity, require_admin
from stivans.dependencies.services import get_cart_manager
from stivans.errors import ValidationError
from stivans.schemas.cart_schemas import AdminCartUpdateRequest
from stivans.services.cart_service import CartManager, serialize_cart

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/update")
def update_cart(
    payload: AdminCartUpdateRequest,
    carts: CartManager = Depends(get_cart_manager),
    admin: CallerIdentity = Depends(require_admin),
):
    """Remove one line, or empty the whole cart, on behalf of a customer."""
    cart = carts.get_cart(payload.cart_id)

    if payload.action == "remove-item":
        if payload.item_id is None:
            raise ValidationError("itemId is required for remove-item")
        carts.remove_item(cart, payload.item_id)
        logger.info(f"Admin {admin.user_id} removed item {payload.item_id} from cart {cart.id}")
    else:
        carts.clear(cart)
        logger.info(f"Admin {admin.user_id} cleared cart {cart.id}")

    return serialize_cart(cart, carts.list_items(cart))
