from fastapi import APIRouter, Depends

from stivans.dependencies.auth import CallerIdentity, get_current_identity
from stivans.dependencies.services import get_cart_manager
from stivans.schemas.cart_schemas import CartAddRequest, CartUpdateRequest
from stivans.services.cart_service import CartManager, serialize_cart

router = APIRouter()

# Add to Cart

@router.post("/add")
def add_to_cart(
    data: CartAddRequest,
    carts: CartManager = Depends(get_cart_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    cart = carts.get_or_create_cart(identity.user_id)
    item = carts.add_item(cart, data.product_id, data.quantity)

    return {"message": "Added to cart", "item": item}


# View Cart

@router.get("")
def get_cart(
    carts: CartManager = Depends(get_cart_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    cart = carts.get_or_create_cart(identity.user_id)
    return serialize_cart(cart, carts.list_items(cart))


# Update quantity

@router.put("/update/{item_id}")
def update_cart_item(
    item_id: int,
    data: CartUpdateRequest,
    carts: CartManager = Depends(get_cart_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    cart = carts.get_or_create_cart(identity.user_id)
    item = carts.update_quantity(cart, item_id, data.quantity)

    if item is None:
        return {"message": "Item removed from cart"}
    return {"message": "Cart updated", "item": item}


# Remove item

@router.delete("/remove/{item_id}")
def remove_cart_item(
    item_id: int,
    carts: CartManager = Depends(get_cart_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    cart = carts.get_or_create_cart(identity.user_id)
    carts.remove_item(cart, item_id)
    return {"message": "Item removed from cart"}


# Clear cart

@router.delete("/clear")
def clear_cart(
    carts: CartManager = Depends(get_cart_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    cart = carts.get_or_create_cart(identity.user_id)
    removed = carts.clear(cart)
    return {"message": "Cart cleared", "removed": removed}
