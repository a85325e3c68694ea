from fastapi import APIRouter, Depends

from stivans.dependencies.auth import CallerIdentity, get_current_identity
from stivans.dependencies.services import get_cart_manager, get_order_manager
from stivans.schemas.checkout_schemas import CheckoutRequest, CheckoutResponse
from stivans.services.cart_service import CartManager
from stivans.services.order_service import OrderLifecycleManager
from stivans.utils.money import to_money

router = APIRouter()


@router.post("", response_model=CheckoutResponse)
def create_checkout(
    payload: CheckoutRequest,
    identity: CallerIdentity = Depends(get_current_identity),
    orders: OrderLifecycleManager = Depends(get_order_manager),
):
    """
    Create the pending order, then the hosted invoice.

    The cart is left alone unless CART_HANDOFF_POLICY says otherwise.
    """
    order = orders.checkout(identity, payload)

    return CheckoutResponse(
        invoice_url=order.invoice_url,
        order_id=order.id,
        external_id=order.external_id,
    )


# Cart snapshot shown on the checkout page

@router.get("/summary")
def checkout_summary(
    identity: CallerIdentity = Depends(get_current_identity),
    carts: CartManager = Depends(get_cart_manager),
):
    lines = carts.snapshot(identity.user_id)
    subtotal = to_money(sum(line.line_total for line in lines))

    return {
        "items": [
            {**line.model_dump(), "line_total": line.line_total}
            for line in lines
        ],
        "subtotal": subtotal,
    }
