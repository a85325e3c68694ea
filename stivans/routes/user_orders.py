from fastapi import APIRouter, Depends, Query

from stivans.dependencies.auth import CallerIdentity, get_current_identity
from stivans.dependencies.services import get_order_manager
from stivans.schemas.orders_schemas import OrderRead, OrderSummary
from stivans.services.order_service import OrderLifecycleManager

router = APIRouter()


@router.get("")
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    orders: OrderLifecycleManager = Depends(get_order_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    data = orders.list_user_orders(identity.user_id, page=page, limit=limit)
    data["results"] = [OrderSummary.model_validate(o) for o in data["results"]]
    return data


# Lookup by the reference the payment page redirects back with

@router.get("/ref/{external_id}", response_model=OrderRead)
def get_order_by_reference(
    external_id: str,
    orders: OrderLifecycleManager = Depends(get_order_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    return orders.get_order_by_reference(identity.user_id, external_id)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    orders: OrderLifecycleManager = Depends(get_order_manager),
    identity: CallerIdentity = Depends(get_current_identity),
):
    return orders.get_order_for_user(identity.user_id, order_id)
