# -------- ADMIN ORDERS --------
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from stivans.database import get_session
from stivans.dependencies.auth import CallerIdentity, require_admin
from stivans.dependencies.services import get_order_manager
from stivans.models.cadaver_details import CadaverDetails
from stivans.schemas.orders_schemas import (
    AdminOrderUpdateRequest,
    AdminOrderUpdateResponse,
    OrderRead,
    OrderSummary,
    TrackingRequest,
    TrackingResponse,
)
from stivans.services.order_event_service import list_order_events
from stivans.services.order_service import OrderLifecycleManager
from stivans.services.tracking_service import assign_tracking_number

router = APIRouter()


@router.get("")
def list_orders(
    tab: Literal["unshipped", "in_transit", "shipped", "all"] = "unshipped",
    search: Optional[str] = None,
    sort: Literal["created_at", "total"] = "created_at",
    direction: Literal["asc", "desc"] = "asc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    orders: OrderLifecycleManager = Depends(get_order_manager),
    _: CallerIdentity = Depends(require_admin),
):
    data = orders.list_orders_admin(
        tab=tab,
        search=search,
        sort=sort,
        direction=direction,
        page=page,
        limit=limit,
    )
    data["results"] = [OrderSummary.model_validate(o) for o in data["results"]]
    return data


@router.get("/{order_id}")
def order_details(
    order_id: int,
    session: Session = Depends(get_session),
    orders: OrderLifecycleManager = Depends(get_order_manager),
    _: CallerIdentity = Depends(require_admin),
):
    order = orders.get_order(order_id)

    cadaver = (
        session.get(CadaverDetails, order.cadaver_details_id)
        if order.cadaver_details_id
        else None
    )

    return {
        "order": OrderRead.model_validate(order),
        "cadaver_details": cadaver,
        "timeline": [
            {
                "event_type": e.event_type,
                "label": e.label,
                "meta": e.meta,
                "created_by": e.created_by,
                "created_at": e.created_at,
            }
            for e in list_order_events(session, order.id)
        ],
    }


@router.post("/update", response_model=AdminOrderUpdateResponse)
def update_order(
    payload: AdminOrderUpdateRequest,
    orders: OrderLifecycleManager = Depends(get_order_manager),
    admin: CallerIdentity = Depends(require_admin),
):
    order = orders.update_fulfillment(admin, payload.order_id, payload.patch)
    return AdminOrderUpdateResponse(order=OrderRead.model_validate(order))


@router.post("/tracking", response_model=TrackingResponse)
def generate_tracking(
    payload: TrackingRequest,
    session: Session = Depends(get_session),
    admin: CallerIdentity = Depends(require_admin),
):
    order = assign_tracking_number(
        session=session,
        identity=admin,
        order_id=payload.order_id,
        carrier=payload.carrier,
    )
    return TrackingResponse(
        tracking_number=order.tracking_number,
        carrier=order.shipping_carrier,
    )
