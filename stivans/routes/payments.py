import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from stivans.dependencies.common import get_payment_gateway
from stivans.dependencies.services import get_order_manager
from stivans.schemas.webhook_schemas import InvoiceCallback
from stivans.services.order_service import OrderLifecycleManager
from stivans.services.payment_gateway import XenditClient

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_xendit_callback(
    x_callback_token: Optional[str] = Header(default=None),
    gateway: XenditClient = Depends(get_payment_gateway),
):
    gateway.verify_callback_token(x_callback_token)


@router.post("/xendit/webhook", dependencies=[Depends(verify_xendit_callback)])
def xendit_webhook(
    payload: InvoiceCallback,
    orders: OrderLifecycleManager = Depends(get_order_manager),
):
    """
    Xendit invoice callback. Delivered at least once, so it must be safe to
    replay: a repeated PAID for an already-paid order is a no-op.
    """
    result = orders.reconcile_payment_callback(payload)

    logger.info(
        f"Webhook {payload.status} for order {result.order_id}: "
        f"{'applied' if result.applied else 'no change'} ({result.status})"
    )
    return {"ok": True}
