from fastapi import Depends
from sqlmodel import Session

from stivans.config import Settings
from stivans.database import get_session
from stivans.dependencies.common import get_app_settings, get_payment_gateway
from stivans.services.cart_service import CartManager
from stivans.services.order_service import OrderLifecycleManager
from stivans.services.payment_gateway import XenditClient


def get_cart_manager(session: Session = Depends(get_session)) -> CartManager:
    return CartManager(session)


def get_order_manager(
    session: Session = Depends(get_session),
    gateway: XenditClient = Depends(get_payment_gateway),
    settings: Settings = Depends(get_app_settings),
    carts: CartManager = Depends(get_cart_manager),
) -> OrderLifecycleManager:
    return OrderLifecycleManager(session, gateway, settings, carts=carts)
