import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stivans.config import Settings, get_settings
from stivans.database import build_engine, create_db_and_tables
from stivans.errors import register_error_handlers
from stivans.routes import (
    admin_carts,
    admin_orders,
    cart,
    checkout,
    health,
    notifications,
    payments,
    user_orders,
)
from stivans.services.payment_gateway import XenditClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings

    # Run DB creation ONLY in local
    if settings.env == "local":
        create_db_and_tables(app.state.engine)

    logger.info(f"Stivans API started (env={settings.env})")
    yield

    if app.state.owns_gateway:
        app.state.payment_gateway.close()
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None, gateway=None) -> FastAPI:
    """
    Build the API. Run with `uvicorn stivans.main:create_app --factory`.

    Tests pass their own settings and a stand-in gateway.
    """
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Stivans Memorial Services API", lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.owns_gateway = gateway is None
    app.state.payment_gateway = gateway or XenditClient(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])
    app.include_router(payments.router, prefix="/payments", tags=["Payments"])
    app.include_router(cart.router, prefix="/cart", tags=["Cart"])
    app.include_router(user_orders.router, prefix="/orders", tags=["Orders"])
    app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
    app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
    app.include_router(admin_carts.router, prefix="/admin/carts", tags=["Admin Carts"])
    app.include_router(health.router, prefix="/health", tags=["Health"])

    return app
