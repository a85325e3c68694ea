from fastapi import Request

from stivans.config import Settings
from stivans.services.payment_gateway import XenditClient


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_payment_gateway(request: Request) -> XenditClient:
    return request.app.state.payment_gateway
