import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base for every error the service turns into an HTTP response."""

    status_code = 500
    message = "Server error"

    def __init__(self, message: Optional[str] = None, detail: Any = None):
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)

    def to_body(self) -> dict:
        body = {"error": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ValidationError(StoreError):
    status_code = 400
    message = "Invalid request"


class AuthError(StoreError):
    status_code = 401
    message = "Could not validate credentials"


class ForbiddenError(StoreError):
    status_code = 403
    message = "Admin access required"


class NotFoundError(StoreError):
    status_code = 404
    message = "Not found"


class OrderNotFoundError(NotFoundError):
    message = "Order not found"


class CartItemNotFoundError(NotFoundError):
    message = "Cart item not found"


class ConflictError(StoreError):
    status_code = 409
    message = "Conflict"


class GatewayError(StoreError):
    """Payment processor failure. Carries the upstream status and body."""

    message = "Payment gateway error"

    def __init__(
        self,
        message: Optional[str] = None,
        detail: Any = None,
        upstream_status: Optional[int] = None,
    ):
        super().__init__(message, detail)
        self.upstream_status = upstream_status
        if upstream_status is not None and upstream_status >= 400:
            self.status_code = upstream_status
        else:
            self.status_code = 502


class ServerError(StoreError):
    status_code = 500


async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_body()),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder(
            {"error": "Invalid request", "detail": exc.errors()}
        ),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Server error"})


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
