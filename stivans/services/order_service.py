import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from stivans.config import CartHandoffPolicy, Settings
from stivans.constants.order_status import (
    ADMIN_STATUSES,
    GATEWAY_STATUS_MAP,
    OrderStatus,
    can_transition,
)
from stivans.dependencies.auth import CallerIdentity, ensure_admin
from stivans.errors import (
    ConflictError,
    GatewayError,
    NotFoundError,
    OrderNotFoundError,
    ServerError,
    ValidationError,
)
from stivans.models.cadaver_details import CadaverDetails
from stivans.models.order import Order
from stivans.models.order_item import OrderItem
from stivans.models.product import Product
from stivans.notifications import OrderEvent, dispatch_order_event
from stivans.schemas.checkout_schemas import (
    CheckoutItem,
    CheckoutRequest,
    LineItemSnapshot,
    OrderTotals,
)
from stivans.schemas.orders_schemas import OrderPatch
from stivans.schemas.webhook_schemas import InvoiceCallback
from stivans.services.cart_service import CartManager
from stivans.services.order_event_service import log_order_event
from stivans.services.payment_gateway import XenditClient
from stivans.services.payment_service import record_payment
from stivans.utils.money import is_money, to_money
from stivans.utils.pagination import paginate

logger = logging.getLogger(__name__)

MONEY_FIELDS = ("subtotal", "tax", "shipping", "total")
TEXT_FIELDS = ("shipping_address", "billing_address", "shipping_carrier", "tracking_number")

PAYMENT_EVENTS = {
    OrderStatus.paid: OrderEvent.PAYMENT_SUCCESS,
    OrderStatus.expired: OrderEvent.PAYMENT_EXPIRED,
    OrderStatus.failed: OrderEvent.PAYMENT_FAILED,
}

FULFILLMENT_EVENTS = {
    OrderStatus.in_transit: OrderEvent.IN_TRANSIT,
    OrderStatus.shipped: OrderEvent.SHIPPED,
    OrderStatus.canceled: OrderEvent.CANCELED,
    OrderStatus.refunded: OrderEvent.REFUNDED,
}

ADMIN_TABS = {
    "unshipped": OrderStatus.paid,
    "in_transit": OrderStatus.in_transit,
    "shipped": OrderStatus.shipped,
    "all": None,
}


def generate_external_id(user_id: str) -> str:
    """INV_<ms>_<user prefix>_<random>; uniqueness is backed by a unique index."""
    prefix = "".join(ch for ch in user_id if ch.isalnum())[:8]
    return f"INV_{int(time.time() * 1000)}_{prefix}_{secrets.token_hex(6)}"


@dataclass
class ReconciliationResult:
    order_id: int
    status: str
    applied: bool


class DuplicateOrderTagError(ConflictError):
    message = "Order tag already used"

    def __init__(self, order: Order):
        super().__init__(detail={"order_id": order.id, "status": order.status})
        self.order = order


class OrderLifecycleManager:
    """
    Owns the order state machine.

    pending -> paid | expired | failed      (payment webhook only)
    paid -> in_transit -> shipped           (admin)
    canceled / refunded                     (admin, before shipped)
    """

    def __init__(
        self,
        session: Session,
        gateway: XenditClient,
        settings: Settings,
        carts: Optional[CartManager] = None,
    ):
        self.session = session
        self.gateway = gateway
        self.settings = settings
        self.carts = carts or CartManager(session)

    # -------- CHECKOUT --------

    def checkout(self, identity: CallerIdentity, request: CheckoutRequest) -> Order:
        if request.items is None:
            line_items = self.carts.snapshot(identity.user_id)
        else:
            line_items = self._snapshot_request_items(request.items)

        totals = OrderTotals(
            subtotal=request.subtotal,
            tax=request.tax,
            shipping=request.shipping,
            total=request.total,
        )

        order = None
        if request.order_tag:
            order = self.find_by_tag(identity.user_id, request.order_tag)

        if order is None:
            try:
                order = self.create_provisional_order(
                    user_id=identity.user_id,
                    line_items=line_items,
                    totals=totals,
                    order_tag=request.order_tag,
                    cadaver_details_id=request.cadaver_details_id,
                    shipping_address=request.shipping_address,
                    billing_address=request.billing_address,
                )
            except DuplicateOrderTagError as exc:
                order = exc.order
        else:
            logger.info(f"Reusing order {order.id} for tag {request.order_tag}")

        self._ensure_invoice(order, payer_email=request.payer_email or identity.email)

        if self.settings.cart_handoff_policy == CartHandoffPolicy.CLEAR_ON_INVOICE:
            cart = self.carts.find_cart(identity.user_id)
            if cart is not None:
                self.carts.clear(cart)

        return order

    def _ensure_invoice(self, order: Order, payer_email: Optional[str] = None) -> str:
        if order.invoice_url:
            return order.invoice_url
        if order.status != OrderStatus.pending.value:
            raise DuplicateOrderTagError(order)
        return self.request_hosted_invoice(order, payer_email=payer_email)

    def _snapshot_request_items(self, items: List[CheckoutItem]) -> List[LineItemSnapshot]:
        if not items:
            raise ValidationError("No items to place order.")

        product_ids = {item.product_id for item in items}
        products = {
            p.id: p
            for p in self.session.exec(
                select(Product).where(
                    Product.id.in_(sorted(product_ids)),
                    Product.is_active == True,  # noqa: E712
                )
            ).all()
        }

        missing = sorted(product_ids - products.keys())
        if missing:
            raise ValidationError("Unknown or inactive product", detail={"product_ids": missing})

        return [
            LineItemSnapshot(
                product_id=item.product_id,
                name=products[item.product_id].name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                image_url=products[item.product_id].image_url,
            )
            for item in items
        ]

    def create_provisional_order(
        self,
        *,
        user_id: str,
        line_items: List[LineItemSnapshot],
        totals: OrderTotals,
        order_tag: Optional[str] = None,
        cadaver_details_id: Optional[int] = None,
        shipping_address: Optional[str] = None,
        billing_address: Optional[str] = None,
    ) -> Order:
        """
        Insert a pending order and its line items and commit.

        This always happens before any call to the payment gateway, so a
        webhook that beats the checkout response can still find the order.
        """
        self._validate_line_items(line_items)
        totals = self._validate_totals(line_items, totals)

        if cadaver_details_id is not None:
            self._check_cadaver_details(user_id, cadaver_details_id)

        order = Order(
            user_id=user_id,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping=totals.shipping,
            total=totals.total,
            status=OrderStatus.pending.value,
            external_id=generate_external_id(user_id),
            order_tag=order_tag,
            cadaver_details_id=cadaver_details_id,
            shipping_address=shipping_address,
            billing_address=billing_address,
        )
        order.items = [
            OrderItem(
                product_id=line.product_id,
                name=line.name,
                unit_price=to_money(line.unit_price),
                quantity=line.quantity,
                image_url=line.image_url,
            )
            for line in line_items
        ]
        self.session.add(order)

        try:
            self.session.flush()
            log_order_event(
                self.session,
                order.id,
                "order_created",
                "Order placed",
                created_by=user_id,
                meta={"external_id": order.external_id, "total": str(order.total)},
            )
            dispatch_order_event(
                event=OrderEvent.ORDER_PLACED,
                order=order,
                session=self.session,
                notify_user=False,
            )
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            if order_tag:
                existing = self.find_by_tag(user_id, order_tag)
                if existing is not None:
                    raise DuplicateOrderTagError(existing)
            logger.exception(f"orders insert failed for user {user_id}")
            raise ServerError("Failed to create order")

        self.session.refresh(order)
        logger.info(
            f"Order {order.id} ({order.external_id}) created for user {user_id}, total {order.total}"
        )
        return order

    def request_hosted_invoice(self, order: Order, payer_email: Optional[str] = None) -> str:
        if order.invoice_url:
            return order.invoice_url
        if order.status != OrderStatus.pending.value:
            raise ConflictError("Order is no longer awaiting payment")

        order_id = order.id
        base = self.settings.frontend_url.rstrip("/")
        ref = quote(order.external_id)
        invoice_request = dict(
            external_id=order.external_id,
            amount=order.total,
            currency=self.settings.currency,
            description=self.settings.invoice_description,
            success_redirect_url=f"{base}/checkout?paid=1&ref={ref}",
            failure_redirect_url=f"{base}/checkout?paid=0&ref={ref}",
            metadata={
                "user_id": order.user_id,
                "order_tag": order.order_tag,
                "cadaver_details_id": order.cadaver_details_id,
            },
            payer_email=payer_email,
        )

        # no database transaction stays open across the processor round trip
        self.session.commit()

        try:
            invoice = self.gateway.create_invoice(**invoice_request)
        except GatewayError:
            logger.warning(f"Invoice request failed for order {order_id}; order stays pending")
            raise

        order.invoice_id = invoice.id
        order.invoice_url = invoice.invoice_url
        order.updated_at = datetime.utcnow()
        self.session.add(order)
        log_order_event(
            self.session,
            order.id,
            "invoice_created",
            "Hosted invoice created",
            meta={"invoice_id": invoice.id},
        )
        self.session.commit()
        self.session.refresh(order)
        return order.invoice_url

    # -------- PAYMENT WEBHOOK --------

    def reconcile_payment_callback(self, callback: InvoiceCallback) -> ReconciliationResult:
        order = self._find_for_callback(callback)
        if order is None:
            logger.warning(
                f"Payment callback for unknown order "
                f"external_id={callback.external_id} invoice_id={callback.invoice_id}"
            )
            raise OrderNotFoundError()

        new_status = GATEWAY_STATUS_MAP.get(callback.status)
        if new_status is None:
            logger.info(f"Ignoring gateway status {callback.status} for order {order.id}")
            return ReconciliationResult(order.id, order.status, applied=False)

        now = datetime.utcnow()
        values = {"status": new_status.value, "updated_at": now}
        if new_status == OrderStatus.paid:
            values["paid_at"] = now
        if callback.invoice_id and not order.invoice_id:
            values["invoice_id"] = callback.invoice_id

        # compare-and-swap: only a pending order takes a payment outcome
        result = self.session.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == OrderStatus.pending.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            self.session.rollback()
            self.session.refresh(order)
            logger.info(
                f"Callback {callback.status} for order {order.id} ignored, already {order.status}"
            )
            return ReconciliationResult(order.id, order.status, applied=False)

        self.session.refresh(order)

        if new_status == OrderStatus.paid and order.cadaver_details_id:
            self.session.execute(
                update(CadaverDetails)
                .where(
                    CadaverDetails.id == order.cadaver_details_id,
                    CadaverDetails.order_id.is_(None),
                )
                .values(order_id=order.id)
                .execution_options(synchronize_session=False)
            )

        log_order_event(
            self.session,
            order.id,
            f"payment_{new_status.value}",
            f"Payment {new_status.value}",
            created_by="xendit",
            meta={"gateway_status": callback.status, "invoice_id": callback.invoice_id},
        )
        record_payment(
            session=self.session,
            order=order,
            provider_status=callback.status,
            currency=self.settings.currency,
            provider_event=callback.event,
            provider_reference=callback.invoice_id or order.invoice_id,
            amount=callback.amount,
            raw_payload=callback.model_dump(mode="json", exclude_none=True),
        )
        dispatch_order_event(
            event=PAYMENT_EVENTS[new_status],
            order=order,
            session=self.session,
        )
        self.session.commit()
        self.session.refresh(order)

        logger.info(f"Order {order.id} marked {order.status} by gateway callback")
        return ReconciliationResult(order.id, order.status, applied=True)

    def _find_for_callback(self, callback: InvoiceCallback) -> Optional[Order]:
        if callback.external_id:
            return self.session.exec(
                select(Order).where(Order.external_id == callback.external_id)
            ).first()
        return self.session.exec(
            select(Order).where(Order.invoice_id == callback.invoice_id)
        ).first()

    # -------- ADMIN FULFILLMENT --------

    def update_fulfillment(
        self, identity: CallerIdentity, order_id: int, patch: OrderPatch
    ) -> Order:
        ensure_admin(identity)

        changes = patch.model_dump(exclude_unset=True)
        changes.pop("items", None)
        item_patches = patch.items if "items" in patch.model_fields_set else None

        if not changes and not item_patches:
            raise ValidationError("Invalid payload: Missing orderId or patch data.")

        order = self.get_order(order_id)
        status_changed = False

        if "status" in changes:
            status_changed = self._apply_status(order, changes.pop("status"))

        for field in TEXT_FIELDS:
            if field in changes:
                setattr(order, field, changes[field])

        money_patched = [field for field in MONEY_FIELDS if field in changes]
        for field in money_patched:
            if changes[field] is None:
                raise ValidationError(f"{field} cannot be null")
            setattr(order, field, to_money(changes[field]))

        if money_patched:
            expected = order.subtotal + order.tax + order.shipping
            if abs(expected - order.total) > self.settings.total_tolerance:
                raise ValidationError(
                    "Totals do not add up",
                    detail={"expected_total": str(expected), "total": str(order.total)},
                )

        touched_items = []
        for item_patch in item_patches or []:
            touched_items.append(self._apply_item_patch(order, item_patch))

        order.updated_at = datetime.utcnow()
        self.session.add(order)

        log_order_event(
            self.session,
            order.id,
            "order_updated",
            "Order updated by admin",
            created_by=identity.user_id,
            meta={
                "fields": sorted(set(changes) | ({"status"} if status_changed else set())),
                "items": touched_items,
            },
        )
        if status_changed:
            dispatch_order_event(
                event=FULFILLMENT_EVENTS[OrderStatus(order.status)],
                order=order,
                session=self.session,
            )

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("Tracking number already assigned to another order")

        self.session.refresh(order)
        logger.info(f"Admin {identity.user_id} updated order {order.id}")
        return order

    def _apply_status(self, order: Order, target: Optional[str]) -> bool:
        if target is None:
            raise ValidationError("status cannot be null")
        try:
            target_status = OrderStatus(target)
        except ValueError:
            raise ValidationError(f"Unknown status: {target}")

        if target_status.value == order.status:
            return False
        if target_status not in ADMIN_STATUSES:
            raise ValidationError(f"Status {target} is only set by the payment gateway")
        if not can_transition(order.status, target_status):
            raise ConflictError(
                f"Cannot move order from {order.status} to {target_status.value}"
            )

        order.status = target_status.value
        if target_status == OrderStatus.shipped:
            order.shipped_at = datetime.utcnow()
        return True

    def _apply_item_patch(self, order: Order, item_patch) -> int:
        item = self.session.get(OrderItem, item_patch.id)
        if not item or item.order_id != order.id:
            raise NotFoundError(f"Order item {item_patch.id} not found")

        if "price" in item_patch.model_fields_set:
            if item_patch.price is None:
                raise ValidationError("price cannot be null")
            item.unit_price = to_money(item_patch.price)
        if "quantity" in item_patch.model_fields_set:
            if item_patch.quantity is None:
                raise ValidationError("quantity cannot be null")
            item.quantity = item_patch.quantity

        self.session.add(item)
        return item.id

    # -------- READS --------

    def get_order(self, order_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if not order:
            raise OrderNotFoundError()
        return order

    def get_order_for_user(self, user_id: str, order_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if not order or order.user_id != user_id:
            raise OrderNotFoundError()
        return order

    def get_order_by_reference(self, user_id: str, external_id: str) -> Order:
        order = self.session.exec(
            select(Order).where(Order.external_id == external_id)
        ).first()
        if not order or order.user_id != user_id:
            raise OrderNotFoundError()
        return order

    def find_by_tag(self, user_id: str, order_tag: str) -> Optional[Order]:
        return self.session.exec(
            select(Order).where(Order.user_id == user_id, Order.order_tag == order_tag)
        ).first()

    def list_user_orders(self, user_id: str, page: int = 1, limit: int = 20):
        query = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return paginate(session=self.session, query=query, page=page, limit=limit)

    def list_orders_admin(
        self,
        *,
        tab: str = "unshipped",
        search: Optional[str] = None,
        sort: str = "created_at",
        direction: str = "asc",
        page: int = 1,
        limit: int = 20,
    ):
        if tab not in ADMIN_TABS:
            raise ValidationError(f"Unknown tab: {tab}")
        if sort not in ("created_at", "total"):
            raise ValidationError(f"Cannot sort by {sort}")

        query = select(Order)

        status = ADMIN_TABS[tab]
        if status is not None:
            query = query.where(Order.status == status.value)

        if search and search.strip():
            like = f"%{search.strip()}%"
            query = query.where(
                or_(Order.external_id.ilike(like), Order.tracking_number.ilike(like))
            )

        column = getattr(Order, sort)
        # FCFS by default
        query = query.order_by(
            column.desc() if direction == "desc" else column.asc(),
            Order.id.asc(),
        )

        return paginate(session=self.session, query=query, page=page, limit=limit)

    # -------- VALIDATION --------

    def _validate_line_items(self, line_items: List[LineItemSnapshot]):
        if not line_items:
            raise ValidationError("No items to place order.")
        for line in line_items:
            if line.quantity < 1:
                raise ValidationError(f"Invalid quantity for product {line.product_id}")
            if not is_money(line.unit_price):
                raise ValidationError(f"Invalid unit price for product {line.product_id}")

    def _validate_totals(
        self, line_items: List[LineItemSnapshot], totals: OrderTotals
    ) -> OrderTotals:
        for field in MONEY_FIELDS:
            if not is_money(getattr(totals, field)):
                raise ValidationError(f"{field} must be a non-negative, finite number")

        subtotal = to_money(totals.subtotal)
        tax = to_money(totals.tax)
        shipping = to_money(totals.shipping)
        total = to_money(totals.total)

        if total <= 0:
            raise ValidationError("Total must be a positive number")

        tolerance = self.settings.total_tolerance

        expected_total = subtotal + tax + shipping
        if abs(expected_total - total) > tolerance:
            raise ValidationError(
                "Totals do not add up",
                detail={"expected_total": str(expected_total), "total": str(total)},
            )

        line_sum = to_money(sum((line.line_total for line in line_items), Decimal("0")))
        if abs(line_sum - subtotal) > tolerance:
            raise ValidationError(
                "Subtotal does not match items",
                detail={"items_subtotal": str(line_sum), "subtotal": str(subtotal)},
            )

        return OrderTotals(subtotal=subtotal, tax=tax, shipping=shipping, total=total)

    def _check_cadaver_details(self, user_id: str, cadaver_details_id: int):
        details = self.session.get(CadaverDetails, cadaver_details_id)
        if not details or details.user_id != user_id:
            raise ValidationError("Unknown cadaver_details_id")
        if details.order_id is not None:
            raise ValidationError("Cadaver details already belong to another order")
