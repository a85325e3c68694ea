import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from stivans.dependencies.auth import CallerIdentity, ensure_admin
from stivans.errors import ConflictError, OrderNotFoundError, ValidationError
from stivans.models.order import Order
from stivans.models.tracking_sequence import TrackingSequence
from stivans.services.order_event_service import log_order_event

logger = logging.getLogger(__name__)


def normalize_carrier(carrier: Optional[str]) -> str:
    return re.sub(r"[^A-Za-z0-9]", "", carrier or "").upper()


def format_tracking_number(carrier_code: str, value: int) -> str:
    return f"{carrier_code}-{value:08d}"


def _next_sequence_value(session: Session, carrier_code: str) -> int:
    # row lock serialises concurrent admins on the same carrier
    sequence = session.exec(
        select(TrackingSequence)
        .where(TrackingSequence.carrier == carrier_code)
        .with_for_update()
    ).first()

    if sequence is None:
        sequence = TrackingSequence(carrier=carrier_code, last_value=0)
        session.add(sequence)
        session.flush()

    # numbers typed in by hand through the fulfilment patch are skipped
    value = sequence.last_value + 1
    while _number_taken(session, format_tracking_number(carrier_code, value)):
        value += 1

    sequence.last_value = value
    session.add(sequence)
    session.flush()
    return value


def _number_taken(session: Session, tracking_number: str) -> bool:
    return (
        session.exec(
            select(Order.id).where(Order.tracking_number == tracking_number)
        ).first()
        is not None
    )


def assign_tracking_number(
    *,
    session: Session,
    identity: CallerIdentity,
    order_id: int,
    carrier: Optional[str] = None,
) -> Order:
    """
    Bind a carrier-scoped sequential tracking number to an order.

    Numbers already held by another order are skipped. Raises ConflictError
    only when a concurrent request wins the same number or creates the
    carrier's sequence first.
    """
    ensure_admin(identity)

    order = session.get(Order, order_id)
    if not order:
        raise OrderNotFoundError()

    carrier_code = normalize_carrier(carrier or order.shipping_carrier)
    if not carrier_code:
        raise ValidationError("Carrier is required")

    if order.tracking_number and normalize_carrier(order.shipping_carrier) == carrier_code:
        return order

    try:
        value = _next_sequence_value(session, carrier_code)
        tracking_number = format_tracking_number(carrier_code, value)

        order.shipping_carrier = carrier_code
        order.tracking_number = tracking_number
        order.updated_at = datetime.utcnow()
        session.add(order)

        log_order_event(
            session,
            order.id,
            "tracking_assigned",
            f"Tracking {tracking_number} assigned",
            created_by=identity.user_id,
            meta={"carrier": carrier_code, "tracking_number": tracking_number},
        )
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning(f"Tracking assignment conflict for order {order_id} on {carrier_code}")
        raise ConflictError(
            "Tracking number already in use, try again",
            detail={"carrier": carrier_code},
        )

    session.refresh(order)
    logger.info(f"Order {order.id} got tracking {order.tracking_number}")
    return order
