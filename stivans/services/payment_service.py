from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from sqlmodel import Session

from stivans.models.order import Order
from stivans.models.payment import Payment
from stivans.utils.money import to_money


def record_payment(
    *,
    session: Session,
    order: Order,
    provider_status: str,
    currency: str,
    provider_event: Optional[str] = None,
    provider_reference: Optional[str] = None,
    amount: Any = None,
    raw_payload: Optional[Dict[str, Any]] = None,
) -> Payment:
    """
    Ledger row for a callback that moved the order out of pending.
    Joins the caller's transaction; the caller commits.
    """
    payment = Payment(
        order_id=order.id,
        user_id=order.user_id,
        provider_event=provider_event,
        provider_reference=provider_reference,
        provider_status=provider_status,
        amount=_amount_or_none(amount),
        currency=currency,
        raw_payload=raw_payload,
    )
    session.add(payment)
    return payment


def _amount_or_none(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return to_money(str(value))
    except InvalidOperation:
        return None
