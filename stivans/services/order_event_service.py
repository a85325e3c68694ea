# stivans/services/order_event_service.py

from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from sqlmodel import Session, select

from stivans.models.order_event import OrderTimelineEvent


def log_order_event(
    session: Session,
    order_id: int,
    event_type: str,
    label: str,
    created_by: str = "system",
    meta: Optional[dict] = None,
):
    """
    Append-only event log for order timeline.
    Joins the caller's transaction; the caller commits.
    """

    event = OrderTimelineEvent(
        id=str(uuid4()),
        order_id=order_id,
        event_type=event_type,
        label=label,
        meta=meta,
        created_by=created_by,
        created_at=datetime.utcnow(),
    )

    session.add(event)
    return event


def list_order_events(session: Session, order_id: int) -> List[OrderTimelineEvent]:
    return session.exec(
        select(OrderTimelineEvent)
        .where(OrderTimelineEvent.order_id == order_id)
        .order_by(OrderTimelineEvent.created_at)
    ).all()
