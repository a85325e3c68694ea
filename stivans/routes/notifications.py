from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from stivans.database import get_session
from stivans.dependencies.auth import CallerIdentity, get_current_identity
from stivans.services.notification_service import (
    list_notifications_for,
    mark_notification_read,
)

router = APIRouter()


def _serialize(n):
    return {
        "notification_id": n.id,
        "type": n.type,
        "title": n.title,
        "body": n.body,
        "order_id": n.order_id,
        "recipient_role": n.recipient_role,
        "is_read": n.is_read,
        "created_at": n.created_at,
    }


@router.get("")
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
):
    notifications = list_notifications_for(
        session, identity.user_id, is_admin=identity.is_admin, limit=limit
    )
    return [_serialize(n) for n in notifications]


@router.post("/{notification_id}/read")
def read_notification(
    notification_id: int,
    session: Session = Depends(get_session),
    identity: CallerIdentity = Depends(get_current_identity),
):
    notification = mark_notification_read(
        session, notification_id, identity.user_id, is_admin=identity.is_admin
    )
    return _serialize(notification)
