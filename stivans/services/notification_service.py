from typing import List, Optional

from sqlmodel import Session, or_, select

from stivans.errors import NotFoundError
from stivans.models.notifications import Notification, RecipientRole


def create_notification(
    *,
    session: Session,
    recipient_role: RecipientRole,
    user_id: Optional[str],
    type: str,
    title: str,
    body: Optional[str] = None,
    order_id: Optional[int] = None,
):
    notification = Notification(
        recipient_role=recipient_role.value,
        user_id=user_id,
        type=type,
        title=title,
        body=body,
        order_id=order_id,
    )
    session.add(notification)
    session.flush()
    return notification


def list_notifications_for(
    session: Session, user_id: str, is_admin: bool = False, limit: int = 20
) -> List[Notification]:
    query = select(Notification)
    if is_admin:
        query = query.where(
            or_(
                Notification.user_id == user_id,
                Notification.recipient_role == RecipientRole.admin.value,
            )
        )
    else:
        query = query.where(Notification.user_id == user_id)

    return session.exec(
        query.order_by(Notification.created_at.desc()).limit(limit)
    ).all()


def mark_notification_read(
    session: Session, notification_id: int, user_id: str, is_admin: bool = False
) -> Notification:
    notification = session.get(Notification, notification_id)

    visible = notification is not None and (
        notification.user_id == user_id
        or (is_admin and notification.recipient_role == RecipientRole.admin.value)
    )
    if not visible:
        raise NotFoundError("Notification not found")

    notification.is_read = True
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification
