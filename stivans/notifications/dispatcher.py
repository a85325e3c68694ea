import logging

from stivans.models.notifications import RecipientRole
from stivans.notifications.channels import Channel
from stivans.notifications.events import OrderEvent
from stivans.notifications.rules import DEFAULT_TITLES, NOTIFICATION_RULES
from stivans.services.notification_service import create_notification

logger = logging.getLogger(__name__)


def dispatch_order_event(
    *,
    event: OrderEvent,
    order,
    session,
    extra: dict | None = None,
    notify_user: bool = True,
    notify_admin: bool = True,
):
    """
    Central notification dispatcher.

    Writes in-app notifications for the customer and/or the admins into
    the caller's session. Nothing is committed here, so notifications land
    in the same transaction as the order change that caused them.
    """

    rules = NOTIFICATION_RULES.get(event, {})
    extra = extra or {}
    title = extra.get("title", DEFAULT_TITLES.get(event, "Order Update"))
    created = []

    if notify_user and rules.get(Channel.INAPP_USER) and order.user_id:
        created.append(
            create_notification(
                session=session,
                recipient_role=RecipientRole.customer,
                user_id=order.user_id,
                type=event.value,
                order_id=order.id,
                title=title,
                body=extra.get(
                    "user_body",
                    f"Order {order.external_id} is now {order.status}.",
                ),
            )
        )

    if notify_admin and rules.get(Channel.INAPP_ADMIN):
        created.append(
            create_notification(
                session=session,
                recipient_role=RecipientRole.admin,
                user_id=None,
                type=event.value,
                order_id=order.id,
                title=extra.get("admin_title", title),
                body=extra.get(
                    "admin_body",
                    f"Order {order.external_id} ({order.total}) is now {order.status}.",
                ),
            )
        )

    logger.debug(f"Dispatched {event.value} for order {order.id}: {len(created)} notifications")
    return created
