from enum import Enum


class OrderStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    expired = "expired"
    failed = "failed"
    in_transit = "in_transit"
    shipped = "shipped"
    canceled = "canceled"
    refunded = "refunded"


# gateway status vocabulary -> internal status; anything else is ignored
GATEWAY_STATUS_MAP = {
    "PAID": OrderStatus.paid,
    "SETTLED": OrderStatus.paid,
    "EXPIRED": OrderStatus.expired,
    "FAILED": OrderStatus.failed,
}

# statuses an admin may set
ADMIN_STATUSES = {
    OrderStatus.in_transit,
    OrderStatus.shipped,
    OrderStatus.canceled,
    OrderStatus.refunded,
}

ALLOWED_TRANSITIONS = {
    OrderStatus.pending: [OrderStatus.canceled],
    OrderStatus.paid: [
        OrderStatus.in_transit,
        OrderStatus.shipped,
        OrderStatus.canceled,
        OrderStatus.refunded,
    ],
    OrderStatus.in_transit: [
        OrderStatus.shipped,
        OrderStatus.canceled,
        OrderStatus.refunded,
    ],
    OrderStatus.shipped: [],
    OrderStatus.expired: [],
    OrderStatus.failed: [],
    OrderStatus.canceled: [],
    OrderStatus.refunded: [],
}


def can_transition(current: str, target: str) -> bool:
    return OrderStatus(target) in ALLOWED_TRANSITIONS.get(OrderStatus(current), [])
