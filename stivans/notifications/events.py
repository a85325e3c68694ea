from enum import Enum


class OrderEvent(str, Enum):
    ORDER_PLACED = "order_placed"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_EXPIRED = "payment_expired"
    PAYMENT_FAILED = "payment_failed"
    IN_TRANSIT = "in_transit"
    SHIPPED = "shipped"
    CANCELED = "canceled"
    REFUNDED = "refunded"
