from stivans.notifications.events import OrderEvent
from stivans.notifications.channels import Channel


NOTIFICATION_RULES = {

    OrderEvent.ORDER_PLACED: {
        Channel.INAPP_ADMIN: True,
    },

    OrderEvent.PAYMENT_SUCCESS: {
        Channel.INAPP_USER: True,
        Channel.INAPP_ADMIN: True,
    },

    OrderEvent.PAYMENT_EXPIRED: {
        Channel.INAPP_USER: True,
    },

    OrderEvent.PAYMENT_FAILED: {
        Channel.INAPP_USER: True,
    },

    OrderEvent.IN_TRANSIT: {
        Channel.INAPP_USER: True,
    },

    OrderEvent.SHIPPED: {
        Channel.INAPP_USER: True,
    },

    OrderEvent.CANCELED: {
        Channel.INAPP_USER: True,
        Channel.INAPP_ADMIN: True,
    },

    OrderEvent.REFUNDED: {
        Channel.INAPP_USER: True,
        Channel.INAPP_ADMIN: True,
    },

}

DEFAULT_TITLES = {
    OrderEvent.ORDER_PLACED: "New Order Placed",
    OrderEvent.PAYMENT_SUCCESS: "Payment Received",
    OrderEvent.PAYMENT_EXPIRED: "Payment Expired",
    OrderEvent.PAYMENT_FAILED: "Payment Failed",
    OrderEvent.IN_TRANSIT: "Order In Transit",
    OrderEvent.SHIPPED: "Order Shipped",
    OrderEvent.CANCELED: "Order Canceled",
    OrderEvent.REFUNDED: "Order Refunded",
}
